"""
Authentication schemas.
"""

from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from cafirm.models.accounts import UserRole
from cafirm.schemas.base import BaseSchema

DASHBOARD_PATHS: dict[UserRole, str] = {
    UserRole.SUPER_ADMIN: "/super-admin/dashboard",
    UserRole.ADMIN: "/admin/dashboard",
    UserRole.PROJECT_MANAGER: "/project-manager/dashboard",
    UserRole.TEAM_MEMBER: "/team-member/dashboard",
    UserRole.CLIENT: "/client/dashboard",
}


class EmailMixin(BaseSchema):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.strip().lower() if isinstance(v, str) else v


class LoginRequest(EmailMixin):
    password: str = Field(..., min_length=1)
    role: UserRole | None = None


class VerifyOTPRequest(EmailMixin):
    otp: str = Field(..., pattern=r"^[0-9]{6}$")
    role: UserRole | None = None


class ResendOTPRequest(EmailMixin):
    role: UserRole | None = None


class ForgotPasswordRequest(EmailMixin):
    role: UserRole | None = None


class ResetPasswordRequest(BaseSchema):
    token: str = Field(..., min_length=16)
    new_password: str = Field(..., min_length=8, max_length=128)


class ChangePasswordRequest(BaseSchema):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)


class UserProfile(BaseSchema):
    """The logged in account as returned to the browser."""

    id: UUID
    email: str
    name: str
    role: UserRole
    firm_id: UUID
    client_id: UUID | None = None
    must_change_password: bool = False


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserProfile
    redirect_url: str


class TwoFactorChallenge(BaseSchema):
    """Returned instead of a token when the account uses two-factor login."""

    requires_two_factor: bool = True
    email: str
    role: UserRole
    # Only present when e-mail delivery is not configured
    dev_otp: str | None = None


class FirmOnboarding(BaseSchema):
    """Public sign-up: a firm and its first super admin."""

    firm_name: str = Field(..., min_length=2, max_length=255)
    firm_email: EmailStr
    firm_phone: str | None = None
    firm_gstin: str | None = None
    firm_pan: str | None = None
    firm_address: str | None = None
    admin_name: str = Field(..., min_length=2, max_length=255)
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("admin_email", "firm_email", mode="before")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.strip().lower() if isinstance(v, str) else v
