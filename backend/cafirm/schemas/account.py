"""
Schemas for staff accounts and clients.
"""

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from cafirm.models.accounts import UserRole
from cafirm.schemas.base import BaseSchema, IDMixin, TimestampMixin

PAN_PATTERN = r"^[A-Z]{5}[0-9]{4}[A-Z]$"
GSTIN_PATTERN = r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][0-9A-Z]Z[0-9A-Z]$"


def _normalize_email(v: str | None) -> str | None:
    return v.strip().lower() if isinstance(v, str) else v


def _upper(v: str | None) -> str | None:
    if isinstance(v, str):
        v = v.strip().upper()
        return v or None
    return v


class AccountBase(BaseSchema):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=255)
    phone: str | None = Field(None, max_length=20)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return _normalize_email(v)


class StaffCreate(AccountBase):
    """
    New admin, project manager or team member.

    A temporary password is generated and e-mailed when none is given.
    """

    password: str | None = Field(None, min_length=8, max_length=128)
    designation: str | None = Field(None, max_length=100)
    is_trainee: bool = False
    two_factor_enabled: bool = False


class StaffUpdate(BaseSchema):
    name: str | None = Field(None, min_length=2, max_length=255)
    phone: str | None = Field(None, max_length=20)
    designation: str | None = Field(None, max_length=100)
    is_trainee: bool | None = None
    is_active: bool | None = None
    two_factor_enabled: bool | None = None


class AccountResponse(AccountBase, IDMixin, TimestampMixin):
    firm_id: UUID
    role: UserRole
    is_active: bool
    two_factor_enabled: bool
    must_change_password: bool
    last_login_at: datetime | None = None


class StaffResponse(AccountResponse):
    designation: str | None = None
    is_trainee: bool | None = None


class ClientBase(AccountBase):
    company_name: str | None = Field(None, max_length=255)
    contact_person: str | None = Field(None, max_length=255)
    pan: str | None = Field(None, pattern=PAN_PATTERN)
    gstin: str | None = Field(None, pattern=GSTIN_PATTERN)
    address: str | None = None
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    pincode: str | None = Field(None, pattern=r"^[0-9]{6}$")
    notes: str | None = None

    @field_validator("pan", "gstin", mode="before")
    @classmethod
    def uppercase_codes(cls, v: str | None) -> str | None:
        return _upper(v)


class ClientCreate(ClientBase):
    password: str | None = Field(None, min_length=8, max_length=128)
    managed_by_id: UUID | None = None


class ClientUpdate(BaseSchema):
    """Partial client update."""

    name: str | None = Field(None, min_length=2, max_length=255)
    phone: str | None = Field(None, max_length=20)
    company_name: str | None = None
    contact_person: str | None = None
    pan: str | None = Field(None, pattern=PAN_PATTERN)
    gstin: str | None = Field(None, pattern=GSTIN_PATTERN)
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = Field(None, pattern=r"^[0-9]{6}$")
    notes: str | None = None
    is_active: bool | None = None

    @field_validator("pan", "gstin", mode="before")
    @classmethod
    def uppercase_codes(cls, v: str | None) -> str | None:
        return _upper(v)


class ClientResponse(ClientBase, IDMixin, TimestampMixin):
    firm_id: UUID
    is_active: bool
    managed_by_id: UUID | None = None
    last_login_at: datetime | None = None


class ClientListResponse(BaseSchema):
    """Compact client row for listings."""

    id: UUID
    name: str
    email: str
    company_name: str | None = None
    pan: str | None = None
    gstin: str | None = None
    managed_by_id: UUID | None = None
    is_active: bool


class ManagerAssignment(BaseSchema):
    managed_by_id: UUID | None = None


class ClientAssignmentCreate(BaseSchema):
    team_member_id: UUID


class ClientAssignmentResponse(BaseSchema, IDMixin, TimestampMixin):
    team_member_id: UUID
    client_id: UUID
    assigned_by_id: UUID | None = None
    assigned_by_role: UserRole | None = None
