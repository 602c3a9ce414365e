"""
Authentication endpoints.
"""

from fastapi import APIRouter

from cafirm.core.dependencies import CurrentAccount, DBSession
from cafirm.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    ResendOTPRequest,
    ResetPasswordRequest,
    TokenResponse,
    TwoFactorChallenge,
    UserProfile,
    VerifyOTPRequest,
)
from cafirm.schemas.base import APIResponse
from cafirm.services.auth_service import AuthService, profile_of

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=APIResponse[TokenResponse | TwoFactorChallenge])
async def login(
    data: LoginRequest,
    db: DBSession,
) -> APIResponse[TokenResponse | TwoFactorChallenge]:
    """
    Password login.

    Accounts with two-factor login get a challenge instead of a token and
    must call /auth/verify-otp next.
    """
    result = await AuthService(db).login(data.email, data.password, data.role)
    message = "OTP sent" if isinstance(result, TwoFactorChallenge) else "Login successful"
    return APIResponse(success=True, data=result, message=message)


@router.post("/verify-otp", response_model=APIResponse[TokenResponse])
async def verify_otp(data: VerifyOTPRequest, db: DBSession) -> APIResponse[TokenResponse]:
    token = await AuthService(db).verify_otp(data.email, data.otp, data.role)
    return APIResponse(success=True, data=token, message="Login successful")


@router.post("/resend-otp", response_model=APIResponse[TwoFactorChallenge])
async def resend_otp(data: ResendOTPRequest, db: DBSession) -> APIResponse[TwoFactorChallenge]:
    challenge = await AuthService(db).resend_otp(data.email, data.role)
    return APIResponse(success=True, data=challenge, message="OTP sent")


@router.post("/forgot-password", response_model=APIResponse)
async def forgot_password(data: ForgotPasswordRequest, db: DBSession) -> APIResponse:
    await AuthService(db).forgot_password(data.email, data.role)
    return APIResponse(
        success=True,
        message="If the account exists, a reset link has been sent",
    )


@router.post("/reset-password", response_model=APIResponse)
async def reset_password(data: ResetPasswordRequest, db: DBSession) -> APIResponse:
    await AuthService(db).reset_password(data.token, data.new_password)
    return APIResponse(success=True, message="Password has been reset")


@router.post("/change-password", response_model=APIResponse)
async def change_password(
    data: ChangePasswordRequest,
    account: CurrentAccount,
    db: DBSession,
) -> APIResponse:
    await AuthService(db).change_password(account, data.current_password, data.new_password)
    return APIResponse(success=True, message="Password changed")


@router.get("/me", response_model=APIResponse[UserProfile])
async def me(account: CurrentAccount) -> APIResponse[UserProfile]:
    """Profile of the authenticated account."""
    return APIResponse(success=True, data=profile_of(account))
