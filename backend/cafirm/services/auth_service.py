"""
Authentication service.

Password login with lockout, optional e-mailed one-time codes, password reset
and change, and the public firm onboarding.
"""

import math
from datetime import timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.config import settings
from cafirm.core.exceptions import (
    AccountLockedError,
    AuthenticationError,
    InvalidOTPError,
    ResourceAlreadyExistsError,
    ValidationError,
)
from cafirm.core.security import (
    create_access_token,
    generate_otp,
    generate_reset_token,
    get_password_hash,
    mask_email,
    verify_password,
)
from cafirm.core.visibility import UserContext
from cafirm.db.base import as_utc, utcnow
from cafirm.models.accounts import Account, SuperAdmin, UserRole
from cafirm.models.activity import ActivityAction
from cafirm.models.firm import Firm
from cafirm.repositories.account_repository import (
    email_in_use,
    find_by_reset_token,
    find_login_account,
)
from cafirm.repositories.firm_repository import FirmRepository
from cafirm.schemas.auth import (
    DASHBOARD_PATHS,
    FirmOnboarding,
    TokenResponse,
    TwoFactorChallenge,
    UserProfile,
)
from cafirm.services.activity_service import ActivityService
from cafirm.services.email_service import EmailService

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid email or password"


def user_context(account: Account) -> UserContext:
    """The request-level view of an account."""
    return UserContext(
        id=account.id,
        role=account.role,
        firm_id=account.firm_id,
        email=account.email,
        name=account.name,
    )


def issue_token(account: Account) -> str:
    return create_access_token(
        subject=str(account.id),
        additional_claims={
            "firm_id": str(account.firm_id),
            "role": account.role.value,
            "email": account.email,
        },
    )


def profile_of(account: Account) -> UserProfile:
    return UserProfile(
        id=account.id,
        email=account.email,
        name=account.name,
        role=account.role,
        firm_id=account.firm_id,
        client_id=account.id if account.role == UserRole.CLIENT else None,
        must_change_password=account.must_change_password,
    )


class AuthService:
    """
    Authentication service.

    Accounts live in five role tables; lookups go through
    find_login_account, which searches them in a fixed order.
    """

    def __init__(self, db: AsyncSession, email_service: EmailService | None = None):
        self._db = db
        self._email = email_service or EmailService()

    # === LOGIN ===

    async def login(
        self,
        email: str,
        password: str,
        role: UserRole | None = None,
    ) -> TokenResponse | TwoFactorChallenge:
        """
        Checks credentials.

        Returns a token, or a two-factor challenge when the account has
        two-factor login enabled.
        """
        account = await find_login_account(self._db, email, role)
        if account is None:
            logger.warning("Login failed: unknown account", email=mask_email(email))
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not account.can_login:
            logger.warning("Login failed: inactive account", account_id=str(account.id))
            raise AuthenticationError("Account is inactive")

        self._ensure_not_locked(account)

        if not verify_password(password, account.hashed_password):
            await self._register_failed_attempt(account)

        account.failed_login_attempts = 0
        account.locked_until = None

        if account.two_factor_enabled:
            return await self._start_two_factor(account)

        return await self._complete_login(account)

    async def verify_otp(
        self,
        email: str,
        otp: str,
        role: UserRole | None = None,
    ) -> TokenResponse:
        account = await find_login_account(self._db, email, role)
        if account is None or not account.can_login:
            raise InvalidOTPError()

        expires_at = as_utc(account.otp_expires_at)
        if not account.otp_code or expires_at is None or expires_at < utcnow():
            raise InvalidOTPError("OTP has expired, request a new one")
        if account.otp_code != otp:
            logger.warning("Wrong OTP", account_id=str(account.id))
            raise InvalidOTPError()

        account.otp_code = None
        account.otp_expires_at = None
        return await self._complete_login(account)

    async def resend_otp(self, email: str, role: UserRole | None = None) -> TwoFactorChallenge:
        account = await find_login_account(self._db, email, role)
        if account is None or not account.can_login or not account.two_factor_enabled:
            raise AuthenticationError("Two-factor login is not enabled for this account")
        self._ensure_not_locked(account)
        return await self._start_two_factor(account)

    # === PASSWORDS ===

    async def forgot_password(self, email: str, role: UserRole | None = None) -> None:
        """
        Starts a password reset.

        Always succeeds so callers cannot discover which e-mails exist.
        """
        account = await find_login_account(self._db, email, role)
        if account is None or not account.can_login:
            logger.info("Password reset for unknown account", email=mask_email(email))
            return

        token = generate_reset_token()
        account.password_reset_token = token
        account.password_reset_expires_at = utcnow() + timedelta(
            hours=settings.PASSWORD_RESET_EXPIRE_HOURS
        )
        await self._db.commit()

        await self._email.send_password_reset_email(account.email, account.name, token)
        logger.info("Password reset requested", account_id=str(account.id))

    async def reset_password(self, token: str, new_password: str) -> None:
        account = await find_by_reset_token(self._db, token)
        expires_at = as_utc(account.password_reset_expires_at) if account else None
        if account is None or expires_at is None or expires_at < utcnow():
            raise ValidationError("Reset link is invalid or has expired", field="token")

        account.hashed_password = get_password_hash(new_password)
        account.password_reset_token = None
        account.password_reset_expires_at = None
        account.failed_login_attempts = 0
        account.locked_until = None
        account.must_change_password = False
        await self._db.commit()

        await ActivityService(self._db, account.firm_id).record(
            user_context(account),
            ActivityAction.PASSWORD_CHANGED,
            account.role.value,
            account.id,
            account.name,
            {"via": "reset_link"},
        )
        logger.info("Password reset completed", account_id=str(account.id))

    async def change_password(
        self,
        account: Account,
        current_password: str,
        new_password: str,
    ) -> None:
        if not verify_password(current_password, account.hashed_password):
            raise ValidationError("Current password is incorrect", field="current_password")
        if current_password == new_password:
            raise ValidationError("New password must differ from the current one", field="new_password")

        account.hashed_password = get_password_hash(new_password)
        account.must_change_password = False
        await self._db.commit()

        await ActivityService(self._db, account.firm_id).record(
            user_context(account),
            ActivityAction.PASSWORD_CHANGED,
            account.role.value,
            account.id,
            account.name,
        )

    # === ONBOARDING ===

    async def onboard_firm(self, data: FirmOnboarding) -> TokenResponse:
        """
        Creates a firm and its first super admin in one transaction.

        Used by the public sign-up.
        """
        if await email_in_use(self._db, data.admin_email):
            raise ResourceAlreadyExistsError("Account", "email", data.admin_email)

        if data.firm_gstin:
            existing = await FirmRepository(self._db).get_by_gstin(data.firm_gstin)
            if existing:
                raise ResourceAlreadyExistsError("Firm", "gstin", data.firm_gstin)

        firm = Firm(
            name=data.firm_name,
            email=data.firm_email,
            phone=data.firm_phone,
            gstin=data.firm_gstin,
            pan=data.firm_pan,
            address=data.firm_address,
        )
        self._db.add(firm)
        await self._db.flush()

        admin = SuperAdmin(
            firm_id=firm.id,
            email=data.admin_email,
            name=data.admin_name,
            hashed_password=get_password_hash(data.admin_password),
        )
        self._db.add(admin)
        await self._db.commit()
        await self._db.refresh(admin)

        logger.info("Firm onboarded", firm_id=str(firm.id), super_admin_id=str(admin.id))
        return await self._complete_login(admin)

    # === HELPERS ===

    def _ensure_not_locked(self, account: Account) -> None:
        locked_until = as_utc(account.locked_until)
        if locked_until and locked_until > utcnow():
            remaining = math.ceil((locked_until - utcnow()).total_seconds() / 60)
            raise AccountLockedError(max(remaining, 1))

    async def _register_failed_attempt(self, account: Account) -> None:
        """Counts a wrong password and locks the account at the limit. Always raises."""
        account.failed_login_attempts = (account.failed_login_attempts or 0) + 1
        attempts = account.failed_login_attempts

        if attempts >= settings.MAX_FAILED_LOGIN_ATTEMPTS:
            account.locked_until = utcnow() + timedelta(minutes=settings.LOCKOUT_DURATION_MINUTES)
            account.failed_login_attempts = 0
            await self._db.commit()
            logger.warning("Account locked after failed logins", account_id=str(account.id))
            raise AccountLockedError(settings.LOCKOUT_DURATION_MINUTES)

        await self._db.commit()
        logger.warning(
            "Login failed: wrong password",
            account_id=str(account.id),
            attempts=attempts,
        )
        raise AuthenticationError(INVALID_CREDENTIALS)

    async def _start_two_factor(self, account: Account) -> TwoFactorChallenge:
        otp = generate_otp()
        account.otp_code = otp
        account.otp_expires_at = utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
        await self._db.commit()

        await self._email.send_otp_email(account.email, account.name, otp)
        logger.info("OTP issued", account_id=str(account.id))

        return TwoFactorChallenge(
            email=mask_email(account.email),
            role=account.role,
            dev_otp=None if self._email.enabled else otp,
        )

    async def _complete_login(self, account: Account) -> TokenResponse:
        account.last_login_at = utcnow()
        await self._db.commit()

        await ActivityService(self._db, account.firm_id).record(
            user_context(account),
            ActivityAction.LOGIN,
            account.role.value,
            account.id,
            account.name,
        )
        logger.info("Login succeeded", account_id=str(account.id), role=account.role.value)

        return TokenResponse(
            access_token=issue_token(account),
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=profile_of(account),
            redirect_url=DASHBOARD_PATHS[account.role],
        )
