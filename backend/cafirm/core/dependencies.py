"""
FastAPI dependencies.

Database session, authentication and role checks shared by the routes.
"""

from typing import Annotated, AsyncGenerator
from uuid import UUID

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import (
    AuthenticationError,
    InsufficientPermissionsError,
    InvalidTokenError,
    TokenExpiredError,
)
from cafirm.core.security import is_token_expired, verify_token
from cafirm.core.visibility import UserContext
from cafirm.db.session import async_session_maker
from cafirm.models.accounts import ADMIN_ROLES, MANAGER_ROLES, STAFF_ROLES, Account, UserRole
from cafirm.repositories.account_repository import load_account

security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yields a database session.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def _account_from_token(db: AsyncSession, token: str) -> Account:
    payload = verify_token(token)
    if payload is None:
        if is_token_expired(token):
            raise TokenExpiredError()
        raise InvalidTokenError()

    try:
        role = UserRole(payload.get("role"))
        account_id = UUID(payload.get("sub"))
    except (TypeError, ValueError):
        raise InvalidTokenError("Malformed token claims")

    account = await load_account(db, role, account_id)
    if account is None or not account.can_login:
        raise InvalidTokenError("Account no longer exists or is inactive")
    if str(account.firm_id) != payload.get("firm_id"):
        raise InvalidTokenError("Token does not match the account's firm")
    return account


async def get_current_account(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Account:
    """
    The authenticated account row.

    Raises:
        AuthenticationError: no bearer token
        InvalidTokenError / TokenExpiredError: token rejected
    """
    if credentials is None:
        raise AuthenticationError("Authentication token not provided")
    return await _account_from_token(db, credentials.credentials)


def _context(account: Account) -> UserContext:
    return UserContext(
        id=account.id,
        role=account.role,
        firm_id=account.firm_id,
        email=account.email,
        name=account.name,
    )


async def get_current_user(
    account: Annotated[Account, Depends(get_current_account)],
) -> UserContext:
    return _context(account)


async def get_stream_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    token: Annotated[str | None, Query(description="Token for EventSource clients")] = None,
) -> UserContext:
    """
    Like get_current_user, but also accepts ?token=.

    Browsers cannot set headers on EventSource connections.
    """
    raw = credentials.credentials if credentials else token
    if not raw:
        raise AuthenticationError("Authentication token not provided")
    return _context(await _account_from_token(db, raw))


def require_roles(*roles: UserRole):
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        @router.post("", dependencies=[Depends(require_roles(UserRole.ADMIN))])
        async def create_item(...):
            ...
    """
    async def role_checker(
        current_user: Annotated[UserContext, Depends(get_current_user)],
    ) -> UserContext:
        if current_user.role not in roles:
            raise InsufficientPermissionsError(
                f"requires role: {', '.join(r.value for r in roles)}"
            )
        return current_user

    return role_checker


async def get_firm_id(
    current_user: Annotated[UserContext, Depends(get_current_user)],
) -> UUID:
    return current_user.firm_id


# Type aliases for route signatures
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentAccount = Annotated[Account, Depends(get_current_account)]
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
StreamUser = Annotated[UserContext, Depends(get_stream_user)]
FirmID = Annotated[UUID, Depends(get_firm_id)]

# Role-based dependencies
AdminUser = Annotated[UserContext, Depends(require_roles(*ADMIN_ROLES))]
ManagerUser = Annotated[UserContext, Depends(require_roles(*MANAGER_ROLES))]
StaffUser = Annotated[UserContext, Depends(require_roles(*STAFF_ROLES))]
