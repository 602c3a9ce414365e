"""
Staff service: admins, project managers and team members.
"""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import (
    BusinessRuleError,
    InsufficientPermissionsError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
)
from cafirm.core.security import generate_temporary_password, get_password_hash
from cafirm.core.visibility import UserContext
from cafirm.db.base import utcnow
from cafirm.models.accounts import (
    ADMIN_ROLES,
    MANAGER_ROLES,
    Account,
    UserRole,
)
from cafirm.models.activity import ActivityAction
from cafirm.repositories.account_repository import AccountRepository, email_in_use
from cafirm.schemas.account import StaffCreate, StaffUpdate
from cafirm.services.activity_service import ActivityService
from cafirm.services.email_service import EmailService

logger = structlog.get_logger()

ROLE_LABELS: dict[UserRole, str] = {
    UserRole.SUPER_ADMIN: "Super Admin",
    UserRole.ADMIN: "Admin",
    UserRole.PROJECT_MANAGER: "Project Manager",
    UserRole.TEAM_MEMBER: "Team Member",
    UserRole.CLIENT: "Client",
}

# Who may create, edit or delete accounts of each staff role
MANAGING_ROLES: dict[UserRole, tuple[UserRole, ...]] = {
    UserRole.ADMIN: (UserRole.SUPER_ADMIN,),
    UserRole.PROJECT_MANAGER: ADMIN_ROLES,
    UserRole.TEAM_MEMBER: MANAGER_ROLES,
}

# Who may list accounts of each staff role
VIEWING_ROLES: dict[UserRole, tuple[UserRole, ...]] = {
    UserRole.ADMIN: ADMIN_ROLES,
    UserRole.PROJECT_MANAGER: MANAGER_ROLES,
    UserRole.TEAM_MEMBER: MANAGER_ROLES,
}


def initial_password(password: str | None) -> tuple[str, str | None]:
    """
    Hash for a new account and the temporary password to e-mail, if any.

    Without an explicit password a random one is generated and the account
    must change it at first login.
    """
    if password:
        return get_password_hash(password), None
    temporary = generate_temporary_password()
    return get_password_hash(temporary), temporary


class StaffService:
    def __init__(
        self,
        db: AsyncSession,
        firm_id: UUID,
        email_service: EmailService | None = None,
    ):
        self._db = db
        self._firm_id = firm_id
        self._activity = ActivityService(db, firm_id)
        self._email = email_service or EmailService()

    def _repo(self, role: UserRole) -> AccountRepository:
        return AccountRepository(role, self._db, self._firm_id)

    async def create_staff(self, user: UserContext, role: UserRole, data: StaffCreate) -> Account:
        """
        Creates a staff account.

        Admins are created by super admins, project managers by admins, team
        members by admins or project managers.
        """
        self._check(user, role, MANAGING_ROLES, "create")

        if await email_in_use(self._db, data.email):
            raise ResourceAlreadyExistsError("Account", "email", data.email)

        hashed_password, temporary_password = initial_password(data.password)
        fields = data.model_dump(exclude={"password", "designation", "is_trainee"})
        if role == UserRole.TEAM_MEMBER:
            fields.update(designation=data.designation, is_trainee=data.is_trainee)

        account = await self._repo(role).create(
            **fields,
            hashed_password=hashed_password,
            must_change_password=temporary_password is not None,
        )

        logger.info("Staff account created", account_id=str(account.id), role=role.value)
        await self._activity.record(
            user,
            ActivityAction.ACCOUNT_CREATED,
            role.value,
            account.id,
            account.name,
            {"email": account.email},
        )
        await self._email.send_welcome_email(
            account.email,
            account.name,
            ROLE_LABELS[role],
            temporary_password,
        )
        return account

    async def list_staff(
        self,
        user: UserContext,
        role: UserRole,
        search: str | None = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Account], int]:
        self._check(user, role, VIEWING_ROLES, "list")
        return await self._repo(role).list_accounts(
            search=search,
            include_inactive=include_inactive,
            skip=skip,
            limit=limit,
        )

    async def get_staff(self, user: UserContext, role: UserRole, account_id: UUID) -> Account:
        if user.id != account_id:
            self._check(user, role, VIEWING_ROLES, "view")
        account = await self._repo(role).get_by_id(account_id)
        if account is None or account.is_deleted:
            raise ResourceNotFoundError(ROLE_LABELS[role], account_id)
        return account

    async def update_staff(
        self,
        user: UserContext,
        role: UserRole,
        account_id: UUID,
        data: StaffUpdate,
    ) -> Account:
        self._check(user, role, MANAGING_ROLES, "update")
        account = await self.get_staff(user, role, account_id)

        update_data = data.model_dump(exclude_unset=True)
        if role != UserRole.TEAM_MEMBER:
            update_data.pop("designation", None)
            update_data.pop("is_trainee", None)

        for field, value in update_data.items():
            setattr(account, field, value)
        await self._db.commit()
        await self._db.refresh(account)

        await self._activity.record(
            user,
            ActivityAction.ACCOUNT_UPDATED,
            role.value,
            account.id,
            account.name,
            {"fields": list(update_data.keys())},
        )
        return account

    async def delete_staff(self, user: UserContext, role: UserRole, account_id: UUID) -> None:
        """Soft delete: the account is deactivated and hidden from listings."""
        self._check(user, role, MANAGING_ROLES, "delete")
        if account_id == user.id:
            raise BusinessRuleError("You cannot delete your own account", rule="self_delete")

        account = await self._repo(role).soft_delete(account_id, utcnow())
        if account is None:
            raise ResourceNotFoundError(ROLE_LABELS[role], account_id)

        logger.info("Staff account deleted", account_id=str(account_id), role=role.value)
        await self._activity.record(
            user,
            ActivityAction.ACCOUNT_DELETED,
            role.value,
            account.id,
            account.name,
        )

    @staticmethod
    def _check(
        user: UserContext,
        role: UserRole,
        rules: dict[UserRole, tuple[UserRole, ...]],
        verb: str,
    ) -> None:
        if role not in rules:
            raise InsufficientPermissionsError(f"{verb} {role.value} accounts")
        if user.role not in rules[role]:
            raise InsufficientPermissionsError(f"{verb} {ROLE_LABELS[role].lower()} accounts")
