"""
Repositories for the role tables.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.visibility import ResourceKind, UserContext, visibility_clause
from cafirm.models.accounts import ACCOUNT_MODELS, Account, Client, UserRole
from cafirm.models.assignment import ClientAssignment
from cafirm.repositories.base import MultiTenantRepository

# Login precedence when the caller does not say which role it is
LOGIN_ROLE_ORDER = (
    UserRole.SUPER_ADMIN,
    UserRole.ADMIN,
    UserRole.PROJECT_MANAGER,
    UserRole.TEAM_MEMBER,
    UserRole.CLIENT,
)


class AccountRepository(MultiTenantRepository[Account]):
    """Data access for one role table, scoped to a firm."""

    def __init__(self, role: UserRole, db: AsyncSession, firm_id: UUID):
        super().__init__(ACCOUNT_MODELS[role], db, firm_id)
        self.role = role

    async def get_active(self, id: UUID) -> Account | None:
        """Account that exists, is active and is not soft deleted."""
        result = await self.db.execute(
            select(self.model).where(
                self.model.id == id,
                self.model.firm_id == self.firm_id,
                self.model.is_active.is_(True),
                self.model.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def list_accounts(
        self,
        search: str | None = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Account], int]:
        query = select(self.model).where(
            self.model.firm_id == self.firm_id,
            self.model.deleted_at.is_(None),
        )
        if not include_inactive:
            query = query.where(self.model.is_active.is_(True))
        if search:
            term = f"%{search}%"
            query = query.where(
                or_(self.model.name.ilike(term), self.model.email.ilike(term))
            )
        return await self.paginate(query.order_by(self.model.name), skip, limit)

    async def count_active(self) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(self.model)
            .where(
                self.model.firm_id == self.firm_id,
                self.model.is_active.is_(True),
                self.model.deleted_at.is_(None),
            )
        )
        return result.scalar_one()

    async def soft_delete(self, id: UUID, when: datetime) -> Account | None:
        instance = await self.get_by_id(id)
        if instance is None or instance.deleted_at is not None:
            return None
        instance.deleted_at = when
        instance.is_active = False
        await self.db.commit()
        return instance


class ClientRepository(AccountRepository):
    """Clients, with role-scoped listing."""

    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(UserRole.CLIENT, db, firm_id)

    async def get_live(self, id: UUID) -> Client | None:
        """Client of this firm that has not been soft deleted."""
        result = await self.db.execute(
            select(Client).where(
                Client.id == id,
                Client.firm_id == self.firm_id,
                Client.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def list_visible(
        self,
        user: UserContext,
        search: str | None = None,
        managed_by_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Client], int]:
        """Clients the caller may see, optionally searched by name, e-mail, company, PAN or GSTIN."""
        query = select(Client).where(visibility_clause(user, ResourceKind.CLIENT))
        if search:
            term = f"%{search}%"
            query = query.where(
                or_(
                    Client.name.ilike(term),
                    Client.email.ilike(term),
                    Client.company_name.ilike(term),
                    Client.pan.ilike(term),
                    Client.gstin.ilike(term),
                )
            )
        if managed_by_id:
            query = query.where(Client.managed_by_id == managed_by_id)
        return await self.paginate(query.order_by(Client.name), skip, limit)

    async def count_visible(self, user: UserContext) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Client)
            .where(visibility_clause(user, ResourceKind.CLIENT))
        )
        return result.scalar_one()

    async def list_for_team_member(self, team_member_id: UUID) -> list[Client]:
        result = await self.db.execute(
            select(Client)
            .join(ClientAssignment, ClientAssignment.client_id == Client.id)
            .where(
                ClientAssignment.firm_id == self.firm_id,
                ClientAssignment.team_member_id == team_member_id,
                Client.deleted_at.is_(None),
            )
            .order_by(Client.name)
        )
        return list(result.scalars().all())


async def find_login_account(
    db: AsyncSession,
    email: str,
    role: UserRole | None = None,
) -> Account | None:
    """
    Looks an e-mail up across role tables (not firm scoped).

    With a role only that table is searched, otherwise the first match in
    LOGIN_ROLE_ORDER wins.
    """
    roles = (role,) if role else LOGIN_ROLE_ORDER
    for candidate_role in roles:
        model = ACCOUNT_MODELS[candidate_role]
        result = await db.execute(
            select(model).where(model.email == email.lower())
        )
        account = result.scalar_one_or_none()
        if account is not None:
            return account
    return None


async def find_by_reset_token(db: AsyncSession, token: str) -> Account | None:
    for model in ACCOUNT_MODELS.values():
        result = await db.execute(
            select(model).where(model.password_reset_token == token)
        )
        account = result.scalar_one_or_none()
        if account is not None:
            return account
    return None


async def email_in_use(db: AsyncSession, email: str) -> bool:
    """True if any role table already has the e-mail."""
    return await find_login_account(db, email) is not None


async def load_account(db: AsyncSession, role: UserRole, id: UUID) -> Account | None:
    """Account by role and id regardless of firm (token authentication)."""
    model = ACCOUNT_MODELS[role]
    result = await db.execute(select(model).where(model.id == id))
    return result.scalar_one_or_none()
