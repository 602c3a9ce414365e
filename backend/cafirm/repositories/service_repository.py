"""
Repositories for services and their status history.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.visibility import ResourceKind, UserContext, visibility_clause
from cafirm.models.service import (
    OPEN_STATUSES,
    Service,
    ServiceStatus,
    ServiceStatusHistory,
    ServiceType,
)
from cafirm.repositories.base import MultiTenantRepository


class ServiceRepository(MultiTenantRepository[Service]):
    """Data access for services. Listings always go through the visibility clause."""

    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(Service, db, firm_id)

    async def list_visible(
        self,
        user: UserContext,
        status: ServiceStatus | None = None,
        type: ServiceType | None = None,
        client_id: UUID | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Service], int]:
        query = select(Service).where(visibility_clause(user, ResourceKind.SERVICE))
        if status:
            query = query.where(Service.status == status)
        if type:
            query = query.where(Service.type == type)
        if client_id:
            query = query.where(Service.client_id == client_id)
        if search:
            term = f"%{search}%"
            query = query.where(
                or_(Service.title.ilike(term), Service.description.ilike(term))
            )
        return await self.paginate(query.order_by(Service.created_at.desc()), skip, limit)

    async def all_visible(self, user: UserContext, exclude: set[ServiceStatus] | None = None) -> list[Service]:
        query = select(Service).where(visibility_clause(user, ResourceKind.SERVICE))
        if exclude:
            query = query.where(Service.status.not_in(exclude))
        result = await self.db.execute(query.order_by(Service.created_at.desc()))
        return list(result.scalars().all())

    async def count_by_status(self, user: UserContext) -> dict[ServiceStatus, int]:
        result = await self.db.execute(
            select(Service.status, func.count())
            .where(visibility_clause(user, ResourceKind.SERVICE))
            .group_by(Service.status)
        )
        return {status: count for status, count in result.all()}

    async def count_overdue(self, user: UserContext, today: date) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Service)
            .where(
                visibility_clause(user, ResourceKind.SERVICE),
                Service.status.in_(OPEN_STATUSES),
                Service.due_date < today,
            )
        )
        return result.scalar_one()

    async def due_between(self, start: date, end: date) -> list[Service]:
        """Open services of this firm due in [start, end]."""
        result = await self.db.execute(
            select(Service).where(
                Service.firm_id == self.firm_id,
                Service.status.in_(OPEN_STATUSES),
                Service.due_date.is_not(None),
                Service.due_date >= start,
                Service.due_date <= end,
            )
        )
        return list(result.scalars().all())


class ServiceStatusHistoryRepository(MultiTenantRepository[ServiceStatusHistory]):
    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(ServiceStatusHistory, db, firm_id)

    async def for_service(self, service_id: UUID) -> list[ServiceStatusHistory]:
        result = await self.db.execute(
            select(ServiceStatusHistory)
            .where(
                ServiceStatusHistory.firm_id == self.firm_id,
                ServiceStatusHistory.service_id == service_id,
            )
            .order_by(ServiceStatusHistory.created_at)
        )
        return list(result.scalars().all())
