"""
Service request repository.
"""

from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.visibility import ResourceKind, UserContext, visibility_clause
from cafirm.models.service import ServiceType
from cafirm.models.service_request import (
    URGENCY_RANK,
    RequestStatus,
    ServiceRequest,
)
from cafirm.repositories.base import MultiTenantRepository

urgency_order = case(
    *((ServiceRequest.urgency == urgency, rank) for urgency, rank in URGENCY_RANK.items()),
    else_=len(URGENCY_RANK),
)


class ServiceRequestRepository(MultiTenantRepository[ServiceRequest]):
    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(ServiceRequest, db, firm_id)

    async def list_visible(
        self,
        user: UserContext,
        status: RequestStatus | None = None,
        service_type: ServiceType | None = None,
        client_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[ServiceRequest], int]:
        """Visible requests, most urgent first and newest first within an urgency."""
        query = select(ServiceRequest).where(
            visibility_clause(user, ResourceKind.SERVICE_REQUEST)
        )
        if status:
            query = query.where(ServiceRequest.status == status)
        if service_type:
            query = query.where(ServiceRequest.service_type == service_type)
        if client_id:
            query = query.where(ServiceRequest.client_id == client_id)
        return await self.paginate(
            query.order_by(urgency_order, ServiceRequest.created_at.desc()),
            skip,
            limit,
        )

    async def count_by_status(self, user: UserContext) -> dict[RequestStatus, int]:
        result = await self.db.execute(
            select(ServiceRequest.status, func.count())
            .where(visibility_clause(user, ResourceKind.SERVICE_REQUEST))
            .group_by(ServiceRequest.status)
        )
        return {status: count for status, count in result.all()}
