"""
Activity log repository.
"""

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.models.activity import ActivityLog
from cafirm.models.service import Service
from cafirm.repositories.base import MultiTenantRepository


class ActivityLogRepository(MultiTenantRepository[ActivityLog]):
    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(ActivityLog, db, firm_id)

    async def list_filtered(
        self,
        entity_type: str | None = None,
        entity_id: UUID | None = None,
        action: str | None = None,
        actor_id: UUID | None = None,
        manager_id: UUID | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[ActivityLog], int]:
        """
        Firm activity, newest first.

        With manager_id only entries authored by that manager or touching one
        of its services are returned.
        """
        query = select(ActivityLog).where(ActivityLog.firm_id == self.firm_id)
        if entity_type:
            query = query.where(ActivityLog.entity_type == entity_type)
        if entity_id:
            query = query.where(ActivityLog.entity_id == entity_id)
        if action:
            query = query.where(ActivityLog.action == action)
        if actor_id:
            query = query.where(ActivityLog.actor_id == actor_id)
        if manager_id:
            managed_services = select(Service.id).where(
                Service.firm_id == self.firm_id,
                Service.project_manager_id == manager_id,
            )
            query = query.where(
                or_(
                    ActivityLog.actor_id == manager_id,
                    ActivityLog.entity_id.in_(managed_services),
                )
            )
        return await self.paginate(query.order_by(ActivityLog.created_at.desc()), skip, limit)
