"""
Task repository.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.visibility import ResourceKind, UserContext, visibility_clause
from cafirm.models.task import Task, TaskStatus
from cafirm.repositories.base import MultiTenantRepository


class TaskRepository(MultiTenantRepository[Task]):
    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(Task, db, firm_id)

    async def list_visible(
        self,
        user: UserContext,
        service_id: UUID | None = None,
        status: TaskStatus | None = None,
        assigned_to_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Task], int]:
        query = select(Task).where(visibility_clause(user, ResourceKind.TASK))
        if service_id:
            query = query.where(Task.service_id == service_id)
        if status:
            query = query.where(Task.status == status)
        if assigned_to_id:
            query = query.where(Task.assigned_to_id == assigned_to_id)
        return await self.paginate(
            query.order_by(Task.due_date.is_(None), Task.due_date, Task.created_at),
            skip,
            limit,
        )

    async def count_open(self, user: UserContext) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Task)
            .where(
                visibility_clause(user, ResourceKind.TASK),
                Task.status.in_([TaskStatus.PENDING, TaskStatus.IN_PROGRESS]),
            )
        )
        return result.scalar_one()
