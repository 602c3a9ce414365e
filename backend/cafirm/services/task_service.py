"""
Task service.

Tasks are work items inside a service, optionally assigned to a team member.
"""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import InsufficientPermissionsError, ValidationError
from cafirm.core.visibility import ResourceKind, UserContext, ensure_visible
from cafirm.db.base import utcnow
from cafirm.models.accounts import MANAGER_ROLES, UserRole
from cafirm.models.activity import ActivityAction
from cafirm.models.task import Task, TaskStatus
from cafirm.repositories.account_repository import AccountRepository
from cafirm.repositories.task_repository import TaskRepository
from cafirm.schemas.task import TaskCreate, TaskUpdate
from cafirm.services.activity_service import ActivityService

logger = structlog.get_logger()


class TaskService:
    def __init__(self, db: AsyncSession, firm_id: UUID):
        self._db = db
        self._firm_id = firm_id
        self._repo = TaskRepository(db, firm_id)
        self._activity = ActivityService(db, firm_id)

    async def create_task(self, user: UserContext, data: TaskCreate) -> Task:
        """
        Creates a task on a service the caller can see.

        Team members may only add tasks to services visible to them.
        """
        if not user.is_staff:
            raise InsufficientPermissionsError("create tasks")

        await ensure_visible(self._db, user, ResourceKind.SERVICE, data.service_id)
        if data.assigned_to_id:
            await self._ensure_team_member(data.assigned_to_id)

        task = await self._repo.create(**data.model_dump(), created_by_id=user.id)

        logger.info("Task created", task_id=str(task.id), service_id=str(task.service_id))
        await self._activity.record(
            user,
            ActivityAction.TASK_CREATED,
            "task",
            task.id,
            task.title,
            {"service_id": str(task.service_id)},
        )
        return task

    async def get_task(self, user: UserContext, task_id: UUID) -> Task:
        return await ensure_visible(self._db, user, ResourceKind.TASK, task_id)

    async def list_tasks(
        self,
        user: UserContext,
        service_id: UUID | None = None,
        status: TaskStatus | None = None,
        assigned_to_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Task], int]:
        return await self._repo.list_visible(
            user,
            service_id=service_id,
            status=status,
            assigned_to_id=assigned_to_id,
            skip=skip,
            limit=limit,
        )

    async def update_task(self, user: UserContext, task_id: UUID, data: TaskUpdate) -> Task:
        task = await self._editable_task(user, task_id)

        update_data = data.model_dump(exclude_unset=True)
        if "assigned_to_id" in update_data:
            if user.role == UserRole.TEAM_MEMBER:
                raise InsufficientPermissionsError("reassign tasks")
            if update_data["assigned_to_id"]:
                await self._ensure_team_member(update_data["assigned_to_id"])

        for field, value in update_data.items():
            setattr(task, field, value)
        await self._db.commit()
        await self._db.refresh(task)

        await self._activity.record(
            user,
            ActivityAction.TASK_UPDATED,
            "task",
            task.id,
            task.title,
            {"fields": list(update_data.keys())},
        )
        return task

    async def change_status(self, user: UserContext, task_id: UUID, status: TaskStatus) -> Task:
        task = await self._editable_task(user, task_id)
        old_status = task.status

        task.status = status
        task.completed_at = utcnow() if status == TaskStatus.COMPLETED else None
        await self._db.commit()
        await self._db.refresh(task)

        logger.info(
            "Task status changed",
            task_id=str(task.id),
            old_status=old_status.value,
            new_status=status.value,
        )
        await self._activity.record(
            user,
            ActivityAction.TASK_UPDATED,
            "task",
            task.id,
            task.title,
            {"old_status": old_status.value, "new_status": status.value},
        )
        return task

    async def delete_task(self, user: UserContext, task_id: UUID) -> None:
        if user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError("delete tasks")

        task = await self.get_task(user, task_id)
        title = task.title
        await self._db.delete(task)
        await self._db.commit()

        logger.info("Task deleted", task_id=str(task_id))
        await self._activity.record(user, ActivityAction.TASK_DELETED, "task", task_id, title)

    # === HELPERS ===

    async def _editable_task(self, user: UserContext, task_id: UUID) -> Task:
        if not user.is_staff:
            raise InsufficientPermissionsError("edit tasks")
        task = await self.get_task(user, task_id)
        if user.role == UserRole.TEAM_MEMBER and task.assigned_to_id != user.id:
            raise InsufficientPermissionsError("edit tasks assigned to someone else")
        return task

    async def _ensure_team_member(self, team_member_id: UUID) -> None:
        repo = AccountRepository(UserRole.TEAM_MEMBER, self._db, self._firm_id)
        if await repo.get_active(team_member_id) is None:
            raise ValidationError("Tasks can only be assigned to team members of the firm", field="assigned_to_id")
