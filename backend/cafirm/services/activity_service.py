"""
Activity log service.

Recording is a side effect of other operations and must never make them
fail, so record() logs and swallows database errors.
"""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.exceptions import InsufficientPermissionsError
from cafirm.core.visibility import UserContext
from cafirm.models.accounts import UserRole
from cafirm.models.activity import ActivityAction, ActivityLog
from cafirm.repositories.activity_repository import ActivityLogRepository

logger = structlog.get_logger()


class ActivityService:
    def __init__(self, db: AsyncSession, firm_id: UUID):
        self._db = db
        self._firm_id = firm_id
        self._repo = ActivityLogRepository(db, firm_id)

    async def record(
        self,
        actor: UserContext | None,
        action: ActivityAction | str,
        entity_type: str,
        entity_id: UUID | None = None,
        entity_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ActivityLog | None:
        """Appends one entry. Returns None when the write failed."""
        action_value = action.value if isinstance(action, ActivityAction) else action
        entry = ActivityLog(
            actor_id=actor.id if actor else None,
            actor_role=actor.role if actor else None,
            action=action_value,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            details=details or {},
        )
        try:
            # Failures roll back the savepoint only
            async with self._db.begin_nested():
                await self._repo.add(entry)
            await self._db.commit()
        except SQLAlchemyError as e:
            logger.warning(
                "Activity log write failed",
                action=action_value,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id else None,
                error=str(e),
            )
            return None
        return entry

    async def list_for(
        self,
        user: UserContext,
        entity_type: str | None = None,
        entity_id: UUID | None = None,
        action: str | None = None,
        actor_id: UUID | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[ActivityLog], int]:
        """
        Activity visible to the caller.

        Admins see the whole firm, project managers their own trail and their
        services. Other roles have no access.
        """
        if user.is_admin:
            manager_id = None
        elif user.role == UserRole.PROJECT_MANAGER:
            manager_id = user.id
        else:
            raise InsufficientPermissionsError("view activity log")

        return await self._repo.list_filtered(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            manager_id=manager_id,
            skip=skip,
            limit=limit,
        )
