"""
Task schemas.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from cafirm.models.task import TaskPriority, TaskStatus
from cafirm.schemas.base import BaseSchema, IDMixin, TimestampMixin


class TaskBase(BaseSchema):
    title: str = Field(..., min_length=2, max_length=255)
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None


class TaskCreate(TaskBase):
    service_id: UUID
    assigned_to_id: UUID | None = None


class TaskUpdate(BaseSchema):
    title: str | None = Field(None, min_length=2, max_length=255)
    description: str | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    assigned_to_id: UUID | None = None


class TaskStatusUpdate(BaseSchema):
    status: TaskStatus


class TaskResponse(TaskBase, IDMixin, TimestampMixin):
    firm_id: UUID
    service_id: UUID
    assigned_to_id: UUID | None = None
    status: TaskStatus
    completed_at: datetime | None = None
    created_by_id: UUID | None = None
