"""
Service schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from cafirm.models.accounts import UserRole
from cafirm.models.service import ServiceOrigin, ServiceStatus, ServiceType
from cafirm.schemas.base import BaseSchema, IDMixin, TimestampMixin

FY_PATTERN = r"^[0-9]{4}-[0-9]{2,4}$"


class ServiceBase(BaseSchema):
    title: str = Field(..., min_length=2, max_length=255)
    description: str | None = None
    type: ServiceType = ServiceType.OTHER
    financial_year: str | None = Field(None, pattern=FY_PATTERN)
    assessment_year: str | None = Field(None, pattern=FY_PATTERN)
    due_date: date | None = None
    fee_amount: Decimal | None = Field(None, ge=0)
    notes: str | None = None


class ServiceCreate(ServiceBase):
    client_id: UUID
    origin: ServiceOrigin = ServiceOrigin.FIRM_CREATED
    internal_notes: str | None = None
    assignee_id: UUID | None = None
    assignee_role: UserRole | None = None


class ServiceUpdate(BaseSchema):
    """Field edits. Status changes go through the status endpoints."""

    title: str | None = Field(None, min_length=2, max_length=255)
    description: str | None = None
    type: ServiceType | None = None
    financial_year: str | None = Field(None, pattern=FY_PATTERN)
    assessment_year: str | None = Field(None, pattern=FY_PATTERN)
    due_date: date | None = None
    fee_amount: Decimal | None = Field(None, ge=0)
    notes: str | None = None
    internal_notes: str | None = None
    project_manager_id: UUID | None = None


class ServiceStatusUpdate(BaseSchema):
    status: ServiceStatus
    reason: str | None = Field(None, max_length=1000)


class ServiceActionRequest(BaseSchema):
    reason: str | None = Field(None, max_length=1000)


class ServiceAssign(BaseSchema):
    assignee_id: UUID
    assignee_role: UserRole = UserRole.TEAM_MEMBER


class ServiceResponse(ServiceBase, IDMixin, TimestampMixin):
    firm_id: UUID
    client_id: UUID
    project_manager_id: UUID | None = None
    status: ServiceStatus
    origin: ServiceOrigin
    started_at: datetime | None = None
    completed_at: datetime | None = None
    current_assignee_id: UUID | None = None
    current_assignee_role: UserRole | None = None
    created_by_id: UUID | None = None
    created_by_role: UserRole | None = None
    is_overdue: bool = False
    allowed_transitions: list[ServiceStatus] = []


class ServiceStaffResponse(ServiceResponse):
    """Staff view, including notes the client never sees."""

    internal_notes: str | None = None


class ServiceStatusHistoryResponse(BaseSchema, IDMixin):
    service_id: UUID
    from_status: ServiceStatus | None = None
    to_status: ServiceStatus
    action: str
    reason: str | None = None
    changed_by_id: UUID | None = None
    changed_by_role: UserRole | None = None
    created_at: datetime


class ServiceBoard(BaseSchema):
    """Kanban columns."""

    pending: list[ServiceResponse] = []
    in_progress: list[ServiceResponse] = []
    under_review: list[ServiceResponse] = []
    completed: list[ServiceResponse] = []


class ServiceStats(BaseSchema):
    total: int
    by_status: dict[str, int]
    overdue: int = 0
