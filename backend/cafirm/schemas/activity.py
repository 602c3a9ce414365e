"""
Activity log and dashboard schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from cafirm.models.accounts import UserRole
from cafirm.schemas.base import BaseSchema, IDMixin


class ActivityLogResponse(BaseSchema, IDMixin):
    actor_id: UUID | None = None
    actor_role: UserRole | None = None
    action: str
    entity_type: str
    entity_id: UUID | None = None
    entity_name: str | None = None
    details: dict[str, Any] = {}
    created_at: datetime


class DashboardSummary(BaseSchema):
    """Role appropriate counters. Sections the role cannot see stay None."""

    role: UserRole
    services_by_status: dict[str, int]
    services_total: int
    services_overdue: int
    open_tasks: int
    documents_pending_review: int
    clients: int | None = None
    team_members: int | None = None
    invoices_by_status: dict[str, int] | None = None
    outstanding_amount: Decimal | None = None
    recent_activity: list[ActivityLogResponse] | None = None
