"""
Service model and its status workflow.

A service is a unit of professional work (ITR filing, GST return, audit...)
done for a client. Status changes follow SERVICE_TRANSITIONS and every change
leaves a ServiceStatusHistory row.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cafirm.db.base import MultiTenantBase, PgEnum
from cafirm.models.accounts import UserRole


class ServiceType(str, enum.Enum):
    ITR_FILING = "itr_filing"
    GST_REGISTRATION = "gst_registration"
    GST_RETURN = "gst_return"
    TDS_RETURN = "tds_return"
    TDS_COMPLIANCE = "tds_compliance"
    ROC_FILING = "roc_filing"
    AUDIT = "audit"
    BOOK_KEEPING = "book_keeping"
    PAYROLL = "payroll"
    CONSULTATION = "consultation"
    OTHER = "other"


class ServiceStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    WAITING_FOR_CLIENT = "waiting_for_client"
    ON_HOLD = "on_hold"
    UNDER_REVIEW = "under_review"
    CHANGES_REQUESTED = "changes_requested"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    INVOICED = "invoiced"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class ServiceOrigin(str, enum.Enum):
    CLIENT_REQUEST = "client_request"
    FIRM_CREATED = "firm_created"
    RECURRING = "recurring"
    COMPLIANCE = "compliance"


SERVICE_TRANSITIONS: dict[ServiceStatus, frozenset[ServiceStatus]] = {
    ServiceStatus.PENDING: frozenset({
        ServiceStatus.ASSIGNED,
        ServiceStatus.IN_PROGRESS,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.ASSIGNED: frozenset({
        ServiceStatus.IN_PROGRESS,
        ServiceStatus.PENDING,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.IN_PROGRESS: frozenset({
        ServiceStatus.WAITING_FOR_CLIENT,
        ServiceStatus.ON_HOLD,
        ServiceStatus.UNDER_REVIEW,
        ServiceStatus.COMPLETED,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.WAITING_FOR_CLIENT: frozenset({
        ServiceStatus.IN_PROGRESS,
        ServiceStatus.ON_HOLD,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.ON_HOLD: frozenset({
        ServiceStatus.IN_PROGRESS,
        ServiceStatus.WAITING_FOR_CLIENT,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.UNDER_REVIEW: frozenset({
        ServiceStatus.CHANGES_REQUESTED,
        ServiceStatus.COMPLETED,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.CHANGES_REQUESTED: frozenset({
        ServiceStatus.IN_PROGRESS,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.COMPLETED: frozenset({
        ServiceStatus.DELIVERED,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.DELIVERED: frozenset({
        ServiceStatus.INVOICED,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.INVOICED: frozenset({
        ServiceStatus.CLOSED,
        ServiceStatus.CANCELLED,
    }),
    ServiceStatus.CLOSED: frozenset(),
    ServiceStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in SERVICE_TRANSITIONS.items() if not targets
)

# Statuses that still need work from the firm
OPEN_STATUSES = frozenset({
    ServiceStatus.PENDING,
    ServiceStatus.ASSIGNED,
    ServiceStatus.IN_PROGRESS,
    ServiceStatus.WAITING_FOR_CLIENT,
    ServiceStatus.ON_HOLD,
    ServiceStatus.UNDER_REVIEW,
    ServiceStatus.CHANGES_REQUESTED,
})


def can_transition(current: ServiceStatus, target: ServiceStatus) -> bool:
    """True when target is reachable from current in one step."""
    return target in SERVICE_TRANSITIONS.get(current, frozenset())


def allowed_transitions(current: ServiceStatus) -> list[ServiceStatus]:
    return sorted(SERVICE_TRANSITIONS.get(current, frozenset()), key=lambda s: s.value)


class Service(MultiTenantBase):
    """Professional service delivered to a client."""

    __tablename__ = "services"

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id"),
        nullable=False,
        index=True,
    )
    project_manager_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project_managers.id"),
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[ServiceType] = mapped_column(
        PgEnum(ServiceType),
        default=ServiceType.OTHER,
        nullable=False,
    )
    status: Mapped[ServiceStatus] = mapped_column(
        PgEnum(ServiceStatus),
        default=ServiceStatus.PENDING,
        nullable=False,
        index=True,
    )
    origin: Mapped[ServiceOrigin] = mapped_column(
        PgEnum(ServiceOrigin),
        default=ServiceOrigin.FIRM_CREATED,
        nullable=False,
    )

    financial_year: Mapped[str | None] = mapped_column(String(9))  # 2024-2025
    assessment_year: Mapped[str | None] = mapped_column(String(9))
    due_date: Mapped[date | None] = mapped_column(Date, index=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    fee_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    notes: Mapped[str | None] = mapped_column(Text)
    internal_notes: Mapped[str | None] = mapped_column(Text)

    # Whoever currently works on it (PM or TM)
    current_assignee_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    current_assignee_role: Mapped[UserRole | None] = mapped_column(PgEnum(UserRole))

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))
    created_by_role: Mapped[UserRole | None] = mapped_column(PgEnum(UserRole))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_overdue(self) -> bool:
        if self.due_date is None or self.status not in OPEN_STATUSES:
            return False
        return self.due_date < date.today()

    @property
    def allowed_transitions(self) -> list[ServiceStatus]:
        return allowed_transitions(self.status)

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, title='{self.title}', status={self.status.value})>"


class ServiceStatusHistory(MultiTenantBase):
    """Audit trail of service status changes."""

    __tablename__ = "service_status_history"

    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status: Mapped[ServiceStatus | None] = mapped_column(PgEnum(ServiceStatus))
    to_status: Mapped[ServiceStatus] = mapped_column(PgEnum(ServiceStatus), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)

    changed_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))
    changed_by_role: Mapped[UserRole | None] = mapped_column(PgEnum(UserRole))
