"""
Service request model.

A client asks the firm for work. A manager either converts the request into a
Service (origin CLIENT_REQUEST) or rejects it; the client may cancel it while
it is still pending.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cafirm.db.base import MultiTenantBase, PgEnum
from cafirm.models.accounts import UserRole
from cafirm.models.service import ServiceType


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    CONVERTED = "converted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class RequestUrgency(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# Most urgent first when listing
URGENCY_RANK: dict[RequestUrgency, int] = {
    RequestUrgency.URGENT: 0,
    RequestUrgency.HIGH: 1,
    RequestUrgency.NORMAL: 2,
    RequestUrgency.LOW: 3,
}


class ServiceRequest(MultiTenantBase):
    __tablename__ = "service_requests"

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id"),
        nullable=False,
        index=True,
    )

    service_type: Mapped[ServiceType] = mapped_column(
        PgEnum(ServiceType),
        default=ServiceType.OTHER,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    urgency: Mapped[RequestUrgency] = mapped_column(
        PgEnum(RequestUrgency),
        default=RequestUrgency.NORMAL,
        nullable=False,
    )
    preferred_due_date: Mapped[date | None] = mapped_column(Date)
    financial_year: Mapped[str | None] = mapped_column(String(9))
    assessment_year: Mapped[str | None] = mapped_column(String(9))

    status: Mapped[RequestStatus] = mapped_column(
        PgEnum(RequestStatus),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Review
    reviewed_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))
    reviewed_by_role: Mapped[UserRole | None] = mapped_column(PgEnum(UserRole))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approval_notes: Mapped[str | None] = mapped_column(Text)
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    quoted_fee: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    # Set once the request becomes a service
    service_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("services.id"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def __repr__(self) -> str:
        return f"<ServiceRequest(id={self.id}, title='{self.title}', status={self.status.value})>"
