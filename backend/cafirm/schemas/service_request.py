"""
Service request schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from cafirm.models.accounts import UserRole
from cafirm.models.service import ServiceType
from cafirm.models.service_request import RequestStatus, RequestUrgency
from cafirm.schemas.base import BaseSchema, IDMixin, TimestampMixin
from cafirm.schemas.service import FY_PATTERN, ServiceResponse


class ServiceRequestCreate(BaseSchema):
    service_type: ServiceType = ServiceType.OTHER
    title: str = Field(..., min_length=2, max_length=255)
    description: str | None = None
    urgency: RequestUrgency = RequestUrgency.NORMAL
    preferred_due_date: date | None = None
    financial_year: str | None = Field(None, pattern=FY_PATTERN)
    assessment_year: str | None = Field(None, pattern=FY_PATTERN)


class ServiceRequestApprove(BaseSchema):
    approval_notes: str | None = Field(None, max_length=2000)
    quoted_fee: Decimal | None = Field(None, ge=0)
    due_date: date | None = None


class ServiceRequestReject(BaseSchema):
    rejection_reason: str = Field(..., min_length=3, max_length=2000)


class ServiceRequestResponse(ServiceRequestCreate, IDMixin, TimestampMixin):
    firm_id: UUID
    client_id: UUID
    status: RequestStatus
    reviewed_by_id: UUID | None = None
    reviewed_by_role: UserRole | None = None
    reviewed_at: datetime | None = None
    approval_notes: str | None = None
    rejection_reason: str | None = None
    quoted_fee: Decimal | None = None
    service_id: UUID | None = None


class ServiceRequestConversion(BaseSchema):
    """An approved request and the service created from it."""

    request: ServiceRequestResponse
    service: ServiceResponse


class ServiceRequestStats(BaseSchema):
    total: int
    by_status: dict[str, int]
