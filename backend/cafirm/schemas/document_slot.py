"""
Document slot schemas.
"""

import enum
from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from cafirm.models.document_slot import SlotStatus
from cafirm.models.service import ServiceStatus
from cafirm.models.service_request import RequestUrgency
from cafirm.schemas.base import BaseSchema, IDMixin, TimestampMixin


class SlotActionType(str, enum.Enum):
    LINK = "link"
    REQUEST = "request"
    SKIP = "skip"


class SlotCreate(BaseSchema):
    document_name: str = Field(..., min_length=2, max_length=255)
    category: str | None = Field(None, max_length=100)
    is_required: bool = True
    is_custom: bool = False


class SlotBatchCreate(BaseSchema):
    slots: list[SlotCreate] = Field(..., min_length=1)


class SlotAction(BaseSchema):
    slot_id: UUID
    action: SlotActionType
    linked_document_id: UUID | None = None
    deadline: date | None = None
    instructions: str | None = Field(None, max_length=2000)
    priority: RequestUrgency = RequestUrgency.NORMAL


class SlotActionsRequest(BaseSchema):
    actions: list[SlotAction] = Field(..., min_length=1)
    # Used for requested slots that carry no instructions of their own
    message: str | None = Field(None, max_length=2000)


class SlotActionResult(BaseSchema):
    linked: int = 0
    requested: int = 0
    skipped: int = 0
    errors: list[str] = []
    service_status: ServiceStatus


class SlotUpload(BaseSchema):
    document_id: UUID


class SlotApprove(BaseSchema):
    notes: str | None = Field(None, max_length=2000)


class SlotReject(BaseSchema):
    reason: str = Field(..., min_length=3, max_length=2000)


class SlotResponse(BaseSchema, IDMixin, TimestampMixin):
    service_id: UUID
    client_id: UUID
    document_name: str
    document_code: str | None = None
    category: str | None = None
    is_required: bool
    is_custom: bool
    status: SlotStatus

    linked_document_id: UUID | None = None
    linked_at: datetime | None = None
    requested_at: datetime | None = None
    deadline: date | None = None
    request_message: str | None = None
    priority: RequestUrgency
    uploaded_document_id: UUID | None = None
    uploaded_at: datetime | None = None
    # Uploaded document, else the linked one
    document_id: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    rejection_reason: str | None = None


class SlotSummary(BaseSchema):
    """Progress of the required slots of a service."""

    total: int
    approved: int
    pending: int
    uploaded: int
    rejected: int
    all_approved: bool
    ready_for_review: bool
