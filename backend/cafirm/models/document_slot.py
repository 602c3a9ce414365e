"""
Document slot model.

A slot is one document a service needs from its client (a Form 16, last
year's ITR...). Managers either link a document the client already shared,
request it from the client, or leave the slot for later. The client fills
requested slots with uploads, which a manager then approves or rejects.

    NOT_STARTED -> LINKED | REQUESTED
    REQUESTED | REJECTED -> UPLOADED          (client)
    UPLOADED | LINKED -> APPROVED             (manager)
    UPLOADED -> REJECTED                      (manager)
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cafirm.db.base import MultiTenantBase, PgEnum
from cafirm.models.service_request import RequestUrgency


class SlotStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    REQUESTED = "requested"
    LINKED = "linked"
    UPLOADED = "uploaded"
    APPROVED = "approved"
    REJECTED = "rejected"


class ServiceDocumentSlot(MultiTenantBase):
    __tablename__ = "service_document_slots"

    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id"),
        nullable=False,
        index=True,
    )

    document_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Upper-case code derived from the name, matched against document types
    document_code: Mapped[str | None] = mapped_column(String(100))
    category: Mapped[str | None] = mapped_column(String(100))
    is_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[SlotStatus] = mapped_column(
        PgEnum(SlotStatus),
        default=SlotStatus.NOT_STARTED,
        nullable=False,
    )

    # Linked from the client's existing documents
    linked_document_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("documents.id"),
    )
    linked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    linked_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))

    # Requested from the client
    requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    requested_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))
    deadline: Mapped[date | None] = mapped_column(Date)
    request_message: Mapped[str | None] = mapped_column(Text)
    priority: Mapped[RequestUrgency] = mapped_column(
        PgEnum(RequestUrgency),
        default=RequestUrgency.NORMAL,
        nullable=False,
    )

    # Uploaded by the client
    uploaded_document_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("documents.id"),
    )
    uploaded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Review
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reviewed_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))
    review_notes: Mapped[str | None] = mapped_column(Text)
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    @property
    def document_id(self) -> uuid.UUID | None:
        """The document currently filling the slot."""
        return self.uploaded_document_id or self.linked_document_id

    def __repr__(self) -> str:
        return f"<ServiceDocumentSlot(id={self.id}, name='{self.document_name}', status={self.status.value})>"
