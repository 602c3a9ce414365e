"""
Document model.

Stores metadata for files kept on local disk under UPLOAD_DIR. A document
belongs to a client, to a team member (self uploads) or both.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from cafirm.db.base import MultiTenantBase, PgEnum
from cafirm.models.accounts import UserRole


class DocumentType(str, enum.Enum):
    """Kinds of documents a firm collects."""

    PAN_CARD = "pan_card"
    AADHAAR_CARD = "aadhaar_card"
    GST_CERTIFICATE = "gst_certificate"
    BANK_STATEMENT = "bank_statement"
    ITR = "itr"
    FORM_16 = "form_16"
    FINANCIAL_STATEMENT = "financial_statement"
    INVOICE = "invoice"
    AGREEMENT = "agreement"
    DELIVERABLE = "deliverable"
    OTHER = "other"


class DocumentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Document(MultiTenantBase):
    """
    Metadata of an uploaded file.

    Deletion is soft by default (is_deleted). A DocumentHiddenRole row lets a
    role hide a document from its own views without deleting it for others.
    """

    __tablename__ = "documents"

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(150), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    sha256: Mapped[str | None] = mapped_column(String(64))

    document_type: Mapped[DocumentType] = mapped_column(
        PgEnum(DocumentType),
        default=DocumentType.OTHER,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[DocumentStatus] = mapped_column(
        PgEnum(DocumentStatus),
        default=DocumentStatus.PENDING,
        nullable=False,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    client_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id"),
        index=True,
    )
    team_member_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("team_members.id"),
        index=True,
    )
    service_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("services.id"),
        index=True,
    )

    uploaded_by_role: Mapped[UserRole] = mapped_column(PgEnum(UserRole), nullable=False)
    uploaded_by_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, file_name='{self.file_name}')>"


class DocumentHiddenRole(MultiTenantBase):
    """A role that chose to hide a document from its own listings."""

    __tablename__ = "document_hidden_roles"
    __table_args__ = (
        UniqueConstraint("document_id", "role", name="uq_document_hidden_role"),
    )

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[UserRole] = mapped_column(PgEnum(UserRole), nullable=False)
    hidden_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))
