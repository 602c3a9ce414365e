"""
Document schemas.
"""

from datetime import datetime
from uuid import UUID

from cafirm.models.accounts import UserRole
from cafirm.models.document import DocumentStatus, DocumentType
from cafirm.schemas.base import BaseSchema, IDMixin, TimestampMixin


class DocumentResponse(BaseSchema, IDMixin, TimestampMixin):
    """Document metadata. The storage path never leaves the server."""

    firm_id: UUID
    file_name: str
    mime_type: str
    file_size: int
    document_type: DocumentType
    description: str | None = None
    status: DocumentStatus
    approved_at: datetime | None = None

    client_id: UUID | None = None
    team_member_id: UUID | None = None
    service_id: UUID | None = None

    uploaded_by_role: UserRole
    uploaded_by_id: UUID


class DocumentStatusUpdate(BaseSchema):
    status: DocumentStatus


class DocumentGroup(BaseSchema):
    """Documents of one owner grouped by document type."""

    owner_id: UUID
    owner_name: str
    owner_kind: str  # "team_member" or "client"
    total: int
    by_type: dict[str, list[DocumentResponse]]


class DocumentHierarchy(BaseSchema):
    """A team member's own documents followed by one group per assigned client."""

    own: DocumentGroup
    clients: list[DocumentGroup]
