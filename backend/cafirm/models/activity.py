"""
Activity log: append-only record of what happened in a firm.
"""

import enum
import uuid
from typing import Any

from sqlalchemy import JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cafirm.db.base import MultiTenantBase, PgEnum
from cafirm.models.accounts import UserRole


class ActivityAction(str, enum.Enum):
    """Known actions. Stored as plain strings so new ones need no migration."""

    LOGIN = "LOGIN"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_UPDATED = "ACCOUNT_UPDATED"
    ACCOUNT_DELETED = "ACCOUNT_DELETED"
    CLIENT_ASSIGNED = "CLIENT_ASSIGNED"
    CLIENT_UNASSIGNED = "CLIENT_UNASSIGNED"
    SERVICE_CREATED = "SERVICE_CREATED"
    SERVICE_UPDATED = "SERVICE_UPDATED"
    SERVICE_ASSIGNED = "SERVICE_ASSIGNED"
    SERVICE_STATUS_UPDATED = "SERVICE_STATUS_UPDATED"
    SERVICE_REQUEST_CREATED = "SERVICE_REQUEST_CREATED"
    SERVICE_REQUEST_CONVERTED = "SERVICE_REQUEST_CONVERTED"
    SERVICE_REQUEST_REJECTED = "SERVICE_REQUEST_REJECTED"
    SERVICE_REQUEST_CANCELLED = "SERVICE_REQUEST_CANCELLED"
    TASK_CREATED = "TASK_CREATED"
    TASK_UPDATED = "TASK_UPDATED"
    TASK_DELETED = "TASK_DELETED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    DOCUMENT_STATUS_UPDATED = "DOCUMENT_STATUS_UPDATED"
    DOCUMENT_DELETED = "DOCUMENT_DELETED"
    DOCUMENT_HIDDEN = "DOCUMENT_HIDDEN"
    DOCUMENT_SLOTS_ADDED = "DOCUMENT_SLOTS_ADDED"
    DOCUMENT_SLOTS_PROCESSED = "DOCUMENT_SLOTS_PROCESSED"
    DOCUMENT_SLOT_FILLED = "DOCUMENT_SLOT_FILLED"
    DOCUMENT_SLOT_REVIEWED = "DOCUMENT_SLOT_REVIEWED"
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_UPDATED = "INVOICE_UPDATED"
    INVOICE_SENT = "INVOICE_SENT"
    INVOICE_CANCELLED = "INVOICE_CANCELLED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"


class ActivityLog(MultiTenantBase):
    __tablename__ = "activity_logs"

    actor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    actor_role: Mapped[UserRole | None] = mapped_column(PgEnum(UserRole))
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    entity_name: Mapped[str | None] = mapped_column(String(255))
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    def __repr__(self) -> str:
        return f"<ActivityLog(action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
