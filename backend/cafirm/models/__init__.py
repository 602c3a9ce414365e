"""
SQLAlchemy models of the practice API.

Imports every model so they are registered on the metadata.
"""

from cafirm.models.accounts import (
    ACCOUNT_MODELS,
    Account,
    Admin,
    Client,
    ProjectManager,
    SuperAdmin,
    TeamMember,
    UserRole,
)
from cafirm.models.activity import ActivityAction, ActivityLog
from cafirm.models.assignment import ClientAssignment
from cafirm.models.document import (
    Document,
    DocumentHiddenRole,
    DocumentStatus,
    DocumentType,
)
from cafirm.models.document_slot import ServiceDocumentSlot, SlotStatus
from cafirm.models.firm import Firm
from cafirm.models.invoice import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)
from cafirm.models.service import (
    SERVICE_TRANSITIONS,
    Service,
    ServiceOrigin,
    ServiceStatus,
    ServiceStatusHistory,
    ServiceType,
)
from cafirm.models.service_request import RequestStatus, RequestUrgency, ServiceRequest
from cafirm.models.task import Task, TaskPriority, TaskStatus

__all__ = [
    # Tenant and accounts
    "Firm",
    "Account",
    "ACCOUNT_MODELS",
    "UserRole",
    "SuperAdmin",
    "Admin",
    "ProjectManager",
    "TeamMember",
    "Client",
    "ClientAssignment",
    # Work
    "Service",
    "ServiceStatus",
    "ServiceType",
    "ServiceOrigin",
    "ServiceStatusHistory",
    "SERVICE_TRANSITIONS",
    "ServiceRequest",
    "RequestStatus",
    "RequestUrgency",
    "Task",
    "TaskStatus",
    "TaskPriority",
    # Documents
    "Document",
    "DocumentHiddenRole",
    "DocumentType",
    "DocumentStatus",
    "ServiceDocumentSlot",
    "SlotStatus",
    # Billing
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    # Audit
    "ActivityLog",
    "ActivityAction",
]
