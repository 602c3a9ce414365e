"""Repositories - data access layer."""

from cafirm.repositories.account_repository import AccountRepository, ClientRepository
from cafirm.repositories.activity_repository import ActivityLogRepository
from cafirm.repositories.assignment_repository import ClientAssignmentRepository
from cafirm.repositories.base import BaseRepository, MultiTenantRepository
from cafirm.repositories.document_repository import DocumentRepository
from cafirm.repositories.document_slot_repository import DocumentSlotRepository
from cafirm.repositories.firm_repository import FirmRepository
from cafirm.repositories.invoice_repository import InvoiceRepository, PaymentRepository
from cafirm.repositories.service_repository import (
    ServiceRepository,
    ServiceStatusHistoryRepository,
)
from cafirm.repositories.service_request_repository import ServiceRequestRepository
from cafirm.repositories.task_repository import TaskRepository

__all__ = [
    # Base
    "BaseRepository",
    "MultiTenantRepository",
    # Entities
    "FirmRepository",
    "AccountRepository",
    "ClientRepository",
    "ClientAssignmentRepository",
    "ServiceRepository",
    "ServiceStatusHistoryRepository",
    "ServiceRequestRepository",
    "TaskRepository",
    "DocumentRepository",
    "DocumentSlotRepository",
    "InvoiceRepository",
    "PaymentRepository",
    "ActivityLogRepository",
]
