"""
Services layer.

Business logic of the practice-management API.
"""

from cafirm.services.activity_service import ActivityService
from cafirm.services.auth_service import AuthService
from cafirm.services.client_service import ClientService
from cafirm.services.dashboard_service import DashboardService
from cafirm.services.document_slot_service import DocumentSlotService
from cafirm.services.document_service import DocumentService
from cafirm.services.email_service import EmailService
from cafirm.services.firm_service import FirmService
from cafirm.services.invoice_service import InvoiceService
from cafirm.services.service_request_service import ServiceRequestService
from cafirm.services.service_workflow import ServiceWorkflowService
from cafirm.services.staff_service import StaffService
from cafirm.services.task_service import TaskService

__all__ = [
    "ActivityService",
    "AuthService",
    "ClientService",
    "DashboardService",
    "DocumentSlotService",
    "DocumentService",
    "EmailService",
    "FirmService",
    "InvoiceService",
    "ServiceRequestService",
    "ServiceWorkflowService",
    "StaffService",
    "TaskService",
]
