"""Pydantic schemas for request and response validation."""

from cafirm.schemas.account import (
    AccountResponse,
    ClientAssignmentCreate,
    ClientAssignmentResponse,
    ClientCreate,
    ClientListResponse,
    ClientResponse,
    ClientUpdate,
    ManagerAssignment,
    StaffCreate,
    StaffResponse,
    StaffUpdate,
)
from cafirm.schemas.activity import ActivityLogResponse, DashboardSummary
from cafirm.schemas.auth import (
    ChangePasswordRequest,
    FirmOnboarding,
    ForgotPasswordRequest,
    LoginRequest,
    ResendOTPRequest,
    ResetPasswordRequest,
    TokenResponse,
    TwoFactorChallenge,
    UserProfile,
    VerifyOTPRequest,
)
from cafirm.schemas.base import (
    APIResponse,
    BaseSchema,
    ErrorDetail,
    ErrorResponse,
    IDMixin,
    PaginatedResponse,
    TimestampMixin,
)
from cafirm.schemas.document import (
    DocumentGroup,
    DocumentHierarchy,
    DocumentResponse,
    DocumentStatusUpdate,
)
from cafirm.schemas.document_slot import (
    SlotActionResult,
    SlotActionsRequest,
    SlotBatchCreate,
    SlotResponse,
    SlotSummary,
)
from cafirm.schemas.firm import FirmResponse, FirmUpdate
from cafirm.schemas.invoice import (
    InvoiceCancelRequest,
    InvoiceCreate,
    InvoiceItemIn,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceStats,
    InvoiceUpdate,
    PaymentCreate,
    PaymentResponse,
)
from cafirm.schemas.service import (
    ServiceAssign,
    ServiceBoard,
    ServiceCreate,
    ServiceResponse,
    ServiceStaffResponse,
    ServiceStats,
    ServiceStatusHistoryResponse,
    ServiceStatusUpdate,
    ServiceUpdate,
)
from cafirm.schemas.service_request import (
    ServiceRequestApprove,
    ServiceRequestConversion,
    ServiceRequestCreate,
    ServiceRequestReject,
    ServiceRequestResponse,
    ServiceRequestStats,
)
from cafirm.schemas.task import TaskCreate, TaskResponse, TaskStatusUpdate, TaskUpdate

__all__ = [
    # Base
    "BaseSchema",
    "APIResponse",
    "PaginatedResponse",
    "ErrorDetail",
    "ErrorResponse",
    "IDMixin",
    "TimestampMixin",
    # Auth and firm
    "LoginRequest",
    "VerifyOTPRequest",
    "ResendOTPRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "ChangePasswordRequest",
    "TokenResponse",
    "TwoFactorChallenge",
    "UserProfile",
    "FirmOnboarding",
    "FirmResponse",
    "FirmUpdate",
    # Accounts
    "AccountResponse",
    "StaffCreate",
    "StaffUpdate",
    "StaffResponse",
    "ClientCreate",
    "ClientUpdate",
    "ClientResponse",
    "ClientListResponse",
    "ManagerAssignment",
    "ClientAssignmentCreate",
    "ClientAssignmentResponse",
    # Work
    "ServiceCreate",
    "ServiceUpdate",
    "ServiceResponse",
    "ServiceStaffResponse",
    "ServiceStatusUpdate",
    "ServiceAssign",
    "ServiceBoard",
    "ServiceStats",
    "ServiceStatusHistoryResponse",
    "TaskCreate",
    "TaskUpdate",
    "TaskStatusUpdate",
    "TaskResponse",
    "ServiceRequestCreate",
    "ServiceRequestApprove",
    "ServiceRequestReject",
    "ServiceRequestResponse",
    "ServiceRequestConversion",
    "ServiceRequestStats",
    # Documents
    "DocumentResponse",
    "DocumentStatusUpdate",
    "DocumentGroup",
    "DocumentHierarchy",
    "SlotBatchCreate",
    "SlotActionsRequest",
    "SlotActionResult",
    "SlotResponse",
    "SlotSummary",
    # Billing
    "InvoiceCancelRequest",
    "InvoiceCreate",
    "InvoiceUpdate",
    "InvoiceItemIn",
    "InvoiceResponse",
    "InvoiceListResponse",
    "InvoiceStats",
    "PaymentCreate",
    "PaymentResponse",
    # Audit
    "ActivityLogResponse",
    "DashboardSummary",
]
