"""
Application exceptions.

Every error raised by services derives from CAFirmException so the HTTP layer
can translate it into the standard error envelope.
"""

from typing import Any
from uuid import UUID


class CAFirmException(Exception):
    """Base exception for the practice API."""

    def __init__(
        self,
        message: str,
        code: str = "CAFIRM_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


# === Authentication ===

class AuthenticationError(CAFirmException):
    """Authentication failed."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="AUTH_ERROR")


class TokenExpiredError(AuthenticationError):
    """JWT has expired."""

    def __init__(self):
        super().__init__("Token expired")
        self.code = "TOKEN_EXPIRED"


class InvalidTokenError(AuthenticationError):
    """JWT could not be decoded or points at no active account."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class AccountLockedError(AuthenticationError):
    """Too many failed logins, the account is temporarily locked."""

    def __init__(self, minutes_remaining: int):
        super().__init__(
            f"Account is locked. Try again in {minutes_remaining} minute(s)"
        )
        self.code = "ACCOUNT_LOCKED"
        self.details = {"minutes_remaining": minutes_remaining}


class InvalidOTPError(AuthenticationError):
    """One-time password is wrong or expired."""

    def __init__(self, message: str = "Invalid or expired OTP"):
        super().__init__(message)
        self.code = "INVALID_OTP"


# === Authorization ===

class AuthorizationError(CAFirmException):
    """Caller may not perform this action."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, code="AUTHORIZATION_ERROR")


class InsufficientPermissionsError(AuthorizationError):
    """The caller's role does not allow the action."""

    def __init__(self, action: str):
        super().__init__(f"Insufficient permissions: {action}")
        self.code = "INSUFFICIENT_PERMISSIONS"


class TenantAccessError(AuthorizationError):
    """Attempt to reach data that belongs to another firm."""

    def __init__(self):
        super().__init__("Resource does not belong to your firm")
        self.code = "TENANT_ACCESS_DENIED"


# === Resources ===

class ResourceNotFoundError(CAFirmException):
    """Resource does not exist (or is outside the caller's scope)."""

    def __init__(
        self,
        resource_type: str,
        resource_id: UUID | str | None = None,
    ):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} with ID {resource_id} not found"
        super().__init__(message, code="NOT_FOUND")
        self.resource_type = resource_type
        self.resource_id = resource_id


class ResourceAlreadyExistsError(CAFirmException):
    """Unique constraint conflict."""

    def __init__(
        self,
        resource_type: str,
        field: str,
        value: str,
    ):
        message = f"{resource_type} with {field}='{value}' already exists"
        super().__init__(message, code="ALREADY_EXISTS")
        self.resource_type = resource_type
        self.field = field
        self.value = value


# === Validation ===

class ValidationError(CAFirmException):
    """Input failed a domain validation."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field
        self.errors = errors or []


# === Business rules ===

class BusinessRuleError(CAFirmException):
    """A business rule was violated."""

    def __init__(self, message: str, rule: str | None = None):
        super().__init__(message, code="BUSINESS_RULE_VIOLATION")
        self.rule = rule


class InvalidStatusTransitionError(BusinessRuleError):
    """Requested service status is not reachable from the current one."""

    def __init__(self, current: str, requested: str, allowed: list[str]):
        super().__init__(
            f"Cannot move service from {current} to {requested}",
            rule="SERVICE_STATUS_TRANSITION",
        )
        self.code = "INVALID_STATUS_TRANSITION"
        self.details = {
            "current_status": current,
            "requested_status": requested,
            "allowed": allowed,
        }


class InvoiceNotEditableError(BusinessRuleError):
    """Only draft invoices may be edited."""

    def __init__(self, invoice_number: str, status: str):
        super().__init__(
            f"Invoice {invoice_number} is {status} and can no longer be edited",
            rule="INVOICE_NOT_EDITABLE",
        )
        self.code = "INVOICE_NOT_EDITABLE"


# === Storage ===

class StorageError(CAFirmException):
    """Local file storage failure."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, code="STORAGE_ERROR")
        self.operation = operation


class FileUploadError(StorageError):
    """The uploaded file could not be stored."""

    def __init__(self, message: str = "Failed to store uploaded file"):
        super().__init__(message, operation="upload")
        self.code = "FILE_UPLOAD_ERROR"


class FileTooLargeError(StorageError):
    def __init__(self, max_size_mb: int, actual_size_mb: float):
        super().__init__(
            f"File too large. Maximum: {max_size_mb}MB, received: {actual_size_mb:.2f}MB",
            operation="upload",
        )
        self.code = "FILE_TOO_LARGE"


class InvalidFileTypeError(StorageError):
    def __init__(self, mime_type: str, allowed_types: list[str]):
        super().__init__(
            f"File type not allowed: {mime_type}. Allowed: {', '.join(allowed_types)}",
            operation="upload",
        )
        self.code = "INVALID_FILE_TYPE"


class StoredFileMissingError(StorageError):
    """Database row exists but no file was found on disk."""

    def __init__(self, storage_path: str):
        super().__init__("File not found on server", operation="download")
        self.code = "FILE_MISSING"
        self.storage_path = storage_path


# === External services ===

class ExternalServiceError(CAFirmException):
    """Failure talking to an external service."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service} error: {message}", code="EXTERNAL_SERVICE_ERROR")
        self.service = service


class EmailDeliveryError(ExternalServiceError):
    def __init__(self, message: str):
        super().__init__("smtp", message)
        self.code = "EMAIL_DELIVERY_ERROR"
