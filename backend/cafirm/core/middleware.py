"""
Exception handling and request context middleware.

Turns exceptions into the standard JSON error envelope.
"""

import traceback
import uuid

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from cafirm.core.config import settings
from cafirm.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BusinessRuleError,
    CAFirmException,
    ExternalServiceError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    StorageError,
    StoredFileMissingError,
    ValidationError,
)

logger = structlog.get_logger()

# Checked in order, so subclasses come before their parents
STATUS_MAP: list[tuple[type[CAFirmException], int]] = [
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ResourceNotFoundError, status.HTTP_404_NOT_FOUND),
    (StoredFileMissingError, status.HTTP_404_NOT_FOUND),
    (ResourceAlreadyExistsError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (BusinessRuleError, status.HTTP_400_BAD_REQUEST),
    (StorageError, status.HTTP_400_BAD_REQUEST),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
]

# Upload validation failures are the caller's fault, the rest of storage is ours
SERVER_SIDE_STORAGE_CODES = {"STORAGE_ERROR", "FILE_UPLOAD_ERROR"}


def status_for(exc: CAFirmException) -> int:
    """Maps an application exception onto an HTTP status code."""
    if isinstance(exc, StorageError) and exc.code in SERVER_SIDE_STORAGE_CODES:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    for exc_type, http_status in STATUS_MAP:
        if isinstance(exc, exc_type):
            return http_status
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
    errors: list | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Builds the standard error envelope."""
    content = {
        "success": False,
        "message": message,
        "error": {
            "code": code,
            "message": message,
        },
    }
    if errors:
        content["errors"] = errors
    if details and (settings.DEBUG or status_code < 500):
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: CAFirmException) -> JSONResponse:
    """Handler for application exceptions."""
    logger.warning(
        "Application exception",
        code=exc.code,
        message=exc.message,
        path=request.url.path,
        details=exc.details,
    )

    status_code = status_for(exc)
    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    return create_error_response(
        status_code=status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
        errors=getattr(exc, "errors", None),
        headers=headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Pydantic request validation errors as a 422 envelope."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    logger.info("Request validation failed", path=request.url.path, errors=errors)
    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="VALIDATION_ERROR",
        message="Validation failed",
        errors=errors,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Framework HTTP errors (404 routes, 405, 401 from HTTPBearer)."""
    return create_error_response(
        status_code=exc.status_code,
        code=f"HTTP_{exc.status_code}",
        message=str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Unique-key violations surface as 409 conflicts."""
    logger.warning("Integrity error", path=request.url.path, error=str(exc.orig))
    return create_error_response(
        status_code=status.HTTP_409_CONFLICT,
        code="ALREADY_EXISTS",
        message="A record with the same unique value already exists",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for anything not raised on purpose."""
    logger.error(
        "Unhandled exception",
        exc_type=type(exc).__name__,
        message=str(exc),
        path=request.url.path,
        traceback=traceback.format_exc() if settings.DEBUG else None,
    )

    message = "Internal server error"
    details = None

    if settings.DEBUG:
        message = str(exc)
        details = {"traceback": traceback.format_exc()}

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="INTERNAL_ERROR",
        message=message,
        details=details,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Registers every exception handler on the application."""
    app.add_exception_handler(CAFirmException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


class RequestContextMiddleware:
    """
    Pure ASGI middleware that binds request context for logging.

    Adds a short request_id to structlog contextvars and to the response
    headers.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())[:8]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=scope.get("path", ""),
            method=scope.get("method", ""),
        )

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_wrapper)
