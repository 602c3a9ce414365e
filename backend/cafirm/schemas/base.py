"""
Shared schemas.
"""

from datetime import datetime
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Base schema with the default configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class TimestampMixin(BaseModel):
    created_at: datetime
    updated_at: datetime


class IDMixin(BaseModel):
    id: UUID


class APIResponse(BaseModel, Generic[T]):
    """
    Standard response envelope.

    Example:
        return APIResponse(success=True, data=client)
    """

    success: bool
    data: T | None = None
    message: str | None = None


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    """Error envelope produced by the exception handlers."""

    success: bool = False
    message: str
    error: ErrorDetail
    errors: list[dict] | None = None


class PaginatedResponse(BaseModel, Generic[T]):
    """Paged list envelope."""

    success: bool = True
    data: list[T]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if self.page_size == 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


def page_number(skip: int, limit: int) -> int:
    return skip // limit + 1 if limit > 0 else 1
