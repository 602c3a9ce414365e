"""
Firm schemas.
"""

from pydantic import EmailStr, Field

from cafirm.schemas.base import BaseSchema, IDMixin, TimestampMixin


class FirmUpdate(BaseSchema):
    name: str | None = Field(None, min_length=2, max_length=255)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    gstin: str | None = None
    pan: str | None = None


class FirmResponse(BaseSchema, IDMixin, TimestampMixin):
    name: str
    email: str
    phone: str | None = None
    address: str | None = None
    gstin: str | None = None
    pan: str | None = None
    is_active: bool
