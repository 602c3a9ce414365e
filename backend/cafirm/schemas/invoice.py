"""
Invoice schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from cafirm.models.invoice import InvoiceStatus, PaymentMethod
from cafirm.schemas.base import BaseSchema, IDMixin, TimestampMixin


class InvoiceItemIn(BaseSchema):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit_price: Decimal = Field(..., ge=0)
    tax_rate: Decimal | None = Field(None, ge=0, le=100)


class InvoiceItemResponse(InvoiceItemIn, IDMixin):
    amount: Decimal


class InvoiceCreate(BaseSchema):
    client_id: UUID
    service_id: UUID | None = None
    invoice_date: date | None = None
    due_date: date | None = None
    discount: Decimal = Field(Decimal("0"), ge=0)
    notes: str | None = None
    items: list[InvoiceItemIn] = Field(..., min_length=1)


class InvoiceUpdate(BaseSchema):
    """Draft edits. Sending items replaces all existing items."""

    due_date: date | None = None
    discount: Decimal | None = Field(None, ge=0)
    notes: str | None = None
    items: list[InvoiceItemIn] | None = Field(None, min_length=1)


class PaymentCreate(BaseSchema):
    amount: Decimal = Field(..., gt=0)
    payment_date: date | None = None
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: str | None = Field(None, max_length=100)
    notes: str | None = None


class PaymentResponse(BaseSchema, IDMixin):
    invoice_id: UUID
    client_id: UUID
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    reference: str | None = None
    notes: str | None = None
    recorded_by_id: UUID | None = None
    created_at: datetime


class InvoiceResponse(BaseSchema, IDMixin, TimestampMixin):
    firm_id: UUID
    client_id: UUID
    service_id: UUID | None = None
    invoice_number: str
    invoice_date: date
    due_date: date | None = None
    subtotal: Decimal
    discount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: InvoiceStatus
    notes: str | None = None
    sent_at: datetime | None = None
    paid_at: datetime | None = None
    items: list[InvoiceItemResponse] = []
    payments: list[PaymentResponse] = []


class InvoiceListResponse(BaseSchema):
    id: UUID
    client_id: UUID
    invoice_number: str
    invoice_date: date
    due_date: date | None = None
    total_amount: Decimal
    amount_paid: Decimal
    status: InvoiceStatus


class InvoiceStats(BaseSchema):
    total: int
    by_status: dict[str, int]
    outstanding_amount: Decimal
    collected_amount: Decimal


class InvoiceCancelRequest(BaseSchema):
    reason: str | None = Field(None, max_length=1000)
