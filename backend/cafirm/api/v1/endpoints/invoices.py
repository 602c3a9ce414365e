"""
Invoice and payment endpoints.
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from cafirm.core.dependencies import CurrentUser, DBSession
from cafirm.models.invoice import InvoiceStatus
from cafirm.schemas.base import APIResponse, PaginatedResponse, page_number
from cafirm.schemas.invoice import (
    InvoiceCancelRequest,
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceStats,
    InvoiceUpdate,
    PaymentCreate,
)
from cafirm.services.invoice_service import InvoiceService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post(
    "",
    response_model=APIResponse[InvoiceResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    data: InvoiceCreate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[InvoiceResponse]:
    """
    Creates a DRAFT invoice.

    The number (INV-YYYY-NNNNN) and all totals are computed server side.
    """
    invoice = await InvoiceService(db, current_user.firm_id).create_invoice(current_user, data)
    return APIResponse(
        success=True,
        data=InvoiceResponse.model_validate(invoice),
        message=f"Invoice {invoice.invoice_number} created",
    )


@router.get("", response_model=PaginatedResponse[InvoiceListResponse])
async def list_invoices(
    db: DBSession,
    current_user: CurrentUser,
    status_filter: InvoiceStatus | None = Query(None, alias="status"),
    client_id: UUID | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[InvoiceListResponse]:
    invoices, total = await InvoiceService(db, current_user.firm_id).list_invoices(
        current_user,
        status=status_filter,
        client_id=client_id,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse(
        success=True,
        data=[InvoiceListResponse.model_validate(i) for i in invoices],
        total=total,
        page=page_number(skip, limit),
        page_size=limit,
    )


@router.get("/stats", response_model=APIResponse[InvoiceStats])
async def invoice_stats(db: DBSession, current_user: CurrentUser) -> APIResponse[InvoiceStats]:
    stats = await InvoiceService(db, current_user.firm_id).invoice_stats(current_user)
    return APIResponse(success=True, data=stats)


@router.get("/{invoice_id}", response_model=APIResponse[InvoiceResponse])
async def get_invoice(
    invoice_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[InvoiceResponse]:
    invoice = await InvoiceService(db, current_user.firm_id).get_invoice(current_user, invoice_id)
    return APIResponse(success=True, data=InvoiceResponse.model_validate(invoice))


@router.patch("/{invoice_id}", response_model=APIResponse[InvoiceResponse])
async def update_invoice(
    invoice_id: UUID,
    data: InvoiceUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[InvoiceResponse]:
    """Only DRAFT invoices can be edited."""
    invoice = await InvoiceService(db, current_user.firm_id).update_invoice(current_user, invoice_id, data)
    return APIResponse(
        success=True,
        data=InvoiceResponse.model_validate(invoice),
        message="Invoice updated",
    )


@router.post("/{invoice_id}/send", response_model=APIResponse[InvoiceResponse])
async def send_invoice(
    invoice_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[InvoiceResponse]:
    invoice = await InvoiceService(db, current_user.firm_id).send_invoice(current_user, invoice_id)
    return APIResponse(
        success=True,
        data=InvoiceResponse.model_validate(invoice),
        message="Invoice sent",
    )


@router.post("/{invoice_id}/payments", response_model=APIResponse[InvoiceResponse])
async def record_payment(
    invoice_id: UUID,
    data: PaymentCreate,
    db: DBSession,
    current_user: CurrentUser,
) -> APIResponse[InvoiceResponse]:
    invoice = await InvoiceService(db, current_user.firm_id).record_payment(current_user, invoice_id, data)
    return APIResponse(
        success=True,
        data=InvoiceResponse.model_validate(invoice),
        message="Payment recorded",
    )


@router.post("/{invoice_id}/cancel", response_model=APIResponse[InvoiceResponse])
async def cancel_invoice(
    invoice_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
    data: InvoiceCancelRequest | None = None,
) -> APIResponse[InvoiceResponse]:
    invoice = await InvoiceService(db, current_user.firm_id).cancel_invoice(
        current_user, invoice_id, data.reason if data else None
    )
    return APIResponse(
        success=True,
        data=InvoiceResponse.model_validate(invoice),
        message="Invoice cancelled",
    )
