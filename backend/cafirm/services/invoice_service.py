"""
Invoice service.

Invoices are created as drafts, sent to the client and settled by one or
more payments. All money arithmetic uses Decimal rounded half-up to paise.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.config import settings
from cafirm.core.exceptions import (
    BusinessRuleError,
    InsufficientPermissionsError,
    InvoiceNotEditableError,
    ResourceNotFoundError,
    ValidationError,
)
from cafirm.core.visibility import ResourceKind, UserContext, ensure_visible
from cafirm.db.base import utcnow
from cafirm.models.accounts import MANAGER_ROLES
from cafirm.models.activity import ActivityAction
from cafirm.models.invoice import (
    OUTSTANDING_STATUSES,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Payment,
)
from cafirm.repositories.account_repository import ClientRepository
from cafirm.repositories.invoice_repository import InvoiceRepository
from cafirm.schemas.invoice import (
    InvoiceCreate,
    InvoiceItemIn,
    InvoiceStats,
    InvoiceUpdate,
    PaymentCreate,
)
from cafirm.services.activity_service import ActivityService
from cafirm.services.email_service import EmailService

logger = structlog.get_logger()

CENT = Decimal("0.01")
ZERO = Decimal("0")

SENDABLE_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.OVERDUE})


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class InvoiceTotals:
    item_amounts: list[Decimal]
    subtotal: Decimal
    discount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def compute_totals(items: list[InvoiceItemIn], discount: Decimal = ZERO) -> InvoiceTotals:
    """
    Invoice totals.

    Tax is charged on (subtotal - discount) at the first item's rate, or
    DEFAULT_GST_RATE when the item has none.
    """
    item_amounts = [money(item.quantity * item.unit_price) for item in items]
    subtotal = money(sum(item_amounts, ZERO))
    discount = money(min(discount, subtotal))

    first_rate = items[0].tax_rate if items else None
    tax_rate = Decimal(str(settings.DEFAULT_GST_RATE)) if first_rate is None else Decimal(first_rate)

    taxable = subtotal - discount
    tax_amount = money(taxable * tax_rate / Decimal("100"))

    return InvoiceTotals(
        item_amounts=item_amounts,
        subtotal=subtotal,
        discount=discount,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        total_amount=money(taxable + tax_amount),
    )


def format_invoice_number(year: int, sequence: int) -> str:
    return f"INV-{year}-{sequence:05d}"


def next_sequence(last_number: str | None) -> int:
    """Sequence after the given invoice number (1 for the first of a year)."""
    if not last_number:
        return 1
    return int(last_number.rsplit("-", 1)[1]) + 1


class InvoiceService:
    """
    Invoicing.

    Reads are scoped through the visibility clause; writes need a manager
    role (super admin, admin or project manager).
    """

    def __init__(
        self,
        db: AsyncSession,
        firm_id: UUID,
        email_service: EmailService | None = None,
    ):
        self._db = db
        self._firm_id = firm_id
        self._repo = InvoiceRepository(db, firm_id)
        self._clients = ClientRepository(db, firm_id)
        self._activity = ActivityService(db, firm_id)
        self._email = email_service or EmailService()

    # === INVOICES ===

    async def create_invoice(self, user: UserContext, data: InvoiceCreate) -> Invoice:
        """Creates a DRAFT invoice and its items in one transaction."""
        self._require_manager(user, "create invoices")

        client = await ensure_visible(self._db, user, ResourceKind.CLIENT, data.client_id)
        if data.service_id:
            service = await ensure_visible(self._db, user, ResourceKind.SERVICE, data.service_id)
            if service.client_id != client.id:
                raise ValidationError("Service belongs to another client", field="service_id")

        invoice_date = data.invoice_date or date.today()
        due_date = data.due_date or invoice_date + timedelta(days=settings.INVOICE_DUE_DAYS)
        if due_date < invoice_date:
            raise ValidationError("Due date cannot be before the invoice date", field="due_date")

        totals = compute_totals(data.items, data.discount)
        last_number = await self._repo.last_number_for_year(invoice_date.year)

        invoice = Invoice(
            client_id=client.id,
            service_id=data.service_id,
            invoice_number=format_invoice_number(invoice_date.year, next_sequence(last_number)),
            invoice_date=invoice_date,
            due_date=due_date,
            notes=data.notes,
            status=InvoiceStatus.DRAFT,
            amount_paid=ZERO,
            created_by_id=user.id,
        )
        self._apply_totals(invoice, totals)
        invoice.items = self._build_items(data.items, totals)
        await self._repo.add(invoice)
        await self._db.commit()

        logger.info(
            "Invoice created",
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            total_amount=str(invoice.total_amount),
        )
        await self._activity.record(
            user,
            ActivityAction.INVOICE_CREATED,
            "invoice",
            invoice.id,
            invoice.invoice_number,
            {"client_id": str(client.id), "total_amount": str(invoice.total_amount)},
        )
        return await self._reload(invoice.id)

    async def get_invoice(self, user: UserContext, invoice_id: UUID) -> Invoice:
        return await ensure_visible(self._db, user, ResourceKind.INVOICE, invoice_id)

    async def list_invoices(
        self,
        user: UserContext,
        status: InvoiceStatus | None = None,
        client_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Invoice], int]:
        return await self._repo.list_visible(
            user,
            status=status,
            client_id=client_id,
            date_from=date_from,
            date_to=date_to,
            skip=skip,
            limit=limit,
        )

    async def update_invoice(
        self,
        user: UserContext,
        invoice_id: UUID,
        data: InvoiceUpdate,
    ) -> Invoice:
        """
        Edits a draft.

        Items, when given, replace the existing ones; totals are recomputed.
        """
        self._require_manager(user, "edit invoices")
        invoice = await self.get_invoice(user, invoice_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise InvoiceNotEditableError(invoice.invoice_number, invoice.status.value)

        update_data = data.model_dump(exclude_unset=True, exclude={"items"})
        if "due_date" in update_data and update_data["due_date"] and update_data["due_date"] < invoice.invoice_date:
            raise ValidationError("Due date cannot be before the invoice date", field="due_date")
        if update_data.get("discount") is None:
            update_data.pop("discount", None)
        for field, value in update_data.items():
            setattr(invoice, field, value)

        if data.items is not None:
            items = data.items
        else:
            items = [
                InvoiceItemIn(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    tax_rate=item.tax_rate,
                )
                for item in invoice.items
            ]

        totals = compute_totals(items, invoice.discount)
        self._apply_totals(invoice, totals)
        if data.items is not None:
            invoice.items = self._build_items(items, totals)
        await self._db.commit()

        await self._activity.record(
            user,
            ActivityAction.INVOICE_UPDATED,
            "invoice",
            invoice.id,
            invoice.invoice_number,
            {"fields": sorted(data.model_dump(exclude_unset=True).keys())},
        )
        return await self._reload(invoice.id)

    async def send_invoice(self, user: UserContext, invoice_id: UUID) -> Invoice:
        """Marks a draft (or overdue invoice) as sent and e-mails the client."""
        self._require_manager(user, "send invoices")
        invoice = await self.get_invoice(user, invoice_id)
        if invoice.status not in SENDABLE_STATUSES:
            raise BusinessRuleError(
                f"Invoice {invoice.invoice_number} cannot be sent while {invoice.status.value}",
                rule="invoice_sendable",
            )

        invoice.status = InvoiceStatus.PARTIALLY_PAID if invoice.amount_paid > ZERO else InvoiceStatus.SENT
        invoice.sent_at = utcnow()
        await self._db.commit()

        logger.info("Invoice sent", invoice_id=str(invoice.id), invoice_number=invoice.invoice_number)
        await self._activity.record(
            user,
            ActivityAction.INVOICE_SENT,
            "invoice",
            invoice.id,
            invoice.invoice_number,
        )

        client = await self._clients.get_by_id(invoice.client_id)
        if client is not None:
            await self._email.send_invoice_email(
                client.email,
                client.name,
                invoice.invoice_number,
                invoice.total_amount,
                invoice.due_date,
            )
        return await self._reload(invoice.id)

    async def record_payment(
        self,
        user: UserContext,
        invoice_id: UUID,
        data: PaymentCreate,
    ) -> Invoice:
        """
        Records money received.

        The amount may not exceed the balance due. A fully paid invoice moves
        to PAID, otherwise to PARTIALLY_PAID.
        """
        self._require_manager(user, "record payments")
        invoice = await self.get_invoice(user, invoice_id)

        if invoice.status not in OUTSTANDING_STATUSES:
            raise BusinessRuleError(
                f"Invoice {invoice.invoice_number} does not accept payments while {invoice.status.value}",
                rule="invoice_payable",
            )

        amount = money(data.amount)
        balance = money(invoice.balance_due)
        if amount > balance:
            raise ValidationError(
                f"Payment of {amount} exceeds the balance due of {balance}",
                field="amount",
            )

        payment = Payment(
            firm_id=self._firm_id,
            client_id=invoice.client_id,
            amount=amount,
            payment_date=data.payment_date or date.today(),
            method=data.method,
            reference=data.reference,
            notes=data.notes,
            recorded_by_id=user.id,
        )
        invoice.payments.append(payment)

        invoice.amount_paid = money(invoice.amount_paid + amount)
        if invoice.amount_paid >= invoice.total_amount:
            invoice.status = InvoiceStatus.PAID
            invoice.paid_at = utcnow()
        else:
            invoice.status = InvoiceStatus.PARTIALLY_PAID
        await self._db.commit()

        logger.info(
            "Payment recorded",
            invoice_id=str(invoice.id),
            amount=str(amount),
            amount_paid=str(invoice.amount_paid),
            status=invoice.status.value,
        )
        await self._activity.record(
            user,
            ActivityAction.PAYMENT_RECORDED,
            "invoice",
            invoice.id,
            invoice.invoice_number,
            {"amount": str(amount), "method": data.method.value, "status": invoice.status.value},
        )
        return await self._reload(invoice.id)

    async def cancel_invoice(
        self,
        user: UserContext,
        invoice_id: UUID,
        reason: str | None = None,
    ) -> Invoice:
        self._require_manager(user, "cancel invoices")
        invoice = await self.get_invoice(user, invoice_id)
        if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            raise BusinessRuleError(
                f"Invoice {invoice.invoice_number} is already {invoice.status.value}",
                rule="invoice_cancellable",
            )

        invoice.status = InvoiceStatus.CANCELLED
        if reason:
            invoice.notes = f"{invoice.notes}\nCancelled: {reason}" if invoice.notes else f"Cancelled: {reason}"
        await self._db.commit()

        logger.info("Invoice cancelled", invoice_id=str(invoice.id))
        await self._activity.record(
            user,
            ActivityAction.INVOICE_CANCELLED,
            "invoice",
            invoice.id,
            invoice.invoice_number,
            {"reason": reason},
        )
        return await self._reload(invoice.id)

    async def invoice_stats(self, user: UserContext) -> InvoiceStats:
        rows = await self._repo.stats(user)
        outstanding = sum(
            (total - paid for status, (_, total, paid) in rows.items() if status in OUTSTANDING_STATUSES),
            ZERO,
        )
        collected = sum((paid for _, _, paid in rows.values()), ZERO)
        return InvoiceStats(
            total=sum(count for count, _, _ in rows.values()),
            by_status={status.value: rows.get(status, (0, ZERO, ZERO))[0] for status in InvoiceStatus},
            outstanding_amount=money(outstanding),
            collected_amount=money(collected),
        )

    async def mark_overdue(self, today: date | None = None) -> int:
        """Moves sent and partially paid invoices past their due date to OVERDUE."""
        invoices = await self._repo.overdue_candidates(today or date.today())
        for invoice in invoices:
            invoice.status = InvoiceStatus.OVERDUE
        await self._db.commit()

        for invoice in invoices:
            await self._activity.record(
                None,
                ActivityAction.INVOICE_UPDATED,
                "invoice",
                invoice.id,
                invoice.invoice_number,
                {"new_status": InvoiceStatus.OVERDUE.value},
            )
        if invoices:
            logger.info("Invoices marked overdue", firm_id=str(self._firm_id), count=len(invoices))
        return len(invoices)

    # === HELPERS ===

    def _require_manager(self, user: UserContext, action: str) -> None:
        if user.role not in MANAGER_ROLES:
            raise InsufficientPermissionsError(action)

    def _build_items(self, items: list[InvoiceItemIn], totals: InvoiceTotals) -> list[InvoiceItem]:
        return [
            InvoiceItem(
                firm_id=self._firm_id,
                position=position,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tax_rate=item.tax_rate,
                amount=amount,
            )
            for position, (item, amount) in enumerate(zip(items, totals.item_amounts))
        ]

    @staticmethod
    def _apply_totals(invoice: Invoice, totals: InvoiceTotals) -> None:
        invoice.subtotal = totals.subtotal
        invoice.discount = totals.discount
        invoice.tax_rate = totals.tax_rate
        invoice.tax_amount = totals.tax_amount
        invoice.total_amount = totals.total_amount

    async def _reload(self, invoice_id: UUID) -> Invoice:
        """Fresh copy with items and payments loaded."""
        result = await self._db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id, Invoice.firm_id == self._firm_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise ResourceNotFoundError("Invoice", invoice_id)
        return invoice
