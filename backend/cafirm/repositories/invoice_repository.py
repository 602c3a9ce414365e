"""
Invoice and payment repositories.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cafirm.core.visibility import ResourceKind, UserContext, visibility_clause
from cafirm.models.invoice import Invoice, InvoiceStatus, Payment
from cafirm.repositories.base import MultiTenantRepository


class InvoiceRepository(MultiTenantRepository[Invoice]):
    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(Invoice, db, firm_id)

    async def list_visible(
        self,
        user: UserContext,
        status: InvoiceStatus | None = None,
        client_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Invoice], int]:
        query = select(Invoice).where(visibility_clause(user, ResourceKind.INVOICE))
        if status:
            query = query.where(Invoice.status == status)
        if client_id:
            query = query.where(Invoice.client_id == client_id)
        if date_from:
            query = query.where(Invoice.invoice_date >= date_from)
        if date_to:
            query = query.where(Invoice.invoice_date <= date_to)
        return await self.paginate(
            query.order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc()),
            skip,
            limit,
        )

    async def last_number_for_year(self, year: int) -> str | None:
        """Highest invoice number issued by this firm in the given year."""
        result = await self.db.execute(
            select(func.max(Invoice.invoice_number)).where(
                Invoice.firm_id == self.firm_id,
                Invoice.invoice_number.like(f"INV-{year}-%"),
            )
        )
        return result.scalar_one_or_none()

    async def stats(self, user: UserContext) -> dict[InvoiceStatus, tuple[int, Decimal, Decimal]]:
        """(count, total amount, amount paid) per status."""
        result = await self.db.execute(
            select(
                Invoice.status,
                func.count(),
                func.coalesce(func.sum(Invoice.total_amount), 0),
                func.coalesce(func.sum(Invoice.amount_paid), 0),
            )
            .where(visibility_clause(user, ResourceKind.INVOICE))
            .group_by(Invoice.status)
        )
        return {
            status: (count, Decimal(str(total)), Decimal(str(paid)))
            for status, count, total, paid in result.all()
        }

    async def overdue_candidates(self, today: date) -> list[Invoice]:
        """Sent or partially paid invoices of this firm past their due date."""
        result = await self.db.execute(
            select(Invoice).where(
                Invoice.firm_id == self.firm_id,
                Invoice.status.in_([InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID]),
                Invoice.due_date.is_not(None),
                Invoice.due_date < today,
            )
        )
        return list(result.scalars().all())


class PaymentRepository(MultiTenantRepository[Payment]):
    def __init__(self, db: AsyncSession, firm_id: UUID):
        super().__init__(Payment, db, firm_id)

    async def for_invoice(self, invoice_id: UUID) -> list[Payment]:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.firm_id == self.firm_id, Payment.invoice_id == invoice_id)
            .order_by(Payment.payment_date)
        )
        return list(result.scalars().all())
