"""
Invoice tasks.
"""

import asyncio
from datetime import date

import structlog
from celery import shared_task
from sqlalchemy.exc import SQLAlchemyError

from cafirm.db.session import async_session_maker
from cafirm.repositories.firm_repository import FirmRepository
from cafirm.services.invoice_service import InvoiceService

logger = structlog.get_logger()


async def mark_overdue_invoices(today: date | None = None) -> dict:
    """Runs InvoiceService.mark_overdue for every active firm."""
    today = today or date.today()
    total = 0

    async with async_session_maker() as session:
        firms = await FirmRepository(session).get_active()
        for firm in firms:
            try:
                total += await InvoiceService(session, firm.id).mark_overdue(today)
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(
                    "Failed to mark overdue invoices",
                    firm_id=str(firm.id),
                    error=str(e),
                )

    logger.info("Overdue invoice sweep finished", firms=len(firms), marked=total)
    return {"firms_checked": len(firms), "invoices_marked": total}


@shared_task(bind=True)
def mark_overdue_invoices_task(self):
    """
    Marks sent and partially paid invoices past their due date as OVERDUE.

    Runs daily from the beat schedule.
    """
    return asyncio.run(mark_overdue_invoices())
