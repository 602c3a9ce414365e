"""
Notification tasks.

Due date reminders and e-mail delivery with retries.
"""

import asyncio
from datetime import date, timedelta

import structlog
from celery import shared_task
from sqlalchemy.exc import SQLAlchemyError

from cafirm.core.config import settings
from cafirm.core.exceptions import EmailDeliveryError
from cafirm.db.session import async_session_maker
from cafirm.models.accounts import UserRole
from cafirm.repositories.account_repository import AccountRepository
from cafirm.repositories.firm_repository import FirmRepository
from cafirm.repositories.service_repository import ServiceRepository
from cafirm.services.email_service import EmailService, OutgoingEmail

logger = structlog.get_logger()


async def send_due_service_reminders(today: date | None = None, email_service: EmailService | None = None) -> dict:
    """E-mails clients whose open services fall due within SERVICE_REMINDER_DAYS."""
    today = today or date.today()
    until = today + timedelta(days=settings.SERVICE_REMINDER_DAYS)
    email_service = email_service or EmailService()
    sent = 0

    async with async_session_maker() as session:
        firms = await FirmRepository(session).get_active()
        for firm in firms:
            try:
                services = await ServiceRepository(session, firm.id).due_between(today, until)
                clients = AccountRepository(UserRole.CLIENT, session, firm.id)
                for service in services:
                    client = await clients.get_active(service.client_id)
                    if client is None:
                        continue
                    message = email_service.service_due_email(
                        client.email,
                        client.name,
                        service.title,
                        service.due_date,
                    )
                    if await email_service.send_safely(message):
                        sent += 1
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to send due reminders",
                    firm_id=str(firm.id),
                    error=str(e),
                )

    logger.info("Due reminders processed", firms=len(firms), sent=sent)
    return {"firms_checked": len(firms), "reminders_sent": sent}


@shared_task(bind=True)
def send_due_service_reminders_task(self):
    """Runs daily from the beat schedule."""
    return asyncio.run(send_due_service_reminders())


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_email_task(self, to: str, subject: str, html: str, text: str):
    """
    Sends one e-mail outside the request cycle.

    SMTP failures are retried up to three times.
    """
    message = OutgoingEmail(to=to, subject=subject, html=html, text=text)
    try:
        delivered = asyncio.run(EmailService().send(message))
    except EmailDeliveryError as e:
        logger.warning("E-mail task failed, retrying", to=to, attempt=self.request.retries + 1)
        raise self.retry(exc=e)

    return {"status": "sent" if delivered else "logged"}
