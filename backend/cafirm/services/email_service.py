"""
E-mail service.

Renders the transactional e-mails (OTP, welcome, password reset, invoice,
service status, due reminders) and sends them over SMTP. Without SMTP
credentials messages are only logged, which is what development and tests
rely on.
"""

import asyncio
import smtplib
import ssl
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from html import escape

import structlog

from cafirm.core.config import settings
from cafirm.core.exceptions import EmailDeliveryError

logger = structlog.get_logger()


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str


def _layout(title: str, body: str) -> str:
    firm = escape(settings.FIRM_NAME)
    return f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #1f2937; max-width: 600px; margin: auto;">
    <div style="background: #1e3a8a; color: #fff; padding: 16px 24px;">
      <h2 style="margin: 0;">{firm}</h2>
    </div>
    <div style="padding: 24px;">
      <h3>{escape(title)}</h3>
      {body}
    </div>
    <div style="padding: 12px 24px; font-size: 12px; color: #6b7280;">
      This is an automated message from {firm}. Please do not reply.
    </div>
  </body>
</html>"""


class EmailService:
    """
    Builds and delivers e-mails.

    Usage:
        await EmailService().send_otp_email("a@b.com", "Asha", "123456")
    """

    def __init__(self):
        self.enabled = settings.email_enabled

    # === DELIVERY ===

    async def send(self, message: OutgoingEmail) -> bool:
        """
        Sends one message. Returns False in mock mode.

        Raises:
            EmailDeliveryError: SMTP refused or failed
        """
        if not self.enabled:
            logger.info(
                "E-mail not configured, message logged only",
                to=message.to,
                subject=message.subject,
                body=message.text,
            )
            return False

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("E-mail delivery failed", to=message.to, subject=message.subject, error=str(e))
            raise EmailDeliveryError(str(e))

        logger.info("E-mail sent", to=message.to, subject=message.subject)
        return True

    async def send_safely(self, message: OutgoingEmail) -> bool:
        """Best-effort send for side effects: failures are logged, not raised."""
        try:
            return await self.send(message)
        except EmailDeliveryError as e:
            logger.warning("Side-effect e-mail dropped", to=message.to, error=e.message)
            return False

    def _deliver(self, message: OutgoingEmail) -> None:
        mime = MIMEMultipart("alternative")
        mime["From"] = formataddr((settings.FIRM_NAME, settings.EMAIL_FROM))
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime.attach(MIMEText(message.text, "plain", "utf-8"))
        mime.attach(MIMEText(message.html, "html", "utf-8"))

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            if settings.SMTP_USE_TLS:
                server.starttls(context=ssl.create_default_context())
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAIL_FROM, [message.to], mime.as_string())

    # === TEMPLATES ===

    def otp_email(self, to: str, name: str, otp: str) -> OutgoingEmail:
        minutes = settings.OTP_EXPIRE_MINUTES
        body = (
            f"<p>Hello {escape(name)},</p>"
            f"<p>Your login verification code is:</p>"
            f'<p style="font-size: 28px; letter-spacing: 6px;"><strong>{otp}</strong></p>'
            f"<p>The code expires in {minutes} minutes.</p>"
        )
        return OutgoingEmail(
            to=to,
            subject="Your login verification code",
            html=_layout("Verification code", body),
            text=f"Hello {name},\nYour verification code is {otp}. It expires in {minutes} minutes.",
        )

    def welcome_email(self, to: str, name: str, role_label: str, temporary_password: str | None) -> OutgoingEmail:
        login_url = f"{settings.FRONTEND_URL}/login"
        password_html = ""
        password_text = ""
        if temporary_password:
            password_html = (
                f"<p>Temporary password: <strong>{escape(temporary_password)}</strong><br>"
                f"You will be asked to change it after your first login.</p>"
            )
            password_text = f"\nTemporary password: {temporary_password}"
        body = (
            f"<p>Hello {escape(name)},</p>"
            f"<p>An account has been created for you as <strong>{escape(role_label)}</strong>.</p>"
            f"<p>Login e-mail: {escape(to)}</p>{password_html}"
            f'<p><a href="{login_url}">Sign in</a></p>'
        )
        return OutgoingEmail(
            to=to,
            subject=f"Welcome to {settings.FIRM_NAME}",
            html=_layout("Your account is ready", body),
            text=f"Hello {name},\nYour {role_label} account is ready. Login: {to}{password_text}\n{login_url}",
        )

    def password_reset_email(self, to: str, name: str, token: str) -> OutgoingEmail:
        reset_url = f"{settings.FRONTEND_URL}/reset-password?token={token}"
        hours = settings.PASSWORD_RESET_EXPIRE_HOURS
        body = (
            f"<p>Hello {escape(name)},</p>"
            f"<p>We received a request to reset your password.</p>"
            f'<p><a href="{reset_url}">Reset password</a></p>'
            f"<p>The link is valid for {hours} hour(s). Ignore this e-mail if you did not ask for it.</p>"
        )
        return OutgoingEmail(
            to=to,
            subject="Password reset request",
            html=_layout("Reset your password", body),
            text=f"Hello {name},\nReset your password: {reset_url}\nValid for {hours} hour(s).",
        )

    def invoice_email(
        self,
        to: str,
        name: str,
        invoice_number: str,
        total_amount: Decimal,
        due_date: date | None,
    ) -> OutgoingEmail:
        due = due_date.isoformat() if due_date else "on receipt"
        body = (
            f"<p>Hello {escape(name)},</p>"
            f"<p>Invoice <strong>{escape(invoice_number)}</strong> has been issued.</p>"
            f"<p>Amount: <strong>INR {total_amount:,.2f}</strong><br>Due: {due}</p>"
        )
        return OutgoingEmail(
            to=to,
            subject=f"Invoice {invoice_number} from {settings.FIRM_NAME}",
            html=_layout("New invoice", body),
            text=f"Hello {name},\nInvoice {invoice_number} for INR {total_amount:,.2f} is due {due}.",
        )

    def service_status_email(
        self,
        to: str,
        name: str,
        service_title: str,
        old_status: str,
        new_status: str,
    ) -> OutgoingEmail:
        old_label = old_status.replace("_", " ").title()
        new_label = new_status.replace("_", " ").title()
        body = (
            f"<p>Hello {escape(name)},</p>"
            f"<p>The status of <strong>{escape(service_title)}</strong> changed "
            f"from {old_label} to <strong>{new_label}</strong>.</p>"
        )
        return OutgoingEmail(
            to=to,
            subject=f"Update on {service_title}",
            html=_layout("Service status update", body),
            text=f"Hello {name},\n{service_title}: {old_label} -> {new_label}",
        )

    def service_due_email(self, to: str, name: str, service_title: str, due_date: date) -> OutgoingEmail:
        body = (
            f"<p>Hello {escape(name)},</p>"
            f"<p><strong>{escape(service_title)}</strong> is due on {due_date.isoformat()}.</p>"
            f"<p>Please share any pending documents so we can complete it on time.</p>"
        )
        return OutgoingEmail(
            to=to,
            subject=f"Reminder: {service_title} due {due_date.isoformat()}",
            html=_layout("Upcoming due date", body),
            text=f"Hello {name},\n{service_title} is due on {due_date.isoformat()}.",
        )

    def service_request_email(
        self,
        to: str,
        name: str,
        request_title: str,
        accepted: bool,
        note: str | None = None,
    ) -> OutgoingEmail:
        outcome = "accepted" if accepted else "declined"
        body = (
            f"<p>Hello {escape(name)},</p>"
            f"<p>Your request <strong>{escape(request_title)}</strong> was {outcome}.</p>"
        )
        text = f"Hello {name},\nYour request {request_title} was {outcome}."
        if note:
            body += f"<p>{escape(note)}</p>"
            text += f"\n{note}"
        return OutgoingEmail(
            to=to,
            subject=f"Your request {request_title} was {outcome}",
            html=_layout("Service request update", body),
            text=text,
        )

    # === SHORTCUTS ===

    async def send_otp_email(self, to: str, name: str, otp: str) -> bool:
        return await self.send(self.otp_email(to, name, otp))

    async def send_welcome_email(self, to: str, name: str, role_label: str, temporary_password: str | None = None) -> bool:
        return await self.send_safely(self.welcome_email(to, name, role_label, temporary_password))

    async def send_password_reset_email(self, to: str, name: str, token: str) -> bool:
        return await self.send_safely(self.password_reset_email(to, name, token))

    async def send_invoice_email(self, to: str, name: str, invoice_number: str, total_amount: Decimal, due_date: date | None) -> bool:
        return await self.send_safely(
            self.invoice_email(to, name, invoice_number, total_amount, due_date)
        )

    async def send_service_status_email(self, to: str, name: str, service_title: str, old_status: str, new_status: str) -> bool:
        return await self.send_safely(
            self.service_status_email(to, name, service_title, old_status, new_status)
        )

    async def send_service_request_email(self, to: str, name: str, request_title: str, accepted: bool, note: str | None = None) -> bool:
        return await self.send_safely(
            self.service_request_email(to, name, request_title, accepted, note)
        )
