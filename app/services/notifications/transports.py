"""
Reminder email transports.

Two interchangeable delivery strategies picked once at startup:
SMTP delivery when credentials are configured, and a logging transport
that records what would have been sent when they are not.
"""

import asyncio
import html
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

from app.config import Settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.student_domain import Student

logger = get_logger(__name__)

REMINDER_SUBJECT = "Time to get back to coding!"
TEST_SUBJECT = "Email Service Test"
SMTP_TIMEOUT_SECONDS = 30


class NotificationError(Exception):
    """Delivery of a reminder email failed."""

    def __init__(self, message: str, recipient: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.recipient = recipient
        self.recoverable = recoverable


@dataclass(slots=True)
class DeliveryResult:
    """Outcome of a send that did not raise."""

    delivered: bool
    message_id: str | None = None


def render_reminder_text(student: Student, now: datetime | None = None) -> str:
    """Plain-text reminder body."""
    now = now or datetime.now(UTC)
    solved = student.problem_stats.total_solved if student.problem_stats else 0

    if student.last_reminder_sent:
        days_since = (now - student.last_reminder_sent).days
        footer = f"This is reminder #{student.reminder_email_count + 1} (last sent {days_since} days ago)."
    else:
        footer = f"This is reminder #{student.reminder_email_count + 1} (first reminder)."

    return "\n".join(
        [
            f"Hi {student.name},",
            "",
            "We noticed you haven't made any submissions on Codeforces in the last 7 days.",
            "Don't let your coding momentum slow down!",
            "",
            "Your current stats:",
            f"  Codeforces handle: {student.codeforces_handle}",
            f"  Current rating: {student.current_rating or 'Not set'}",
            f"  Max rating: {student.max_rating or 'Not set'}",
            f"  Problems solved: {solved}",
            "",
            "Solve one or two problems today to restart your streak:",
            "https://codeforces.com/problemset",
            "",
            "Happy coding!",
            "Student Progress Management Team",
            "",
            footer,
            "Don't want these reminders? Contact your instructor to disable them.",
        ]
    )


def render_reminder_html(student: Student, now: datetime | None = None) -> str:
    """HTML reminder body built from the plain-text version."""
    paragraphs = render_reminder_text(student, now).split("\n\n")
    body = "".join(f"<p>{html.escape(p).replace(chr(10), '<br>')}</p>" for p in paragraphs)
    return f"<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif\">{body}</body></html>"


class ReminderTransport(ABC):
    """Delivery strategy for reminder emails."""

    name: str = "base"
    delivers: bool = False

    @abstractmethod
    async def send_reminder(self, student: Student) -> DeliveryResult:
        """Send a reminder; raises NotificationError on failure."""

    @abstractmethod
    async def send_test(self, recipient: str) -> DeliveryResult:
        """Send a test message; raises NotificationError on failure."""


class SmtpReminderTransport(ReminderTransport):
    """Delivers reminders over SMTP with STARTTLS."""

    name = "smtp"
    delivers = True

    def __init__(self, host: str, port: int, username: str, password: str):
        self.host = host
        self.port = port
        self.username = username
        self.password = password

    def _build_message(self, recipient: str, subject: str, text: str, html: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = self.username
        message["To"] = recipient
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))
        return message

    def _deliver(self, message: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS) as server:
            server.starttls()
            server.login(self.username, self.password)
            server.send_message(message)

    async def _send(self, message: MIMEMultipart) -> DeliveryResult:
        recipient = message["To"]
        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP delivery failed", recipient=recipient, error=str(e))
            raise NotificationError(f"SMTP delivery failed: {e}", recipient=recipient) from e

        return DeliveryResult(delivered=True, message_id=message.get("Message-ID"))

    async def send_reminder(self, student: Student) -> DeliveryResult:
        message = self._build_message(
            student.email,
            REMINDER_SUBJECT,
            render_reminder_text(student),
            render_reminder_html(student),
        )
        result = await self._send(message)
        logger.info("Reminder email sent", student_id=student.id, recipient=student.email)
        return result

    async def send_test(self, recipient: str) -> DeliveryResult:
        timestamp = datetime.now(UTC).isoformat()
        text = (
            "This is a test email to verify that the email service is working correctly.\n"
            f"Timestamp: {timestamp}"
        )
        message = self._build_message(recipient, TEST_SUBJECT, text, f"<p>{text}</p>")
        return await self._send(message)


class LoggingReminderTransport(ReminderTransport):
    """Logs reminders instead of delivering them (no credentials configured)."""

    name = "logging"
    delivers = False

    async def send_reminder(self, student: Student) -> DeliveryResult:
        logger.info(
            "Email delivery not configured, reminder logged only",
            student_id=student.id,
            recipient=student.email,
            subject=REMINDER_SUBJECT,
        )
        return DeliveryResult(delivered=False)

    async def send_test(self, recipient: str) -> DeliveryResult:
        raise NotificationError("Email service not configured", recipient=recipient, recoverable=False)


def build_reminder_transport(config: Settings) -> ReminderTransport:
    """Pick the transport from configuration presence."""
    if config.email_configured():
        logger.info("Email service configured", host=config.SMTP_HOST, port=config.SMTP_PORT)
        return SmtpReminderTransport(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.EMAIL_USER,
            password=config.EMAIL_PASS,
        )

    logger.info("Email credentials not configured, reminders will be logged only")
    return LoggingReminderTransport()
