import smtplib

import pytest
from helpers import make_student

from app.config import Settings
from app.services.notifications import transports
from app.services.notifications.transports import (
    LoggingReminderTransport,
    NotificationError,
    SmtpReminderTransport,
    build_reminder_transport,
    render_reminder_text,
)


def test_placeholder_credentials_select_logging_transport():
    config = Settings(EMAIL_USER="your-email@gmail.com", EMAIL_PASS="secret")

    assert isinstance(build_reminder_transport(config), LoggingReminderTransport)


def test_real_credentials_select_smtp_transport():
    config = Settings(EMAIL_USER="coach@example.com", EMAIL_PASS="secret")

    transport = build_reminder_transport(config)

    assert isinstance(transport, SmtpReminderTransport)
    assert transport.delivers is True


def test_reminder_text_mentions_handle():
    text = render_reminder_text(make_student("1", handle="tourist"))

    assert "tourist" in text


@pytest.mark.asyncio
async def test_smtp_failure_raises_notification_error(monkeypatch):
    class RefusingSMTP:
        def __init__(self, host, port, timeout=None):
            raise smtplib.SMTPConnectError(421, "try later")

    monkeypatch.setattr(transports.smtplib, "SMTP", RefusingSMTP)
    transport = SmtpReminderTransport("smtp.test", 587, "coach@example.com", "secret")

    with pytest.raises(NotificationError) as exc_info:
        await transport.send_reminder(make_student("1"))

    assert exc_info.value.recipient == "1@example.com"


@pytest.mark.asyncio
async def test_smtp_send_returns_message_id(monkeypatch):
    sent = []

    class RecordingSMTP:
        def __init__(self, host, port, timeout=None):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            pass

        def login(self, username, password):
            pass

        def send_message(self, message):
            sent.append(message)

    monkeypatch.setattr(transports.smtplib, "SMTP", RecordingSMTP)
    transport = SmtpReminderTransport("smtp.test", 587, "coach@example.com", "secret")

    result = await transport.send_test("someone@example.com")

    assert result.delivered is True
    assert result.message_id
    assert sent[0]["To"] == "someone@example.com"
