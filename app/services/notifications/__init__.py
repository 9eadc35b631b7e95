"""
Reminder emails for students who stopped submitting.
"""

from app.services.notifications.dispatcher import NotificationDispatcher
from app.services.notifications.transports import (
    LoggingReminderTransport,
    NotificationError,
    ReminderTransport,
    SmtpReminderTransport,
    build_reminder_transport,
)

__all__ = [
    "NotificationDispatcher",
    "NotificationError",
    "ReminderTransport",
    "SmtpReminderTransport",
    "LoggingReminderTransport",
    "build_reminder_transport",
]
