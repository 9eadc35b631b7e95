"""
Reminder dispatcher for inactive students.

Sends a rate-limited batch of reminder emails, honouring each student's
opt-out flag and a cooldown between reminders. Per-student failures are
recorded in the batch result and never abort the batch.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from app.infrastructure.observability.logging import get_logger
from app.models.domain.student_domain import InactiveStudent, Student
from app.services.notifications.transports import NotificationError, ReminderTransport

logger = get_logger(__name__)

DEFAULT_COOLDOWN_DAYS = 3
DEFAULT_SEND_DELAY_SECONDS = 1.0


class NotificationDispatcher:
    """Applies the per-student gates and hands sends to a transport."""

    def __init__(
        self,
        transport: ReminderTransport,
        repository: Any,
        cooldown_days: int = DEFAULT_COOLDOWN_DAYS,
        send_delay_seconds: float = DEFAULT_SEND_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.transport = transport
        self.repository = repository
        self.cooldown = timedelta(days=cooldown_days)
        self.send_delay_seconds = send_delay_seconds
        self._sleep = sleep
        self._clock = clock

    @property
    def demo_mode(self) -> bool:
        return not self.transport.delivers

    def in_cooldown(self, student: Student) -> bool:
        if not student.last_reminder_sent:
            return False
        return self._clock() - student.last_reminder_sent < self.cooldown

    async def send_reminder(self, student: Student) -> dict[str, Any]:
        """
        Send one reminder and bump the student's counters on success.

        A delivered reminder stays a success even if the counter write
        fails afterwards; that case is reported through ``counter_error``.

        Raises:
            NotificationError: if the transport fails; counters are untouched
        """
        result = await self.transport.send_reminder(student)
        outcome = {
            "success": True,
            "delivered": result.delivered,
            "demo": not result.delivered,
            "message_id": result.message_id,
            "counter_recorded": True,
            "counter_error": None,
        }

        try:
            await self.repository.record_reminder_sent(student.id)
        except Exception as e:
            logger.error(
                "Reminder sent but counter update failed",
                student_id=student.id,
                error=str(e),
            )
            outcome["counter_recorded"] = False
            outcome["counter_error"] = str(e)

        return outcome

    async def send_bulk(self, inactive_students: list[InactiveStudent]) -> dict[str, Any]:
        """
        Send reminders to every inactive student that passes the gates.

        Gate order: student must still exist (else failed), reminders must
        be enabled (else skipped), last reminder must be outside the
        cooldown (else skipped).

        Returns:
            dict: total/sent/failed/skipped counts, errors, and whether
            sends were actually delivered
        """
        results: dict[str, Any] = {
            "total": len(inactive_students),
            "sent": 0,
            "failed": 0,
            "skipped": 0,
            "errors": [],
            "delivered": 0,
            "demo_mode": self.demo_mode,
        }

        logger.info(
            "Sending reminder emails",
            inactive_count=len(inactive_students),
            transport=self.transport.name,
        )

        for position, inactive in enumerate(inactive_students, 1):
            try:
                student = await self.repository.get_student(inactive.id)
            except Exception as e:
                logger.error("Failed to load student for reminder", student_id=inactive.id, error=str(e))
                results["failed"] += 1
                results["errors"].append({"student": inactive.name, "error": str(e)})
                continue

            if student is None:
                results["failed"] += 1
                results["errors"].append({"student": inactive.name, "error": "Student not found"})
                continue

            if not student.email_reminders_enabled:
                logger.debug("Reminders disabled, skipping", student_id=student.id)
                results["skipped"] += 1
                continue

            if self.in_cooldown(student):
                logger.debug(
                    "Reminder sent recently, skipping",
                    student_id=student.id,
                    last_reminder_sent=student.last_reminder_sent.isoformat(),
                )
                results["skipped"] += 1
                continue

            try:
                outcome = await self.send_reminder(student)
                results["sent"] += 1
                if outcome["delivered"]:
                    results["delivered"] += 1
                if not outcome["counter_recorded"]:
                    results["errors"].append(
                        {
                            "student": student.name,
                            "error": outcome["counter_error"],
                            "stage": "record_reminder_sent",
                        }
                    )
            except NotificationError as e:
                results["failed"] += 1
                results["errors"].append({"student": student.name, "error": str(e)})
            except Exception as e:
                logger.error("Unexpected reminder failure", student_id=student.id, error=str(e))
                results["failed"] += 1
                results["errors"].append({"student": student.name, "error": str(e)})

            if position < len(inactive_students):
                await self._sleep(self.send_delay_seconds)

        logger.info(
            "Reminder emails completed",
            sent=results["sent"],
            failed=results["failed"],
            skipped=results["skipped"],
            delivered=results["delivered"],
        )
        return results

    async def send_test_email(self, recipient: str) -> dict[str, Any]:
        """Send a test email through the configured transport."""
        try:
            result = await self.transport.send_test(recipient)
        except NotificationError as e:
            return {"success": False, "error": str(e)}

        return {"success": True, "message_id": result.message_id}

    def get_status(self) -> dict[str, Any]:
        return {
            "is_configured": self.transport.delivers,
            "transport": self.transport.name,
            "cooldown_days": self.cooldown.days,
            "last_check": datetime.now(UTC).isoformat(),
        }
