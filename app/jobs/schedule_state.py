"""
Cron schedule parsing and the process-wide sync schedule state.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.cron import CronTrigger

from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class InvalidScheduleError(Exception):
    """Schedule expression is not a valid 5-field crontab."""

    def __init__(self, message: str, expression: Any = None):
        super().__init__(message)
        self.expression = expression


def parse_schedule(expression: Any) -> CronTrigger:
    """
    Validate a crontab expression and build its UTC trigger.

    Raises:
        InvalidScheduleError: if the expression is empty or malformed
    """
    if not isinstance(expression, str) or not expression.strip():
        raise InvalidScheduleError("Schedule expression is required", expression=expression)

    try:
        return CronTrigger.from_crontab(expression.strip(), timezone=UTC)
    except (ValueError, TypeError) as e:
        raise InvalidScheduleError(f"Invalid cron expression: {e}", expression=expression) from e


def compute_next_run(expression: str, now: datetime | None = None) -> datetime | None:
    """Next fire time strictly after ``now`` under standard cron semantics."""
    trigger = parse_schedule(expression)
    # the trigger treats ``now`` itself as a candidate fire time
    start = (now or datetime.now(UTC)) + timedelta(microseconds=1)
    return trigger.get_next_fire_time(None, start)


@dataclass
class ScheduleState:
    """Shared by the schedule controller and the sync job; lives in memory only."""

    current_schedule: str
    is_running: bool = False
    sync_in_progress: bool = False
    last_run_time: datetime | None = None
    next_run_time: datetime | None = None

    def refresh_next_run(self, now: datetime | None = None) -> None:
        if not self.is_running:
            self.next_run_time = None
            return

        try:
            self.next_run_time = compute_next_run(self.current_schedule, now)
        except InvalidScheduleError as e:
            logger.error("Error calculating next run time", schedule=self.current_schedule, error=str(e))
            self.next_run_time = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "current_schedule": self.current_schedule,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "next_run_time": self.next_run_time.isoformat() if self.next_run_time else None,
            "sync_in_progress": self.sync_in_progress,
        }
