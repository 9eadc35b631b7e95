"""
Schedule controller for the recurring Codeforces sync.

Owns the cron expression and the APScheduler job that fires the sync job.
Start/stop/update are plain method calls made by the HTTP layer or the
worker; status reflects the shared ScheduleState plus the last run report.
"""

from collections.abc import Callable
from datetime import UTC
from typing import Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.infrastructure.observability.logging import get_logger
from app.jobs.schedule_state import InvalidScheduleError, parse_schedule
from app.jobs.sync_job import SyncOrchestrator

logger = get_logger(__name__)

SYNC_JOB_ID = "codeforces_sync"
MISFIRE_GRACE_SECONDS = 300

COMMON_SCHEDULES = {
    "every_hour": "0 * * * *",
    "every_2_hours": "0 */2 * * *",
    "every_6_hours": "0 */6 * * *",
    "daily_2am": "0 2 * * *",
    "daily_midnight": "0 0 * * *",
    "twice_daily": "0 0,12 * * *",
    "weekly": "0 2 * * 0",
}


def _default_scheduler_factory() -> AsyncIOScheduler:
    return AsyncIOScheduler(
        timezone=UTC,
        job_defaults={"max_instances": 1, "coalesce": True},
    )


class ScheduleController:
    """
    Stopped/Running state machine around a single cron job.

    The APScheduler instance is created lazily on the first start() (it
    binds to the running event loop) and kept until shutdown(); stop()
    only removes the job, so a run already executing finishes normally.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        default_schedule: str,
        scheduler_factory: Callable[[], AsyncIOScheduler] = _default_scheduler_factory,
    ):
        self.orchestrator = orchestrator
        self.state = orchestrator.state
        self.default_schedule = default_schedule
        self.state.current_schedule = default_schedule
        self._scheduler_factory = scheduler_factory
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def _ensure_scheduler(self) -> AsyncIOScheduler:
        if self._scheduler is None:
            self._scheduler = self._scheduler_factory()
        if not self._scheduler.running:
            self._scheduler.start()
        return self._scheduler

    async def _scheduled_fire(self) -> None:
        """Job body; nothing may escape or later fires would be affected."""
        logger.info("Scheduled sync started", schedule=self.state.current_schedule)
        try:
            await self.orchestrator.run()
        except Exception:
            logger.exception("Scheduled sync raised unexpectedly")

    def start(self, schedule: str | None = None) -> bool:
        """
        Validate the expression and (re)register the recurring job.

        Raises:
            InvalidScheduleError: expression is malformed; state is untouched
        """
        expression = self.default_schedule if schedule is None else schedule
        trigger = parse_schedule(expression)
        expression = expression.strip()

        self.stop()

        scheduler = self._ensure_scheduler()
        scheduler.add_job(
            self._scheduled_fire,
            trigger=trigger,
            id=SYNC_JOB_ID,
            name="Codeforces data sync",
            replace_existing=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
        )

        self.state.current_schedule = expression
        self.state.is_running = True
        self.state.refresh_next_run()

        logger.info(
            "Sync schedule started",
            schedule=expression,
            next_run_time=self.state.next_run_time.isoformat() if self.state.next_run_time else None,
        )
        return True

    def stop(self) -> None:
        """Remove the recurring job; no-op when already stopped."""
        if self._scheduler is not None:
            try:
                self._scheduler.remove_job(SYNC_JOB_ID)
            except JobLookupError:
                pass

        was_running = self.state.is_running
        self.state.is_running = False
        self.state.refresh_next_run()

        if was_running:
            logger.info("Sync schedule stopped", schedule=self.state.current_schedule)

    def update_schedule(self, schedule: str) -> bool:
        """
        Stop, then start with the new expression.

        Not atomic: if the new expression is invalid the controller stays
        stopped and the previous schedule is not restored.

        Raises:
            InvalidScheduleError: expression is malformed
        """
        self.stop()
        return self.start(schedule)

    async def trigger_sync(self) -> dict[str, Any]:
        """Run a sync now, outside the schedule."""
        logger.info("Manual sync triggered")
        return await self.orchestrator.run()

    def get_status(self) -> dict[str, Any]:
        status = self.state.snapshot()
        status["sync_in_progress"] = self.orchestrator.in_progress
        status["last_run_report"] = self.orchestrator.last_report
        return status

    def shutdown(self) -> None:
        """Stop the schedule and tear down the scheduler (process exit)."""
        self.stop()
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    @staticmethod
    def get_common_schedules() -> dict[str, str]:
        return dict(COMMON_SCHEDULES)


__all__ = ["COMMON_SCHEDULES", "InvalidScheduleError", "ScheduleController"]
