"""
Codeforces sync job.

One run refreshes every student that has a Codeforces handle, strictly one
student at a time with a pause between API calls, then emails reminders to
students with no submissions in the inactivity window. Per-student
failures are recorded in the run report; a run never raises.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from app.infrastructure.observability.logging import get_logger, log_sync_run
from app.jobs.schedule_state import ScheduleState
from app.models.domain.student_domain import InactiveStudent, Student, SyncSnapshot
from app.services.codeforces_service import ExternalFetchError

logger = get_logger(__name__)

# Lookbacks are wider than the dashboard defaults so reminders have enough signal
CONTEST_LOOKBACK_DAYS = 365
PROBLEM_LOOKBACK_DAYS = 90
INACTIVITY_WINDOW_DAYS = 7
INTER_CALL_DELAY_SECONDS = 1.0

ALREADY_IN_PROGRESS_MESSAGE = "Sync already in progress"


class SyncRunReport:
    """Per-run counters and outcome lists."""

    def __init__(self, total: int):
        self.started_at = datetime.now(UTC)
        self._started_monotonic = time.monotonic()
        self.total = total
        self.successful = 0
        self.failed = 0
        self.errors: list[dict] = []
        self.inactive_students: list[InactiveStudent] = []
        self.email_results: dict | None = None

    def record_success(self, student: Student) -> None:
        self.successful += 1
        logger.debug("Student synced", student_id=student.id, handle=student.codeforces_handle)

    def record_failure(self, student: Student, error: Exception) -> None:
        self.failed += 1
        self.errors.append(
            {
                "student_id": student.id,
                "student": student.name,
                "handle": student.codeforces_handle,
                "error": str(error) or type(error).__name__,
            }
        )
        logger.warning(
            "Student sync failed",
            student_id=student.id,
            handle=student.codeforces_handle,
            error=str(error),
            error_type=type(error).__name__,
        )

    def record_inactive(self, student: Student) -> None:
        self.inactive_students.append(InactiveStudent.from_student(student))

    @property
    def duration(self) -> float:
        return round(time.monotonic() - self._started_monotonic, 2)

    def to_dict(self) -> dict[str, Any]:
        report = {
            "success": True,
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "errors": self.errors,
            "inactive_students": [s.to_dict() for s in self.inactive_students],
            "duration": self.duration,
            "timestamp": self.started_at.isoformat(),
        }
        if self.email_results is not None:
            report["email_results"] = self.email_results
        return report


class SyncOrchestrator:
    """
    Runs one full sync pass over all students.

    Single-flight: the in-progress flag on the shared ScheduleState is
    checked and set without a lock, which is safe only because runs execute
    on a single event loop.
    """

    def __init__(
        self,
        data_source: Any,
        repository: Any,
        dispatcher: Any,
        state: ScheduleState,
        inter_call_delay_seconds: float = INTER_CALL_DELAY_SECONDS,
        contest_lookback_days: int = CONTEST_LOOKBACK_DAYS,
        problem_lookback_days: int = PROBLEM_LOOKBACK_DAYS,
        inactivity_window_days: int = INACTIVITY_WINDOW_DAYS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.data_source = data_source
        self.repository = repository
        self.dispatcher = dispatcher
        self.state = state
        self.inter_call_delay_seconds = inter_call_delay_seconds
        self.contest_lookback_days = contest_lookback_days
        self.problem_lookback_days = problem_lookback_days
        self.inactivity_window_days = inactivity_window_days
        self._sleep = sleep
        self.last_report: dict[str, Any] | None = None

    @property
    def in_progress(self) -> bool:
        return self.state.sync_in_progress

    async def run(self) -> dict[str, Any]:
        """
        Execute one sync pass.

        Returns:
            dict: the run report; ``success`` is False when another run is
            in progress or the student list could not be loaded
        """
        if self.state.sync_in_progress:
            logger.warning("Sync already in progress, skipping")
            return {"success": False, "skipped": True, "message": ALREADY_IN_PROGRESS_MESSAGE}

        self.state.sync_in_progress = True
        self.state.last_run_time = datetime.now(UTC)
        started = time.monotonic()

        try:
            result = await self._run_pass()
        except Exception as e:
            logger.exception("Critical error during sync", error=str(e))
            result = {
                "success": False,
                "message": str(e),
                "duration": round(time.monotonic() - started, 2),
            }
        finally:
            self.state.sync_in_progress = False
            self.state.refresh_next_run()

        self.last_report = result
        log_sync_run(result)
        return result

    async def _run_pass(self) -> dict[str, Any]:
        students = await self.repository.list_students()
        eligible = [student for student in students if student.has_handle]

        logger.info(
            "Starting bulk sync",
            students=len(eligible),
            skipped_without_handle=len(students) - len(eligible),
        )

        report = SyncRunReport(total=len(eligible))

        for position, student in enumerate(eligible, 1):
            logger.info(
                "Syncing student",
                position=position,
                total=len(eligible),
                student_id=student.id,
                handle=student.codeforces_handle,
            )
            await self._sync_student(student, report)

            if position < len(eligible):
                await self._sleep(self.inter_call_delay_seconds)

        if report.inactive_students:
            report.email_results = await self._notify_inactive(report.inactive_students)

        return report.to_dict()

    async def _sync_student(self, student: Student, report: SyncRunReport) -> None:
        """Fetch, persist and classify one student; failures go into the report."""
        handle = student.codeforces_handle.strip()

        try:
            data = await self.data_source.fetch_comprehensive(
                handle, self.contest_lookback_days, self.problem_lookback_days
            )
            if data is None or data.contest_data is None or data.problem_data is None:
                raise ExternalFetchError("No data received from Codeforces API", handle=handle)

            snapshot = SyncSnapshot.from_comprehensive(data)
            await self.repository.save_sync_snapshot(student.id, snapshot)

        except Exception as e:
            report.record_failure(student, e)
            return

        recent = snapshot.problem_stats.recent_submission_count(self.inactivity_window_days)
        if recent == 0:
            report.record_inactive(student)

        report.record_success(student)

    async def _notify_inactive(self, inactive: list[InactiveStudent]) -> dict[str, Any]:
        try:
            return await self.dispatcher.send_bulk(inactive)
        except Exception as e:
            logger.error("Reminder dispatch failed", error=str(e), inactive=len(inactive))
            return {
                "total": len(inactive),
                "sent": 0,
                "failed": len(inactive),
                "skipped": 0,
                "errors": [{"student": None, "error": str(e)}],
            }
