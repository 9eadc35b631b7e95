"""
Construction and FastAPI access for the sync services.

Everything is built once at process start and stored on ``app.state``;
routes reach it through the ``get_*`` dependencies so tests can swap in
fakes without touching module globals.
"""

from dataclasses import dataclass
from typing import Any

from fastapi import Request

from app.config import Settings, settings
from app.jobs.schedule_controller import ScheduleController
from app.jobs.schedule_state import ScheduleState
from app.jobs.sync_job import SyncOrchestrator
from app.repositories.student_repository import StudentRepository
from app.services.codeforces_service import CodeforcesService
from app.services.notifications import (
    NotificationDispatcher,
    ReminderTransport,
    build_reminder_transport,
)


@dataclass
class SyncServices:
    codeforces: CodeforcesService
    repository: Any
    dispatcher: NotificationDispatcher
    orchestrator: SyncOrchestrator
    controller: ScheduleController


def build_sync_services(
    config: Settings = settings,
    repository: Any = StudentRepository,
    codeforces: CodeforcesService | None = None,
    transport: ReminderTransport | None = None,
) -> SyncServices:
    """Wire client, store, dispatcher, sync job and controller together."""
    codeforces = codeforces or CodeforcesService(
        base_url=config.CODEFORCES_API_BASE_URL,
        timeout=config.CODEFORCES_REQUEST_TIMEOUT,
    )

    dispatcher = NotificationDispatcher(
        transport=transport or build_reminder_transport(config),
        repository=repository,
        cooldown_days=config.REMINDER_COOLDOWN_DAYS,
        send_delay_seconds=config.REMINDER_SEND_DELAY_SECONDS,
    )

    orchestrator = SyncOrchestrator(
        data_source=codeforces,
        repository=repository,
        dispatcher=dispatcher,
        state=ScheduleState(current_schedule=config.SYNC_DEFAULT_SCHEDULE),
        inter_call_delay_seconds=config.SYNC_INTER_CALL_DELAY_SECONDS,
        contest_lookback_days=config.SYNC_CONTEST_LOOKBACK_DAYS,
        problem_lookback_days=config.SYNC_PROBLEM_LOOKBACK_DAYS,
        inactivity_window_days=config.INACTIVITY_WINDOW_DAYS,
    )

    controller = ScheduleController(orchestrator, default_schedule=config.SYNC_DEFAULT_SCHEDULE)

    return SyncServices(
        codeforces=codeforces,
        repository=repository,
        dispatcher=dispatcher,
        orchestrator=orchestrator,
        controller=controller,
    )


def get_sync_services(request: Request) -> SyncServices:
    return request.app.state.sync_services


def get_schedule_controller(request: Request) -> ScheduleController:
    return get_sync_services(request).controller


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return get_sync_services(request).dispatcher
