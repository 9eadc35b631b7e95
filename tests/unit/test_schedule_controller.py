from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from helpers import FIXED_NOW

from app.jobs.schedule_controller import (
    COMMON_SCHEDULES,
    SYNC_JOB_ID,
    ScheduleController,
)
from app.jobs.schedule_state import (
    InvalidScheduleError,
    ScheduleState,
    compute_next_run,
    parse_schedule,
)


def _controller(scheduler=None, orchestrator=None):
    if orchestrator is None:
        orchestrator = AsyncMock()
        orchestrator.state = ScheduleState(current_schedule="0 2 * * *")
        orchestrator.in_progress = False
        orchestrator.last_report = None
    factory = (lambda: scheduler) if scheduler is not None else None
    kwargs = {"scheduler_factory": factory} if factory else {}
    return ScheduleController(orchestrator, default_schedule="0 2 * * *", **kwargs)


@pytest.mark.parametrize(
    "expression",
    ["", "   ", None, "not a cron", "61 * * * *", "* * * *", "0 2 * * * *"],
)
def test_parse_schedule_rejects_invalid_expressions(expression):
    with pytest.raises(InvalidScheduleError):
        parse_schedule(expression)


def test_compute_next_run_uses_standard_cron_semantics():
    assert compute_next_run("0 2 * * *", FIXED_NOW) == datetime(2026, 10, 20, 2, 0, tzinfo=UTC)
    assert compute_next_run("0 */6 * * *", FIXED_NOW) == datetime(2026, 10, 19, 18, 0, tzinfo=UTC)


def test_every_preset_is_a_valid_schedule():
    assert len(ScheduleController.get_common_schedules()) == len(COMMON_SCHEDULES) == 7
    for expression in COMMON_SCHEDULES.values():
        parse_schedule(expression)


def test_start_registers_job_and_reports_next_run(fake_scheduler):
    controller = _controller(fake_scheduler)

    assert controller.start("0 */2 * * *") is True

    status = controller.get_status()
    assert status["is_running"] is True
    assert status["current_schedule"] == "0 */2 * * *"
    assert controller.state.next_run_time > datetime.now(UTC)
    assert SYNC_JOB_ID in fake_scheduler.jobs
    assert fake_scheduler.running is True


def test_start_without_schedule_uses_default(fake_scheduler):
    controller = _controller(fake_scheduler)

    controller.start()

    assert controller.state.current_schedule == "0 2 * * *"


def test_invalid_start_leaves_previous_state(fake_scheduler):
    controller = _controller(fake_scheduler)
    controller.start("0 * * * *")
    before = controller.get_status()

    with pytest.raises(InvalidScheduleError):
        controller.start("every tuesday")

    assert controller.get_status() == before
    assert SYNC_JOB_ID in fake_scheduler.jobs


def test_invalid_update_leaves_scheduler_stopped(fake_scheduler):
    controller = _controller(fake_scheduler)
    controller.start("0 * * * *")

    with pytest.raises(InvalidScheduleError):
        controller.update_schedule("99 99 * * *")

    status = controller.get_status()
    assert status["is_running"] is False
    assert status["next_run_time"] is None
    assert SYNC_JOB_ID not in fake_scheduler.jobs


def test_valid_update_replaces_schedule(fake_scheduler):
    controller = _controller(fake_scheduler)
    controller.start("0 * * * *")

    controller.update_schedule("0 0 * * *")

    assert controller.state.current_schedule == "0 0 * * *"
    assert controller.is_running is True
    assert list(fake_scheduler.jobs) == [SYNC_JOB_ID]


def test_stop_is_idempotent(fake_scheduler):
    controller = _controller(fake_scheduler)

    controller.stop()
    controller.start()
    controller.stop()
    controller.stop()

    assert controller.is_running is False
    assert controller.state.next_run_time is None
    assert fake_scheduler.jobs == {}
    assert fake_scheduler.shutdown_called is False


def test_shutdown_tears_down_scheduler(fake_scheduler):
    controller = _controller(fake_scheduler)
    controller.start()

    controller.shutdown()

    assert fake_scheduler.shutdown_called is True
    assert controller.is_running is False


@pytest.mark.asyncio
async def test_scheduled_fire_swallows_run_errors(fake_scheduler):
    controller = _controller(fake_scheduler)
    controller.orchestrator.run.side_effect = RuntimeError("boom")

    await controller._scheduled_fire()

    controller.orchestrator.run.assert_awaited_once()


@pytest.mark.asyncio
async def test_trigger_sync_returns_report(fake_scheduler):
    controller = _controller(fake_scheduler)
    controller.orchestrator.run.return_value = {"success": True, "total": 0}

    assert await controller.trigger_sync() == {"success": True, "total": 0}


@pytest.mark.asyncio
async def test_real_scheduler_registers_cron_job():
    scheduler = AsyncIOScheduler(timezone=UTC)
    controller = _controller(scheduler)

    try:
        controller.start("0 2 * * *")
        job = scheduler.get_job(SYNC_JOB_ID)

        assert job is not None
        assert job.next_run_time == controller.state.next_run_time

        controller.stop()
        assert scheduler.get_job(SYNC_JOB_ID) is None
        assert scheduler.running is True
    finally:
        controller.shutdown()
