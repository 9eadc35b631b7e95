from datetime import timedelta

import pytest
from helpers import FIXED_NOW, FakeStudentRepository, FakeTransport, make_student

from app.models.domain.student_domain import InactiveStudent
from app.services.notifications.dispatcher import NotificationDispatcher
from app.services.notifications.transports import (
    LoggingReminderTransport,
    NotificationError,
)


def _dispatcher(students, transport=None, sleep=None):
    repository = FakeStudentRepository(students)
    kwargs = {"clock": lambda: FIXED_NOW}
    if sleep is not None:
        kwargs["sleep"] = sleep
    dispatcher = NotificationDispatcher(transport or FakeTransport(), repository, **kwargs)
    return dispatcher, repository


def _inactive(*students):
    return [InactiveStudent.from_student(s) for s in students]


@pytest.mark.asyncio
async def test_opted_out_student_is_skipped(sleep_recorder):
    student = make_student("1", email_reminders_enabled=False)
    transport = FakeTransport()
    dispatcher, repository = _dispatcher([student], transport, sleep_recorder)

    results = await dispatcher.send_bulk(_inactive(student))

    assert results["total"] == 1
    assert results["sent"] == 0
    assert results["failed"] == 0
    assert results["skipped"] == 1
    assert transport.sent == []
    assert repository.reminders == []


@pytest.mark.asyncio
async def test_recent_reminder_is_inside_cooldown(sleep_recorder):
    recent = make_student("recent", last_reminder_sent=FIXED_NOW - timedelta(days=2))
    stale = make_student("stale", last_reminder_sent=FIXED_NOW - timedelta(days=3, minutes=1))
    transport = FakeTransport()
    dispatcher, _ = _dispatcher([recent, stale], transport, sleep_recorder)

    results = await dispatcher.send_bulk(_inactive(recent, stale))

    assert results["skipped"] == 1
    assert results["sent"] == 1
    assert transport.sent == ["stale"]


@pytest.mark.asyncio
async def test_successful_send_updates_counters(sleep_recorder):
    student = make_student("1", reminder_email_count=2)
    dispatcher, repository = _dispatcher([student], sleep=sleep_recorder)

    results = await dispatcher.send_bulk(_inactive(student))

    assert results["sent"] == 1
    assert results["delivered"] == 1
    assert results["demo_mode"] is False
    assert student.reminder_email_count == 3
    assert student.last_reminder_sent == FIXED_NOW


@pytest.mark.asyncio
async def test_missing_student_counts_as_failure(sleep_recorder):
    ghost = make_student("ghost")
    dispatcher, _ = _dispatcher([], sleep=sleep_recorder)

    results = await dispatcher.send_bulk(_inactive(ghost))

    assert results["failed"] == 1
    assert results["errors"] == [{"student": "Student ghost", "error": "Student not found"}]


@pytest.mark.asyncio
async def test_transport_failure_leaves_counters_untouched(sleep_recorder):
    broken = make_student("broken")
    fine = make_student("fine")
    transport = FakeTransport(fail_for={"broken"})
    dispatcher, repository = _dispatcher([broken, fine], transport, sleep_recorder)

    results = await dispatcher.send_bulk(_inactive(broken, fine))

    assert results["failed"] == 1
    assert results["sent"] == 1
    assert "SMTP delivery failed" in results["errors"][0]["error"]
    assert broken.reminder_email_count == 0
    assert broken.last_reminder_sent is None
    assert repository.reminders == ["fine"]


@pytest.mark.asyncio
async def test_logging_transport_counts_as_sent_but_not_delivered(sleep_recorder):
    student = make_student("1")
    dispatcher, repository = _dispatcher([student], LoggingReminderTransport(), sleep_recorder)

    results = await dispatcher.send_bulk(_inactive(student))

    assert results["sent"] == 1
    assert results["delivered"] == 0
    assert results["demo_mode"] is True
    assert repository.reminders == ["1"]


@pytest.mark.asyncio
async def test_pause_between_sends_only(sleep_recorder):
    students = [make_student(str(i)) for i in range(3)]
    dispatcher, _ = _dispatcher(students, sleep=sleep_recorder)

    await dispatcher.send_bulk(_inactive(*students))

    assert sleep_recorder.calls == [1.0, 1.0]


@pytest.mark.asyncio
async def test_send_reminder_propagates_transport_error():
    student = make_student("1")
    dispatcher, repository = _dispatcher([student], FakeTransport(fail_for={"1"}))

    with pytest.raises(NotificationError):
        await dispatcher.send_reminder(student)

    assert repository.reminders == []


@pytest.mark.asyncio
async def test_test_email_requires_real_transport():
    dispatcher, _ = _dispatcher([], LoggingReminderTransport())

    result = await dispatcher.send_test_email("coach@example.com")

    assert result["success"] is False
    assert dispatcher.get_status()["is_configured"] is False


@pytest.mark.asyncio
async def test_counter_write_failure_keeps_delivered_reminder_as_sent(sleep_recorder):
    student = make_student("1")
    transport = FakeTransport()
    dispatcher, repository = _dispatcher([student], transport, sleep_recorder)
    repository.record_error = RuntimeError("connection lost")

    results = await dispatcher.send_bulk(_inactive(student))

    assert transport.sent == ["1"]
    assert results["sent"] == 1
    assert results["failed"] == 0
    assert results["errors"] == [
        {"student": "Student 1", "error": "connection lost", "stage": "record_reminder_sent"}
    ]


@pytest.mark.asyncio
async def test_counter_write_failure_is_reported_on_single_send():
    student = make_student("1")
    dispatcher, repository = _dispatcher([student])
    repository.record_error = RuntimeError("connection lost")

    outcome = await dispatcher.send_reminder(student)

    assert outcome["success"] is True
    assert outcome["counter_recorded"] is False
    assert outcome["counter_error"] == "connection lost"


@pytest.mark.asyncio
async def test_student_lookup_error_counts_as_failure(sleep_recorder):
    student = make_student("1")
    transport = FakeTransport()
    dispatcher, repository = _dispatcher([student], transport, sleep_recorder)
    repository.get_error = RuntimeError("store unavailable")

    results = await dispatcher.send_bulk(_inactive(student))

    assert results["failed"] == 1
    assert results["sent"] == 0
    assert results["errors"] == [{"student": "Student 1", "error": "store unavailable"}]
    assert transport.sent == []
