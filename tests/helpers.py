from datetime import UTC, datetime

from apscheduler.jobstores.base import JobLookupError

from app.models.domain.student_domain import (
    ComprehensiveData,
    ContestData,
    HardestProblem,
    HeatmapDay,
    ProblemStats,
    RatingPoint,
    Student,
)
from app.services.notifications.transports import (
    DeliveryResult,
    NotificationError,
    ReminderTransport,
)

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def make_student(student_id: str, handle: str | None = None, **overrides) -> Student:
    fields = {
        "id": student_id,
        "name": f"Student {student_id}",
        "email": f"{student_id}@example.com",
        "codeforces_handle": handle if handle is not None else f"handle_{student_id}",
    }
    fields.update(overrides)
    return Student(**fields)


def make_problem_stats(heatmap_counts: list[int]) -> ProblemStats:
    heatmap = [
        HeatmapDay(date=f"2026-10-{day + 1:02d}", count=count)
        for day, count in enumerate(heatmap_counts)
    ]
    return ProblemStats(
        total_solved=sum(heatmap_counts),
        average_rating=0,
        average_per_day=0.0,
        hardest_problem=HardestProblem(name="None", rating=0, url=None),
        rating_distribution=[],
        submission_heatmap=heatmap,
    )


def make_comprehensive(
    ratings: list[int] | None = None, heatmap_counts: list[int] | None = None
) -> ComprehensiveData:
    """Ratings are given most recent first, matching the client's ordering."""
    history = [RatingPoint(date=f"2026-09-{i + 1:02d}", rating=r) for i, r in enumerate(ratings or [])]
    return ComprehensiveData(
        contest_data=ContestData(contests=[], rating_history=history),
        problem_data=make_problem_stats(heatmap_counts if heatmap_counts is not None else [1] * 10),
        fetched_at=FIXED_NOW,
    )


class FakeStudentRepository:
    def __init__(self, students: list[Student] | None = None):
        self.students = {s.id: s for s in students or []}
        self.saved: dict = {}
        self.reminders: list[str] = []
        self.list_error: Exception | None = None
        self.get_error: Exception | None = None
        self.save_errors: dict[str, Exception] = {}
        self.record_error: Exception | None = None

    async def list_students(self):
        if self.list_error:
            raise self.list_error
        return list(self.students.values())

    async def get_student(self, student_id):
        if self.get_error:
            raise self.get_error
        return self.students.get(student_id)

    async def save_sync_snapshot(self, student_id, snapshot):
        if student_id in self.save_errors:
            raise self.save_errors[student_id]
        self.saved[student_id] = snapshot

    async def update_ratings(self, student_id, current_rating, max_rating):
        student = self.students.get(student_id)
        if student:
            student.current_rating = current_rating
            student.max_rating = max_rating
        return student

    async def record_reminder_sent(self, student_id):
        if self.record_error:
            raise self.record_error
        self.reminders.append(student_id)
        student = self.students[student_id]
        student.reminder_email_count += 1
        student.last_reminder_sent = FIXED_NOW


class FakeCodeforces:
    def __init__(self, responses: dict | None = None):
        self.responses = responses or {}
        self.calls: list[tuple] = []

    async def fetch_comprehensive(self, handle, contest_days, problem_days):
        self.calls.append((handle, contest_days, problem_days))
        result = self.responses.get(handle) or make_comprehensive()
        if isinstance(result, Exception):
            raise result
        return result


class FakeTransport(ReminderTransport):
    name = "fake"

    def __init__(self, delivers: bool = True, fail_for: set[str] | None = None):
        self.delivers = delivers
        self.fail_for = fail_for or set()
        self.sent: list[str] = []

    async def send_reminder(self, student):
        if student.id in self.fail_for:
            raise NotificationError("SMTP delivery failed: boom", recipient=student.email)
        self.sent.append(student.id)
        return DeliveryResult(delivered=self.delivers, message_id="<msg>" if self.delivers else None)

    async def send_test(self, recipient):
        return DeliveryResult(delivered=self.delivers)


class FakeScheduler:
    """Stands in for AsyncIOScheduler so tests don't need a live event loop."""

    def __init__(self):
        self.running = False
        self.jobs: dict = {}
        self.shutdown_called = False

    def start(self):
        self.running = True

    def add_job(self, func, trigger=None, id=None, replace_existing=False, **kwargs):
        self.jobs[id] = {"func": func, "trigger": trigger, **kwargs}

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def shutdown(self, wait=True):
        self.running = False
        self.shutdown_called = True


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


