"""
Persistence layer for tracked students.

Single place for the reads and writes the sync job and the reminder
dispatcher perform, so both can stay focused on orchestration.
"""

from dataclasses import asdict

from psycopg.types.json import Jsonb

from app.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one
from app.infrastructure.observability.logging import get_logger
from app.models.domain.student_domain import (
    ContestRecord,
    ProblemStats,
    RatingPoint,
    Student,
    SyncSnapshot,
)

logger = get_logger(__name__)


STUDENTS_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS students (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        phone TEXT,
        codeforces_handle TEXT NOT NULL,
        current_rating INTEGER NOT NULL DEFAULT 0,
        max_rating INTEGER NOT NULL DEFAULT 0,
        email_reminders_enabled BOOLEAN NOT NULL DEFAULT TRUE,
        contest_history JSONB NOT NULL DEFAULT '[]'::jsonb,
        rating_history JSONB NOT NULL DEFAULT '[]'::jsonb,
        problem_stats JSONB,
        last_updated TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        last_sync_time TIMESTAMPTZ,
        reminder_email_count INTEGER NOT NULL DEFAULT 0,
        last_reminder_sent TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

STUDENTS_INDEXES_DDL = [
    "CREATE INDEX IF NOT EXISTS idx_students_handle ON students (codeforces_handle)",
    "CREATE INDEX IF NOT EXISTS idx_students_last_sync ON students (last_sync_time)",
    "CREATE INDEX IF NOT EXISTS idx_students_reminders ON students (email_reminders_enabled)",
]


class StudentRepositoryError(DatabaseError):
    """More specific exception for repository failures."""


class StudentRepository:
    """Persistence helpers backing the sync job and reminder emails."""

    SELECT_COLUMNS = """
        id, name, email, phone, codeforces_handle, current_rating, max_rating,
        email_reminders_enabled, contest_history, rating_history, problem_stats,
        last_updated, last_sync_time, reminder_email_count, last_reminder_sent
    """

    @classmethod
    def _row_to_student(cls, row: dict | None) -> Student | None:
        if not row:
            return None

        problem_stats = row.get("problem_stats")
        return Student(
            id=str(row["id"]),
            name=row["name"],
            email=row["email"],
            phone=row.get("phone"),
            codeforces_handle=row.get("codeforces_handle"),
            current_rating=row.get("current_rating") or 0,
            max_rating=row.get("max_rating") or 0,
            email_reminders_enabled=row.get("email_reminders_enabled", True),
            contest_history=[ContestRecord.from_dict(c) for c in row.get("contest_history") or []],
            rating_history=[RatingPoint.from_dict(r) for r in row.get("rating_history") or []],
            problem_stats=ProblemStats.from_dict(problem_stats) if problem_stats else None,
            last_updated=row.get("last_updated"),
            last_sync_time=row.get("last_sync_time"),
            reminder_email_count=row.get("reminder_email_count") or 0,
            last_reminder_sent=row.get("last_reminder_sent"),
        )

    @classmethod
    async def ensure_schema(cls) -> None:
        """Create the students table and its indexes if missing."""
        await execute_query(STUDENTS_TABLE_DDL)
        for statement in STUDENTS_INDEXES_DDL:
            await execute_query(statement)
        logger.info("Students schema ensured")

    @classmethod
    async def list_students(cls) -> list[Student]:
        """Return every student, oldest first."""
        query = f"SELECT {cls.SELECT_COLUMNS} FROM students ORDER BY created_at"
        rows = await fetch_all(query)
        return [cls._row_to_student(row) for row in rows]

    @classmethod
    async def get_student(cls, student_id: str) -> Student | None:
        """Return the student if it exists."""
        query = f"SELECT {cls.SELECT_COLUMNS} FROM students WHERE id = %s"
        row = await fetch_one(query, (student_id,))
        return cls._row_to_student(row)

    @classmethod
    async def save_sync_snapshot(cls, student_id: str, snapshot: SyncSnapshot) -> None:
        """Replace the synced snapshot wholesale and stamp the sync time."""
        query = """
            UPDATE students
            SET current_rating = %s,
                max_rating = %s,
                contest_history = %s,
                rating_history = %s,
                problem_stats = %s,
                last_updated = %s,
                last_sync_time = %s,
                updated_at = NOW()
            WHERE id = %s
        """

        params = (
            snapshot.current_rating,
            snapshot.max_rating,
            Jsonb([asdict(c) for c in snapshot.contest_history]),
            Jsonb([asdict(r) for r in snapshot.rating_history]),
            Jsonb(snapshot.problem_stats.to_dict()),
            snapshot.synced_at,
            snapshot.synced_at,
            student_id,
        )

        updated = await execute_query(query, params)
        if not updated:
            raise StudentRepositoryError(
                f"Student {student_id} no longer exists", operation="save_sync_snapshot"
            )

        logger.debug(
            "Student snapshot saved",
            student_id=student_id,
            current_rating=snapshot.current_rating,
            max_rating=snapshot.max_rating,
        )

    @classmethod
    async def update_ratings(cls, student_id: str, current_rating: int, max_rating: int) -> Student | None:
        """Overwrite just the rating fields; returns the updated student."""
        query = f"""
            UPDATE students
            SET current_rating = %s,
                max_rating = %s,
                last_updated = NOW(),
                updated_at = NOW()
            WHERE id = %s
            RETURNING {cls.SELECT_COLUMNS}
        """

        row = await fetch_one(query, (current_rating, max_rating, student_id))
        return cls._row_to_student(row)

    @classmethod
    async def record_reminder_sent(cls, student_id: str) -> None:
        """Increment the reminder counter and stamp the send time in one statement."""
        query = """
            UPDATE students
            SET reminder_email_count = reminder_email_count + 1,
                last_reminder_sent = NOW(),
                updated_at = NOW()
            WHERE id = %s
        """

        await execute_query(query, (student_id,))
        logger.debug("Reminder recorded", student_id=student_id)
