"""
Domain models for tracked students and their synced Codeforces snapshot.

Plain dataclasses shared by the repository, the Codeforces client, the
sync job and the notification dispatcher. The ``to_dict``/``from_dict``
pairs define the JSONB layout stored on each student row.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class ContestRecord:
    """One rated contest participation."""

    contest_id: int
    name: str
    date: str  # YYYY-MM-DD, UTC
    rank: int
    old_rating: int
    new_rating: int
    delta: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContestRecord":
        return cls(
            contest_id=data["contest_id"],
            name=data["name"],
            date=data["date"],
            rank=data["rank"],
            old_rating=data["old_rating"],
            new_rating=data["new_rating"],
            delta=data["delta"],
        )


@dataclass(slots=True)
class RatingPoint:
    date: str
    rating: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RatingPoint":
        return cls(date=data["date"], rating=data["rating"])


@dataclass(slots=True)
class HardestProblem:
    name: str
    rating: int
    url: str | None


@dataclass(slots=True)
class RatingBucket:
    range: str
    count: int


@dataclass(slots=True)
class HeatmapDay:
    date: str
    count: int


@dataclass(slots=True)
class SolvedProblem:
    """First accepted submission of a unique problem."""

    name: str
    rating: int
    tags: list[str]
    contest_id: int | None
    index: str
    solved_at: str  # ISO timestamp


@dataclass(slots=True)
class ProblemStats:
    """Aggregate statistics derived from accepted submissions in a window."""

    total_solved: int
    average_rating: int
    average_per_day: float
    hardest_problem: HardestProblem
    rating_distribution: list[RatingBucket]
    submission_heatmap: list[HeatmapDay]
    problems: list[SolvedProblem] = field(default_factory=list)

    def recent_submission_count(self, days: int) -> int:
        """Sum of heatmap counts for the most recent ``days`` entries."""
        if days <= 0:
            return 0
        return sum(day.count for day in self.submission_heatmap[-days:])

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProblemStats":
        hardest = data.get("hardest_problem") or {}
        return cls(
            total_solved=data.get("total_solved", 0),
            average_rating=data.get("average_rating", 0),
            average_per_day=data.get("average_per_day", 0.0),
            hardest_problem=HardestProblem(
                name=hardest.get("name", "None"),
                rating=hardest.get("rating", 0),
                url=hardest.get("url"),
            ),
            rating_distribution=[RatingBucket(**b) for b in data.get("rating_distribution", [])],
            submission_heatmap=[HeatmapDay(**d) for d in data.get("submission_heatmap", [])],
            problems=[SolvedProblem(**p) for p in data.get("problems", [])],
        )


@dataclass(slots=True)
class ContestData:
    """Contests and rating history inside a lookback window, most recent first."""

    contests: list[ContestRecord]
    rating_history: list[RatingPoint]


@dataclass(slots=True)
class ComprehensiveData:
    """Merged contest + problem data; either half may be missing."""

    contest_data: ContestData | None
    problem_data: ProblemStats | None
    fetched_at: datetime


@dataclass(slots=True)
class SyncSnapshot:
    """Everything a successful sync writes over a student's previous snapshot."""

    current_rating: int
    max_rating: int
    contest_history: list[ContestRecord]
    rating_history: list[RatingPoint]
    problem_stats: ProblemStats
    synced_at: datetime

    @classmethod
    def from_comprehensive(cls, data: ComprehensiveData) -> "SyncSnapshot":
        """
        Build a snapshot from fetched data.

        Rating history is ordered most-recent-first, so the current rating
        is the first point.
        """
        history = data.contest_data.rating_history
        current_rating = history[0].rating if history else 0
        max_rating = max((point.rating for point in history), default=0)

        return cls(
            current_rating=current_rating,
            max_rating=max_rating,
            contest_history=list(data.contest_data.contests),
            rating_history=list(history),
            problem_stats=data.problem_data,
            synced_at=data.fetched_at,
        )


@dataclass(slots=True)
class Student:
    """Represents a students row."""

    id: str
    name: str
    email: str
    codeforces_handle: str | None
    phone: str | None = None
    current_rating: int = 0
    max_rating: int = 0
    email_reminders_enabled: bool = True
    contest_history: list[ContestRecord] = field(default_factory=list)
    rating_history: list[RatingPoint] = field(default_factory=list)
    problem_stats: ProblemStats | None = None
    last_updated: datetime | None = None
    last_sync_time: datetime | None = None
    reminder_email_count: int = 0
    last_reminder_sent: datetime | None = None

    @property
    def has_handle(self) -> bool:
        return bool(self.codeforces_handle and self.codeforces_handle.strip())


@dataclass(slots=True)
class InactiveStudent:
    """Student with no submissions in the inactivity window."""

    id: str
    name: str
    email: str
    handle: str

    @classmethod
    def from_student(cls, student: Student) -> "InactiveStudent":
        return cls(
            id=student.id,
            name=student.name,
            email=student.email,
            handle=student.codeforces_handle,
        )

    def to_dict(self) -> dict[str, str]:
        return asdict(self)
