"""
Codeforces API client for rating, contest and submission data.
Handles raw API calls, response validation and derivation of the
statistics stored on each student snapshot.
Pure request/derive: nothing here touches the database.
"""

import asyncio
import math
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.student_domain import (
    ComprehensiveData,
    ContestData,
    ContestRecord,
    HardestProblem,
    HeatmapDay,
    ProblemStats,
    RatingBucket,
    RatingPoint,
    SolvedProblem,
)

logger = get_logger(__name__)

PROBLEMSET_URL = "https://codeforces.com/problemset/problem"
SUBMISSION_PAGE_SIZE = 10000
MAX_RETURNED_PROBLEMS = 50

# (lower bound, label), checked top-down; everything below 900 lands in 800-900
RATING_BUCKETS = [
    (1800, "1800+"),
    (1700, "1700-1800"),
    (1600, "1600-1700"),
    (1500, "1500-1600"),
    (1400, "1400-1500"),
    (1300, "1300-1400"),
    (1200, "1200-1300"),
    (1100, "1100-1200"),
    (1000, "1000-1100"),
    (900, "900-1000"),
    (0, "800-900"),
]


class ExternalFetchError(Exception):
    """Base exception for Codeforces data source failures."""

    def __init__(self, message: str, handle: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.handle = handle
        self.status_code = status_code


class HandleNotFoundError(ExternalFetchError):
    """The handle does not exist on Codeforces."""


class NetworkError(ExternalFetchError):
    """Transport failure, timeout or non-OK HTTP status."""


class MalformedResponseError(ExternalFetchError):
    """Response body was not the JSON shape the API documents."""


def _utc_date(timestamp_seconds: int) -> str:
    return datetime.fromtimestamp(timestamp_seconds, UTC).date().isoformat()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _bucket_label(rating: int) -> str:
    for lower_bound, label in RATING_BUCKETS:
        if rating >= lower_bound:
            return label
    return RATING_BUCKETS[-1][1]


def build_contest_data(raw_contests: list[dict], lookback_days: int, now: datetime) -> ContestData:
    """
    Filter user.rating entries to the lookback window.

    The API returns contests oldest first; both lists come back most
    recent first.
    """
    cutoff = now - timedelta(days=lookback_days)

    contests: list[ContestRecord] = []
    rating_history: list[RatingPoint] = []

    for entry in raw_contests:
        updated_at = datetime.fromtimestamp(entry["ratingUpdateTimeSeconds"], UTC)
        if updated_at < cutoff:
            continue

        date = updated_at.date().isoformat()
        contests.append(
            ContestRecord(
                contest_id=entry["contestId"],
                name=entry["contestName"],
                date=date,
                rank=entry["rank"],
                old_rating=entry["oldRating"],
                new_rating=entry["newRating"],
                delta=entry["newRating"] - entry["oldRating"],
            )
        )
        rating_history.append(RatingPoint(date=date, rating=entry["newRating"]))

    contests.reverse()
    rating_history.reverse()
    return ContestData(contests=contests, rating_history=rating_history)


def generate_submission_heatmap(
    submissions: list[dict], days: int, now: datetime
) -> list[HeatmapDay]:
    """One entry per calendar day ending today (UTC), oldest first, zero days included."""
    today = now.astimezone(UTC).date()
    dates = [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]
    counts = dict.fromkeys(dates, 0)

    for submission in submissions:
        date = _utc_date(submission["creationTimeSeconds"])
        if date in counts:
            counts[date] += 1

    return [HeatmapDay(date=date, count=counts[date]) for date in dates]


def build_problem_stats(raw_submissions: list[dict], lookback_days: int, now: datetime) -> ProblemStats:
    """
    Derive problem statistics from user.status entries.

    Only accepted submissions count towards solved problems; the heatmap
    counts every submission in the window.
    """
    cutoff_seconds = (now - timedelta(days=lookback_days)).timestamp()
    recent = [s for s in raw_submissions if s["creationTimeSeconds"] >= cutoff_seconds]

    unique_problems: dict[str, SolvedProblem] = {}
    for submission in recent:
        if submission.get("verdict") != "OK":
            continue

        problem = submission["problem"]
        key = f"{problem.get('contestId')}-{problem['index']}"
        if key in unique_problems:
            continue

        unique_problems[key] = SolvedProblem(
            name=problem["name"],
            rating=problem.get("rating") or 0,
            tags=list(problem.get("tags") or []),
            contest_id=problem.get("contestId"),
            index=problem["index"],
            solved_at=datetime.fromtimestamp(submission["creationTimeSeconds"], UTC).isoformat(),
        )

    problems = list(unique_problems.values())
    total_solved = len(problems)

    average_rating = (
        _round_half_up(sum(p.rating for p in problems) / total_solved) if total_solved else 0
    )
    average_per_day = _round_half_up(total_solved / lookback_days * 10) / 10 if lookback_days else 0.0

    hardest = None
    for problem in problems:
        if problem.rating > (hardest.rating if hardest else 0):
            hardest = problem

    if hardest:
        hardest_problem = HardestProblem(
            name=hardest.name,
            rating=hardest.rating,
            url=f"{PROBLEMSET_URL}/{hardest.contest_id}/{hardest.index}",
        )
    else:
        hardest_problem = HardestProblem(name="None", rating=0, url=None)

    bucket_counts = {label: 0 for _, label in reversed(RATING_BUCKETS)}
    for problem in problems:
        bucket_counts[_bucket_label(problem.rating)] += 1

    return ProblemStats(
        total_solved=total_solved,
        average_rating=average_rating,
        average_per_day=average_per_day,
        hardest_problem=hardest_problem,
        rating_distribution=[RatingBucket(range=r, count=c) for r, c in bucket_counts.items()],
        submission_heatmap=generate_submission_heatmap(recent, lookback_days, now),
        problems=problems[:MAX_RETURNED_PROBLEMS],
    )


class CodeforcesService:
    """
    Client for the Codeforces public API.

    Every failure surfaces as an ExternalFetchError subclass; callers decide
    whether to record or propagate it.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.CODEFORCES_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.CODEFORCES_REQUEST_TIMEOUT
        self._transport = transport

    async def _get(self, method: str, params: dict[str, Any], handle: str) -> Any:
        """Call an API method and return its ``result`` payload."""
        url = f"{self.base_url}/{method}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"Codeforces {method} timed out after {self.timeout}s", handle=handle
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(f"Codeforces {method} request failed: {e}", handle=handle) from e

        return self._handle_api_response(response, method, handle)

    def _handle_api_response(self, response: httpx.Response, method: str, handle: str) -> Any:
        """
        Validate a Codeforces API response.

        Raises:
            HandleNotFoundError: API reports the handle does not exist
            NetworkError: non-JSON error page or server-side failure
            MalformedResponseError: OK status with an unexpected body
        """
        logger.debug(
            "Codeforces API response",
            method=method,
            handle=handle,
            status_code=response.status_code,
        )

        try:
            payload = response.json()
        except ValueError as e:
            if response.is_success:
                raise MalformedResponseError(
                    f"Invalid JSON from Codeforces {method}", handle=handle
                ) from e
            raise NetworkError(
                f"Codeforces {method} failed (HTTP {response.status_code})",
                handle=handle,
                status_code=response.status_code,
            ) from None

        if not isinstance(payload, dict):
            raise MalformedResponseError(f"Unexpected payload from Codeforces {method}", handle=handle)

        if payload.get("status") == "OK":
            if "result" not in payload:
                raise MalformedResponseError(f"Codeforces {method} returned no result", handle=handle)
            return payload["result"]

        comment = payload.get("comment") or "Unknown Codeforces error"
        logger.warning(
            "Codeforces API call failed",
            method=method,
            handle=handle,
            status_code=response.status_code,
            comment=comment,
        )

        if "not found" in comment.lower():
            raise HandleNotFoundError(comment, handle=handle, status_code=response.status_code)
        if response.status_code == 429 or response.status_code >= 500:
            raise NetworkError(comment, handle=handle, status_code=response.status_code)
        raise ExternalFetchError(comment, handle=handle, status_code=response.status_code)

    async def fetch_rating(self, handle: str) -> dict[str, int]:
        """Current and max rating from user.info."""
        result = await self._get("user.info", {"handles": handle}, handle)

        if not isinstance(result, list) or not result:
            raise HandleNotFoundError(f"User with handle {handle} not found", handle=handle)

        user_info = result[0]
        return {
            "current_rating": user_info.get("rating") or 0,
            "max_rating": user_info.get("maxRating") or 0,
        }

    async def fetch_contests(
        self, handle: str, lookback_days: int, now: datetime | None = None
    ) -> ContestData:
        """Rated contests within the window plus the derived rating history."""
        result = await self._get("user.rating", {"handle": handle}, handle)

        try:
            return build_contest_data(result, lookback_days, now or datetime.now(UTC))
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(
                f"Unexpected user.rating entry: {e}", handle=handle
            ) from e

    async def fetch_submissions(
        self, handle: str, lookback_days: int, now: datetime | None = None
    ) -> ProblemStats:
        """Problem statistics over the window from user.status."""
        params = {"handle": handle, "from": 1, "count": SUBMISSION_PAGE_SIZE}
        result = await self._get("user.status", params, handle)

        try:
            return build_problem_stats(result, lookback_days, now or datetime.now(UTC))
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(
                f"Unexpected user.status entry: {e}", handle=handle
            ) from e

    async def fetch_comprehensive(
        self, handle: str, contest_days: int = 90, problem_days: int = 30
    ) -> ComprehensiveData:
        """
        Fetch contests and submissions concurrently and merge them.

        A failure on one side leaves that half as None; only when both
        fail is the first error raised.
        """
        now = datetime.now(UTC)
        contest_result, problem_result = await asyncio.gather(
            self.fetch_contests(handle, contest_days, now),
            self.fetch_submissions(handle, problem_days, now),
            return_exceptions=True,
        )

        for result in (contest_result, problem_result):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        contest_failed = isinstance(contest_result, Exception)
        problem_failed = isinstance(problem_result, Exception)

        if contest_failed and problem_failed:
            raise contest_result

        if contest_failed or problem_failed:
            error = contest_result if contest_failed else problem_result
            logger.warning(
                "Partial Codeforces data",
                handle=handle,
                failed_part="contests" if contest_failed else "submissions",
                error=str(error),
            )

        return ComprehensiveData(
            contest_data=None if contest_failed else contest_result,
            problem_data=None if problem_failed else problem_result,
            fetched_at=now,
        )
