"""
Query helpers for the student store.

Each helper borrows a pooled connection unless one is passed in, and
turns driver errors into DatabaseError so callers see a single type.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import psycopg

from app.db.pool import get_db_connection
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class DatabaseError(Exception):
    """Raised when a store query fails."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


async def _run(
    operation: str,
    query: str,
    params: tuple,
    consume: Callable[[psycopg.AsyncCursor], Awaitable[T]],
    connection: psycopg.AsyncConnection | None,
) -> T:
    try:
        if connection is not None:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                return await consume(cur)

        async with await get_db_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await consume(cur)

    except psycopg.Error as e:
        logger.error("Student store query failed", operation=operation, query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation=operation) from e


async def _first_row(cur: psycopg.AsyncCursor) -> dict[str, Any] | None:
    return await cur.fetchone()


async def _all_rows(cur: psycopg.AsyncCursor) -> list[dict[str, Any]]:
    return await cur.fetchall()


async def _rowcount(cur: psycopg.AsyncCursor) -> int:
    return cur.rowcount


async def fetch_one(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> dict[str, Any] | None:
    """Single row as a dict, or None."""
    return await _run("fetch_one", query, params, _first_row, connection)


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    return await _run("fetch_all", query, params, _all_rows, connection)


async def execute_query(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> int:
    """Run a write and return the number of affected rows."""
    return await _run("execute", query, params, _rowcount, connection)
