"""
PostgreSQL connection pool for the student store.

One AsyncConnectionPool per process, opened by the API lifespan or the
worker and shared by every repository call.
"""

import asyncio
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

CLOSE_TIMEOUT_SECONDS = 30.0


class DatabasePoolManager:
    """Lifecycle wrapper around the process-wide connection pool."""

    def __init__(self, conninfo: str | None = None):
        self.conninfo = conninfo
        self.pool: AsyncConnectionPool | None = None
        self._closed = False

    @property
    def is_ready(self) -> bool:
        return self.pool is not None and not self._closed

    async def initialize(self) -> None:
        """Open the pool and prove one round trip works."""
        if self.pool is not None:
            logger.warning("Database pool already initialized")
            return
        if self._closed:
            raise RuntimeError("Cannot reinitialize closed pool")

        pool_config = settings.get_db_pool_config()
        pool = AsyncConnectionPool(
            conninfo=self.conninfo or settings.DATABASE_URL,
            open=False,
            check=AsyncConnectionPool.check_connection,
            configure=self._configure_connection,
            **pool_config,
        )

        try:
            await pool.open()
            await pool.wait()
            async with pool.connection() as conn:
                await conn.execute("SELECT 1")
        except Exception as e:
            logger.error("Failed to initialize database pool", error=str(e))
            await pool.close()
            raise RuntimeError(f"Database pool initialization failed: {e}") from e

        self.pool = pool
        logger.info(
            "Database pool initialized",
            min_size=pool_config["min_size"],
            max_size=pool_config["max_size"],
            environment=settings.environment,
        )

    async def _configure_connection(self, conn: psycopg.AsyncConnection) -> None:
        conn.row_factory = dict_row
        # Every repository call is a single statement
        await conn.set_autocommit(True)
        await conn.execute(
            sql.SQL("SET application_name = {}").format(
                sql.Literal(f"codeforces-sync-{settings.environment}")
            )
        )
        await conn.execute("SET timezone = 'UTC'")
        await conn.execute("SET statement_timeout = '60s'")

    async def close(self) -> None:
        if not self.is_ready:
            return

        logger.info("Closing database connection pool")
        try:
            await asyncio.wait_for(self.pool.close(), timeout=CLOSE_TIMEOUT_SECONDS)
        except TimeoutError:
            logger.warning("Database pool close timed out, forcing shutdown")
        finally:
            self._closed = True
            self.pool = None

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Borrow a connection for the duration of the block."""
        if not self.is_ready:
            raise RuntimeError("Database pool not initialized. Call initialize() first.")

        async with self.pool.connection() as conn:
            yield conn

    async def health_check(self) -> dict[str, Any]:
        if not self.is_ready:
            return {"healthy": False, "error": "Pool not initialized", "service": "database_pool"}

        started = time.monotonic()
        try:
            async with self.connection() as conn:
                await conn.execute("SELECT 1")
        except Exception as e:
            logger.error("Database pool health check failed", error=str(e))
            return {"healthy": False, "error": str(e), "service": "database_pool"}

        stats = self.pool.get_stats()
        return {
            "healthy": True,
            "service": "database_pool",
            "connection_time_ms": round((time.monotonic() - started) * 1000, 2),
            "pool_size": stats.get("pool_size", 0),
            "pool_available": stats.get("pool_available", 0),
            "requests_waiting": stats.get("requests_waiting", 0),
        }


db_pool = DatabasePoolManager()


async def get_db_connection():
    """Connection context manager from the shared pool."""
    return db_pool.connection()


async def db_health_check() -> dict[str, Any]:
    return await db_pool.health_check()
