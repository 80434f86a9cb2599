"""
Process-wide PostgreSQL pool (psycopg_pool).

Connections return rows as dicts, run in autocommit mode and use UTC as the
session time zone so timestamptz values come back aware and in UTC.
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

from realite.config import settings
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

CLOSE_TIMEOUT_SECONDS = 30.0


class DatabasePoolManager:
    def __init__(self):
        self.pool: AsyncConnectionPool | None = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self.pool is not None and not self._closed

    async def initialize(self) -> None:
        """
        Open the pool and verify one round trip.

        Raises:
            RuntimeError: If the pool was closed before or cannot be opened
        """
        if self.is_open:
            logger.warning("Database pool already initialized")
            return
        if self._closed:
            raise RuntimeError("Cannot reopen a closed database pool")

        pool_config = settings.get_db_pool_config()
        pool = AsyncConnectionPool(
            conninfo=settings.DATABASE_URL,
            open=False,
            check=AsyncConnectionPool.check_connection,
            configure=self._configure_connection,
            **pool_config,
        )
        try:
            await pool.open(wait=True)
            async with pool.connection() as conn:
                await conn.execute("SELECT 1")
        except Exception as e:
            logger.error("Database pool initialization failed", error=str(e))
            await pool.close()
            raise RuntimeError(f"Database pool initialization failed: {e}") from e

        self.pool = pool
        logger.info(
            "Database pool ready",
            min_size=pool_config["min_size"],
            max_size=pool_config["max_size"],
        )

    @staticmethod
    async def _configure_connection(conn: psycopg.AsyncConnection) -> None:
        conn.row_factory = dict_row
        await conn.set_autocommit(True)
        await conn.execute(
            sql.SQL("SET application_name = {}").format(sql.Literal(f"realite-{settings.environment}"))
        )
        await conn.execute("SET timezone = 'UTC'")
        await conn.execute("SET statement_timeout = '30s'")

    async def close(self) -> None:
        if not self.is_open:
            return
        self._closed = True
        try:
            await asyncio.wait_for(self.pool.close(), timeout=CLOSE_TIMEOUT_SECONDS)
            logger.info("Database pool closed")
        except TimeoutError:
            logger.warning("Database pool close timed out")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        if not self.is_open:
            raise RuntimeError("Database pool is not open")
        async with self.pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Commit on success, roll back on exception."""
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> dict[str, Any]:
        if not self.is_open:
            return {"healthy": False, "error": "Pool not available"}

        started = time.perf_counter()
        try:
            async with self.connection() as conn:
                await conn.execute("SELECT 1")
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"healthy": False, "error": str(e)}

        stats = self.pool.get_stats()
        return {
            "healthy": True,
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "pool_size": stats.get("pool_size"),
            "pool_available": stats.get("pool_available"),
        }


db_pool = DatabasePoolManager()


async def get_db_connection():
    return db_pool.connection()


async def get_db_transaction():
    return db_pool.transaction()


async def db_health_check() -> dict[str, Any]:
    return await db_pool.health_check()
