"""
Query helpers for the repositories.

Every helper borrows a pooled connection, runs the statement(s) and turns
psycopg errors into DatabaseError so callers only deal with one type.
"""

import asyncio
import functools
from typing import Any

import psycopg

from realite.db.pool import get_db_connection, get_db_transaction
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

Statement = tuple[str, tuple]


class DatabaseError(Exception):
    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


def _wrap(error: psycopg.Error, operation: str, query: str) -> DatabaseError:
    logger.error("Database query failed", operation=operation, query=query[:100], error=str(error))
    return DatabaseError(
        f"{operation} failed: {error}",
        operation=operation,
        recoverable=isinstance(error, psycopg.OperationalError),
    )


async def fetch_one(query: str, params: tuple = ()) -> dict[str, Any] | None:
    try:
        async with await get_db_connection() as conn:
            cursor = await conn.execute(query, params)
            return await cursor.fetchone()
    except psycopg.Error as e:
        raise _wrap(e, "fetch_one", query) from e


async def fetch_all(query: str, params: tuple = ()) -> list[dict[str, Any]]:
    try:
        async with await get_db_connection() as conn:
            cursor = await conn.execute(query, params)
            return await cursor.fetchall()
    except psycopg.Error as e:
        raise _wrap(e, "fetch_all", query) from e


async def execute_query(query: str, params: tuple = ()) -> int:
    """Run a write statement and return the affected row count."""
    try:
        async with await get_db_connection() as conn:
            cursor = await conn.execute(query, params)
            return cursor.rowcount
    except psycopg.Error as e:
        raise _wrap(e, "execute", query) from e


async def execute_transaction(statements: list[Statement]) -> None:
    """
    Run statements atomically, in order.

    Example:
        await execute_transaction([
            ("UPDATE suggestions SET status = %s WHERE id = %s", ("accepted", suggestion_id)),
            ("INSERT INTO tag_preferences ...", (...)),
        ])
    """
    try:
        async with await get_db_transaction() as conn:
            for query, params in statements:
                await conn.execute(query, params)
    except psycopg.Error as e:
        first = statements[0][0] if statements else ""
        raise _wrap(e, "transaction", first) from e


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """Retry on connection-level failures with exponential backoff."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except DatabaseError as e:
                    if not e.recoverable or attempt >= max_retries:
                        raise
                    delay = base_delay * (2**attempt)
                    attempt += 1
                    logger.warning(
                        "Retrying database operation",
                        operation=func.__name__,
                        attempt=attempt,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
