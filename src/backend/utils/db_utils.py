"""Database pool helpers for the message store.

Provides:
- Pool factory configured from Settings
- Connection acquisition with a bounded wait
- Retry decorator for transient read failures
- Pool health snapshot and drain-then-close shutdown
"""

from __future__ import annotations

import asyncio
import functools
import random
import time

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import asyncpg

from api.middleware.exception_handlers import DatabaseError
from core.constants import Settings
from models.error_models import ErrorCode
from utils.logger import logger

P = ParamSpec("P")
T = TypeVar("T")

#: Failures worth a second attempt; anything else is a real query error
TRANSIENT_DB_ERRORS: tuple[type[Exception], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    ConnectionError,
)


class ConnectionPoolExhausted(DatabaseError):
    """No connection could be obtained within the configured wait."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message=message, code=ErrorCode.DATABASE_CONNECTION_FAILED, cause=cause)


async def create_database_pool(settings: Settings) -> asyncpg.Pool:
    """Open the asyncpg pool described by ``settings``.

    Every connection gets statement and lock timeouts matching
    ``db_command_timeout`` so a stuck query cannot hold a stream open forever.

    Raises:
        ConnectionPoolExhausted: If the initial connections cannot be established
    """
    timeout_ms = int(settings.db_command_timeout * 1000)

    async def init_connection(conn: asyncpg.Connection) -> None:
        await conn.execute(f"SET statement_timeout = '{timeout_ms}'")
        await conn.execute(f"SET lock_timeout = '{timeout_ms}'")

    try:
        pool = await asyncio.wait_for(
            asyncpg.create_pool(
                dsn=settings.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
                init=init_connection,
            ),
            timeout=settings.db_connection_timeout,
        )
    except TimeoutError as e:
        raise ConnectionPoolExhausted(
            f"Database pool creation timed out after {settings.db_connection_timeout}s", cause=e
        ) from e
    except (OSError, asyncpg.PostgresError) as e:
        raise ConnectionPoolExhausted(f"Failed to create database pool: {e}", cause=e) from e

    if pool is None:
        raise ConnectionPoolExhausted("Failed to create database pool")

    logger.info(
        f"Database pool ready ({settings.db_pool_min_size}-{settings.db_pool_max_size} connections)",
    )
    return pool


@asynccontextmanager
async def acquire_connection(
    pool: asyncpg.Pool,
    *,
    timeout: float | None = None,
) -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a pooled connection, converting an acquire timeout into ConnectionPoolExhausted."""
    try:
        async with pool.acquire(timeout=timeout) as conn:
            yield conn
    except TimeoutError as e:
        raise ConnectionPoolExhausted(
            f"Could not acquire database connection within {timeout}s", cause=e
        ) from e


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 0.2,
    max_delay: float = 2.0,
    retryable_exceptions: tuple[type[Exception], ...] = (*TRANSIENT_DB_ERRORS, ConnectionPoolExhausted),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry an idempotent coroutine on transient database failures.

    Backoff is exponential with jitter. Only reads use this; writes are
    attempted once so a reply is never inserted twice.

    Example:
        @with_retry(max_attempts=3)
        async def get_assistant(self, assistant_id):
            ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt >= max_attempts:
                        logger.error(f"{func.__name__} failed after {max_attempts} attempts: {e}")
                        raise

                    delay = min(base_delay * (2 ** (attempt - 1)) + random.uniform(0, base_delay), max_delay)
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{max_attempts}), retrying in {delay:.2f}s: {e}"
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator


async def check_pool_health(pool: asyncpg.Pool) -> dict[str, Any]:
    """Run ``SELECT 1`` and report pool occupancy."""
    try:
        async with acquire_connection(pool, timeout=5.0) as conn:
            healthy = await conn.fetchval("SELECT 1") == 1
    except (DatabaseError, asyncpg.PostgresError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        healthy = False

    size = pool.get_size()
    idle = pool.get_idle_size()
    return {
        "healthy": healthy,
        "pool_size": size,
        "pool_max_size": pool.get_max_size(),
        "free_connections": idle,
        "used_connections": size - idle,
    }


async def graceful_pool_close(pool: asyncpg.Pool, timeout: float = 10.0) -> None:
    """Wait up to ``timeout`` seconds for borrowed connections, then close the pool."""
    deadline = time.monotonic() + timeout
    while pool.get_size() > pool.get_idle_size():
        if time.monotonic() > deadline:
            logger.warning(
                f"Closing database pool with {pool.get_size() - pool.get_idle_size()} connections still in use"
            )
            break
        await asyncio.sleep(0.1)

    await pool.close()
    logger.info("Database pool closed")
