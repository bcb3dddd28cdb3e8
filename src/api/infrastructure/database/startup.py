"""Startup connectivity checks with bounded exponential backoff.

Retries exist only here. Once the process is serving, no store operation
is retried automatically; failures surface to the caller.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from infrastructure.database.exceptions import DatabaseConnectionError
from infrastructure.database.models import Base
from infrastructure.observability import ConnectionProbe, DefaultConnectionProbe

TransientConnectError = (SQLAlchemyError, OSError, asyncio.TimeoutError)


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before the attempt following ``attempt`` (1-based)."""
    return base_delay * 2 ** (attempt - 1)


async def connect_with_retry(
    engine: AsyncEngine,
    store: str,
    attempts: int = 3,
    base_delay: float = 1.0,
    probe: ConnectionProbe | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Verify a store is reachable, retrying with exponential backoff.

    Args:
        engine: Engine whose pool should hand out a working connection
        store: Store name used in logs and errors ("ledger", "mysql")
        attempts: Total number of attempts, at least 1
        base_delay: Delay after the first failure; doubles after each one
        probe: Optional domain probe for observability
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        The attempt number that succeeded

    Raises:
        DatabaseConnectionError: If every attempt failed
    """
    probe = probe or DefaultConnectionProbe()
    attempts = max(1, attempts)
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except TransientConnectError as e:
            last_error = e
            probe.connection_failed(store, attempt, attempts, e)
            if attempt < attempts:
                delay = backoff_delay(attempt, base_delay)
                probe.retry_scheduled(store, attempt + 1, delay)
                await sleep(delay)
            continue

        probe.connection_established(store, attempt)
        return attempt

    raise DatabaseConnectionError(
        f"Could not connect to the {store} store after {attempts} attempts",
        store=store,
        attempts=attempts,
    ) from last_error


async def create_ledger_schema(
    engine: AsyncEngine, probe: ConnectionProbe | None = None
) -> None:
    """Create ledger tables that do not exist yet.

    Only tables registered on ``Base.metadata`` are created, so the caller
    must have imported the ORM model modules beforehand.

    Args:
        engine: Ledger engine
        probe: Optional domain probe for observability
    """
    probe = probe or DefaultConnectionProbe()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    probe.schema_ensured("ledger")
