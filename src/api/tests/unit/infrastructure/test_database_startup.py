"""Unit tests for startup connectivity checks."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import provisioning.infrastructure.models  # noqa: F401
from infrastructure.database.exceptions import DatabaseConnectionError
from infrastructure.database.startup import (
    backoff_delay,
    connect_with_retry,
    create_ledger_schema,
)
from infrastructure.observability import ConnectionProbe


class FlakyEngine:
    """Engine stand-in whose first ``failures`` connects raise ``error``."""

    def __init__(self, failures: int, error: Exception | None = None):
        self.failures = failures
        self.error = error or OSError("connection refused")
        self.attempts = 0

    @asynccontextmanager
    async def connect(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        yield AsyncMock()


class SleepRecorder:
    """Awaitable sleep that only records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def mock_probe():
    """Mock connection probe."""
    return Mock(spec=ConnectionProbe)


@pytest.fixture
def sleep():
    """Recording sleep."""
    return SleepRecorder()


class TestBackoffDelay:
    """Tests for the exponential backoff schedule."""

    @pytest.mark.parametrize(
        ("attempt", "expected"),
        [(1, 1.0), (2, 2.0), (3, 4.0), (4, 8.0)],
    )
    def test_delay_doubles(self, attempt, expected):
        """Each failure doubles the wait."""
        assert backoff_delay(attempt, 1.0) == expected

    def test_base_delay_scales_schedule(self):
        """The base delay is the first wait."""
        assert backoff_delay(1, 0.5) == 0.5
        assert backoff_delay(3, 0.5) == 2.0


class TestConnectWithRetry:
    """Tests for connect_with_retry."""

    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self, mock_probe, sleep):
        """A reachable store needs no retry."""
        engine = FlakyEngine(failures=0)

        attempt = await connect_with_retry(engine, "ledger", probe=mock_probe, sleep=sleep)

        assert attempt == 1
        assert sleep.delays == []
        mock_probe.connection_established.assert_called_once_with("ledger", 1)
        mock_probe.connection_failed.assert_not_called()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, mock_probe, sleep):
        """Failures are retried with doubling delays."""
        engine = FlakyEngine(failures=2)

        attempt = await connect_with_retry(
            engine, "mysql", attempts=3, base_delay=1.0, probe=mock_probe, sleep=sleep
        )

        assert attempt == 3
        assert sleep.delays == [1.0, 2.0]
        assert mock_probe.connection_failed.call_count == 2
        mock_probe.retry_scheduled.assert_any_call("mysql", 2, 1.0)
        mock_probe.retry_scheduled.assert_any_call("mysql", 3, 2.0)
        mock_probe.connection_established.assert_called_once_with("mysql", 3)

    @pytest.mark.asyncio
    async def test_raises_after_all_attempts(self, mock_probe, sleep):
        """A store that never answers fails startup."""
        engine = FlakyEngine(failures=10)

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await connect_with_retry(
                engine, "mysql", attempts=3, base_delay=0.5, probe=mock_probe, sleep=sleep
            )

        assert exc_info.value.store == "mysql"
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, OSError)
        assert engine.attempts == 3
        # No sleep after the final attempt
        assert sleep.delays == [0.5, 1.0]
        mock_probe.connection_established.assert_not_called()

    @pytest.mark.asyncio
    async def test_sqlalchemy_errors_are_retried(self, mock_probe, sleep):
        """Driver errors surfaced by SQLAlchemy count as transient."""
        error = OperationalError("SELECT 1", {}, Exception("gone away"))
        engine = FlakyEngine(failures=1, error=error)

        attempt = await connect_with_retry(engine, "ledger", probe=mock_probe, sleep=sleep)

        assert attempt == 2

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate_immediately(self, mock_probe, sleep):
        """Programming errors are not retried."""
        engine = FlakyEngine(failures=1, error=ValueError("bad url"))

        with pytest.raises(ValueError):
            await connect_with_retry(engine, "ledger", probe=mock_probe, sleep=sleep)

        assert engine.attempts == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_attempts_below_one_still_tries_once(self, mock_probe, sleep):
        """At least one attempt is always made."""
        engine = FlakyEngine(failures=0)

        attempt = await connect_with_retry(
            engine, "ledger", attempts=0, probe=mock_probe, sleep=sleep
        )

        assert attempt == 1

    @pytest.mark.asyncio
    async def test_real_in_memory_engine(self, mock_probe):
        """A real SQLite engine answers SELECT 1."""
        engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

        try:
            assert await connect_with_retry(engine, "ledger", probe=mock_probe) == 1
        finally:
            await engine.dispose()


class TestCreateLedgerSchema:
    """Tests for create_ledger_schema."""

    @pytest.mark.asyncio
    async def test_creates_ledger_tables(self, mock_probe):
        """Both ledger tables exist afterwards."""
        engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

        try:
            await create_ledger_schema(engine, probe=mock_probe)
            # Idempotent
            await create_ledger_schema(engine, probe=mock_probe)

            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda c: inspect(c).get_table_names())
        finally:
            await engine.dispose()

        assert {"grant_records", "allowlist_entries"} <= set(tables)
        mock_probe.schema_ensured.assert_called_with("ledger")
