"""SQLAlchemy implementation of ILedgerRepository.

Each call opens its own session and commits before returning, so a row
written by the orchestrator is durable before the next saga step starts.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

from sqlalchemy import ColumnElement, delete, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.models import utc_now
from provisioning.domain.aggregates import GrantRecord
from provisioning.domain.value_objects import (
    GrantStatus,
    LedgerCountPredicate,
    LedgerStats,
)
from provisioning.infrastructure.models import GrantRecordModel
from provisioning.infrastructure.observability import (
    DefaultLedgerRepositoryProbe,
    LedgerRepositoryProbe,
)
from provisioning.ports.exceptions import (
    DuplicateActiveGrantError,
    GrantRecordNotFoundError,
    LedgerError,
    LedgerUnavailableError,
)
from provisioning.ports.repositories import ILedgerRepository

WEEK_WINDOW = timedelta(days=7)


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Re-raise SQLAlchemy errors as ledger port exceptions.

    Args:
        operation: Operation name included in the message

    Raises:
        LedgerUnavailableError: If the pool had no connection in time
        LedgerError: For any other store failure
    """
    try:
        yield
    except PoolTimeoutError as e:
        raise LedgerUnavailableError(
            f"Ledger connection unavailable during {operation}"
        ) from e
    except SQLAlchemyError as e:
        raise LedgerError(f"Ledger operation {operation} failed") from e


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _active_rows(identity_key: str) -> tuple[ColumnElement[bool], ...]:
    return (
        GrantRecordModel.identity_key == identity_key,
        GrantRecordModel.status != GrantStatus.DELETED.value,
    )


class LedgerRepository(ILedgerRepository):
    """Repository managing ledger rows in the local store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        probe: LedgerRepositoryProbe | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize repository with a session factory.

        Args:
            session_factory: Factory producing sessions on the ledger engine
            probe: Optional domain probe for observability
            clock: Source of the current UTC time for windows and deletion stamps
        """
        self._session_factory = session_factory
        self._probe = probe or DefaultLedgerRepositoryProbe()
        self._clock = clock

    async def exists_active(self, identity_key: str) -> bool:
        """Return whether a non-deleted row exists for the key."""
        stmt = (
            select(func.count())
            .select_from(GrantRecordModel)
            .where(*_active_rows(identity_key))
        )
        with translate_store_errors("exists_active"):
            async with self._session_factory() as session:
                count = await session.scalar(stmt)
        return bool(count)

    async def get_active(self, identity_key: str) -> GrantRecord | None:
        """Return the non-deleted row for the key, if any."""
        stmt = (
            select(GrantRecordModel)
            .where(*_active_rows(identity_key))
            .order_by(GrantRecordModel.id.desc())
        )
        with translate_store_errors("get_active"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                model = result.scalars().first()
                return self._to_domain(model) if model else None

    async def insert_success(
        self, identity_key: str, db_name: str, db_user: str
    ) -> GrantRecord:
        """Append a success row.

        Raises:
            DuplicateActiveGrantError: If a non-deleted row already exists
            LedgerError: If the write fails
        """
        return await self._insert(
            GrantRecordModel(
                identity_key=identity_key,
                db_name=db_name,
                db_user=db_user,
                status=GrantStatus.SUCCESS.value,
            )
        )

    async def insert_failure(self, identity_key: str, reason: str) -> GrantRecord:
        """Append a failure row with empty resource names.

        Raises:
            DuplicateActiveGrantError: If a non-deleted row already exists
            LedgerError: If the write fails
        """
        return await self._insert(
            GrantRecordModel(
                identity_key=identity_key,
                db_name="",
                db_user="",
                status=GrantStatus.FAILED.value,
                failure_reason=reason,
            )
        )

    async def _insert(self, model: GrantRecordModel) -> GrantRecord:
        with translate_store_errors("insert"):
            async with self._session_factory() as session:
                try:
                    async with session.begin():
                        session.add(model)
                        await session.flush()
                        record = self._to_domain(model)
                except IntegrityError as e:
                    # The partial unique index is the only constraint that can fire.
                    self._probe.duplicate_active_grant(model.identity_key)
                    raise DuplicateActiveGrantError(
                        f"Identity key '{model.identity_key}' already has an active grant"
                    ) from e

        self._probe.grant_recorded(record.identity_key, record.status.value)
        return record

    async def list_all(
        self, limit: int | None = None, offset: int = 0
    ) -> list[GrantRecord]:
        """List rows, newest first."""
        stmt = (
            select(GrantRecordModel)
            .order_by(GrantRecordModel.created_at.desc(), GrantRecordModel.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._list(stmt, "list_all")

    async def list_recent(self, n: int) -> list[GrantRecord]:
        """List the ``n`` newest rows."""
        return await self.list_all(limit=n)

    async def list_active(self) -> list[GrantRecord]:
        """List rows that claim a live external grant."""
        stmt = (
            select(GrantRecordModel)
            .where(
                GrantRecordModel.status == GrantStatus.SUCCESS.value,
                GrantRecordModel.deleted_at.is_(None),
            )
            .order_by(GrantRecordModel.id)
        )
        return await self._list(stmt, "list_active")

    async def _list(self, stmt, operation: str) -> list[GrantRecord]:
        with translate_store_errors(operation):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                records = [self._to_domain(model) for model in result.scalars().all()]

        self._probe.records_listed(len(records))
        return records

    def _predicate_clause(
        self, predicate: LedgerCountPredicate, now: datetime
    ) -> ColumnElement[bool] | None:
        match LedgerCountPredicate(predicate):
            case LedgerCountPredicate.TOTAL:
                return None
            case LedgerCountPredicate.TODAY:
                start = now.replace(hour=0, minute=0, second=0, microsecond=0)
                return GrantRecordModel.created_at >= start
            case LedgerCountPredicate.WEEK:
                return GrantRecordModel.created_at >= now - WEEK_WINDOW
            case LedgerCountPredicate.MONTH:
                start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
                return GrantRecordModel.created_at >= start
            case _:
                return GrantRecordModel.status == GrantStatus(predicate.value).value

    async def _count(
        self,
        session: AsyncSession,
        predicate: LedgerCountPredicate,
        now: datetime,
    ) -> int:
        stmt = select(func.count()).select_from(GrantRecordModel)
        clause = self._predicate_clause(predicate, now)
        if clause is not None:
            stmt = stmt.where(clause)
        return int(await session.scalar(stmt) or 0)

    async def count_by(self, predicate: LedgerCountPredicate) -> int:
        """Count rows matching a predicate.

        Time windows are computed in UTC: ``today`` since midnight, ``week``
        over the last seven days, ``month`` since the first of the month.
        """
        with translate_store_errors("count_by"):
            async with self._session_factory() as session:
                return await self._count(session, predicate, self._clock())

    async def stats(self) -> LedgerStats:
        """Return every counter at once."""
        now = self._clock()
        with translate_store_errors("stats"):
            async with self._session_factory() as session:
                counts = {
                    predicate.value: await self._count(session, predicate, now)
                    for predicate in LedgerCountPredicate
                }
        return LedgerStats(**counts)

    async def mark_deleted(self, identity_key: str, reason: str) -> GrantRecord:
        """Flip the key's non-deleted row to deleted.

        Raises:
            GrantRecordNotFoundError: If no non-deleted row exists
            LedgerError: If the write fails
        """
        stmt = (
            select(GrantRecordModel)
            .where(*_active_rows(identity_key))
            .order_by(GrantRecordModel.id.desc())
        )
        with translate_store_errors("mark_deleted"):
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    model = result.scalars().first()
                    if model is None:
                        self._probe.grant_record_not_found(identity_key)
                        raise GrantRecordNotFoundError(
                            f"No active grant record for '{identity_key}'"
                        )

                    model.status = GrantStatus.DELETED.value
                    model.deleted_at = self._clock()
                    model.deletion_reason = reason
                    await session.flush()
                    record = self._to_domain(model)

        self._probe.grant_marked_deleted(identity_key, reason)
        return record

    async def remove(self, identity_key: str) -> int:
        """Hard-delete the key's non-deleted rows.

        Returns:
            Number of rows removed
        """
        stmt = delete(GrantRecordModel).where(*_active_rows(identity_key))
        with translate_store_errors("remove"):
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    removed = result.rowcount or 0

        self._probe.grant_records_removed(identity_key, removed)
        return removed

    async def ping(self) -> None:
        """Check connectivity.

        Raises:
            LedgerError: If the store cannot be reached
        """
        with translate_store_errors("ping"):
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))

    @staticmethod
    def _to_domain(model: GrantRecordModel) -> GrantRecord:
        return GrantRecord(
            id=model.id,
            identity_key=model.identity_key,
            db_name=model.db_name,
            db_user=model.db_user,
            status=GrantStatus(model.status),
            created_at=as_utc(model.created_at),
            failure_reason=model.failure_reason,
            deleted_at=as_utc(model.deleted_at),
            deletion_reason=model.deletion_reason,
        )
