"""SQLAlchemy implementation of IAllowlistRepository."""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from provisioning.domain.aggregates import AllowlistEntry
from provisioning.domain.value_objects import AllowlistStats
from provisioning.infrastructure.ledger_repository import as_utc, translate_store_errors
from provisioning.infrastructure.models import AllowlistEntryModel
from provisioning.infrastructure.observability import (
    AllowlistRepositoryProbe,
    DefaultAllowlistRepositoryProbe,
)
from provisioning.ports.exceptions import (
    AllowlistEntryNotFoundError,
    DuplicateAllowlistEntryError,
)
from provisioning.ports.repositories import IAllowlistRepository


class AllowlistRepository(IAllowlistRepository):
    """Repository managing allowlist entries in the ledger store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        probe: AllowlistRepositoryProbe | None = None,
    ) -> None:
        """Initialize repository with a session factory.

        Args:
            session_factory: Factory producing sessions on the ledger engine
            probe: Optional domain probe for observability
        """
        self._session_factory = session_factory
        self._probe = probe or DefaultAllowlistRepositoryProbe()

    async def get(self, entry_id: int) -> AllowlistEntry | None:
        """Fetch an entry by id."""
        with translate_store_errors("allowlist_get"):
            async with self._session_factory() as session:
                model = await session.get(AllowlistEntryModel, entry_id)
                return self._to_domain(model) if model else None

    async def get_by_key(self, identity_key: str) -> AllowlistEntry | None:
        """Fetch an entry by identity key."""
        stmt = select(AllowlistEntryModel).where(
            AllowlistEntryModel.identity_key == identity_key
        )
        with translate_store_errors("allowlist_get_by_key"):
            async with self._session_factory() as session:
                model = await session.scalar(stmt)
                return self._to_domain(model) if model else None

    async def is_eligible(self, identity_key: str) -> bool:
        """Return whether the key is allowlisted and has not applied yet."""
        entry = await self.get_by_key(identity_key)
        return entry is not None and entry.is_eligible

    async def mark_applied(self, identity_key: str, db_name: str) -> bool:
        """Flip the entry to applied.

        The update only matches entries that have not applied yet, so an
        entry flips exactly once.

        Returns:
            True if the entry flipped, False if it was missing or already applied
        """
        stmt = (
            update(AllowlistEntryModel)
            .where(
                AllowlistEntryModel.identity_key == identity_key,
                AllowlistEntryModel.has_applied.is_(False),
            )
            .values(has_applied=True, applied_db_name=db_name)
        )
        with translate_store_errors("allowlist_mark_applied"):
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    flipped = bool(result.rowcount)

        if flipped:
            self._probe.entry_marked_applied(identity_key, db_name)
        else:
            self._probe.entry_not_found(identity_key)
        return flipped

    async def add(
        self,
        identity_key: str,
        display_name: str | None = None,
        group_info: str | None = None,
    ) -> AllowlistEntry:
        """Add an entry.

        Raises:
            DuplicateAllowlistEntryError: If the key is already allowlisted
        """
        model = AllowlistEntryModel(
            identity_key=identity_key,
            display_name=display_name,
            group_info=group_info,
            has_applied=False,
        )
        with translate_store_errors("allowlist_add"):
            async with self._session_factory() as session:
                try:
                    async with session.begin():
                        session.add(model)
                        await session.flush()
                        entry = self._to_domain(model)
                except IntegrityError as e:
                    self._probe.duplicate_entry(identity_key)
                    raise DuplicateAllowlistEntryError(
                        f"Identity key '{identity_key}' is already allowlisted"
                    ) from e

        self._probe.entry_added(identity_key)
        return entry

    async def update(
        self,
        entry_id: int,
        display_name: str | None,
        group_info: str | None,
    ) -> AllowlistEntry:
        """Replace an entry's descriptive fields.

        Raises:
            AllowlistEntryNotFoundError: If the entry does not exist
        """
        stmt = select(AllowlistEntryModel).where(AllowlistEntryModel.id == entry_id)
        return await self._update(stmt, str(entry_id), display_name, group_info)

    async def update_by_key(
        self,
        identity_key: str,
        display_name: str | None,
        group_info: str | None,
    ) -> AllowlistEntry:
        """Replace descriptive fields of the entry for a key.

        Raises:
            AllowlistEntryNotFoundError: If the key is not allowlisted
        """
        stmt = select(AllowlistEntryModel).where(
            AllowlistEntryModel.identity_key == identity_key
        )
        return await self._update(stmt, identity_key, display_name, group_info)

    async def _update(
        self,
        stmt,
        reference: str,
        display_name: str | None,
        group_info: str | None,
    ) -> AllowlistEntry:
        with translate_store_errors("allowlist_update"):
            async with self._session_factory() as session:
                async with session.begin():
                    model = await session.scalar(stmt)
                    if model is None:
                        self._probe.entry_not_found(reference)
                        raise AllowlistEntryNotFoundError(
                            f"Allowlist entry '{reference}' not found"
                        )
                    model.display_name = display_name
                    model.group_info = group_info
                    await session.flush()
                    entry = self._to_domain(model)

        self._probe.entry_updated(entry.identity_key)
        return entry

    async def delete(self, entry_id: int) -> None:
        """Delete an entry.

        Raises:
            AllowlistEntryNotFoundError: If the entry does not exist
        """
        with translate_store_errors("allowlist_delete"):
            async with self._session_factory() as session:
                async with session.begin():
                    model = await session.get(AllowlistEntryModel, entry_id)
                    if model is None:
                        self._probe.entry_not_found(str(entry_id))
                        raise AllowlistEntryNotFoundError(
                            f"Allowlist entry '{entry_id}' not found"
                        )
                    identity_key = model.identity_key
                    await session.delete(model)

        self._probe.entry_deleted(identity_key)

    async def list_entries(self, limit: int, offset: int = 0) -> list[AllowlistEntry]:
        """List entries, newest first."""
        stmt = (
            select(AllowlistEntryModel)
            .order_by(AllowlistEntryModel.created_at.desc(), AllowlistEntryModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        with translate_store_errors("allowlist_list"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [self._to_domain(model) for model in result.scalars().all()]

    async def stats(self) -> AllowlistStats:
        """Return total and applied counts."""
        total_stmt = select(func.count()).select_from(AllowlistEntryModel)
        applied_stmt = total_stmt.where(AllowlistEntryModel.has_applied.is_(True))
        with translate_store_errors("allowlist_stats"):
            async with self._session_factory() as session:
                total = await session.scalar(total_stmt)
                applied = await session.scalar(applied_stmt)
        return AllowlistStats(total=int(total or 0), applied=int(applied or 0))

    @staticmethod
    def _to_domain(model: AllowlistEntryModel) -> AllowlistEntry:
        return AllowlistEntry(
            id=model.id,
            identity_key=model.identity_key,
            display_name=model.display_name,
            group_info=model.group_info,
            has_applied=model.has_applied,
            applied_db_name=model.applied_db_name,
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )
