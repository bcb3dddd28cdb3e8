"""Repository protocols (ports) for the provisioning bounded context.

The ledger is the durable record of every provisioning attempt; the
allowlist holds the identity keys that may provision. Both live in the
same local store and every write is committed before the call returns.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from provisioning.domain.aggregates import AllowlistEntry, GrantRecord
from provisioning.domain.value_objects import (
    AllowlistStats,
    LedgerCountPredicate,
    LedgerStats,
)


@runtime_checkable
class ILedgerRepository(Protocol):
    """Repository for ledger rows (Grant Records)."""

    async def exists_active(self, identity_key: str) -> bool:
        """Return whether a non-deleted row exists for the key."""
        ...

    async def get_active(self, identity_key: str) -> GrantRecord | None:
        """Return the non-deleted row for the key, if any."""
        ...

    async def insert_success(
        self, identity_key: str, db_name: str, db_user: str
    ) -> GrantRecord:
        """Append a success row.

        Raises:
            DuplicateActiveGrantError: If a non-deleted row already exists
            LedgerError: If the write fails
        """
        ...

    async def insert_failure(self, identity_key: str, reason: str) -> GrantRecord:
        """Append a failure row with empty resource names.

        Raises:
            DuplicateActiveGrantError: If a non-deleted row already exists
            LedgerError: If the write fails
        """
        ...

    async def list_all(self, limit: int | None = None, offset: int = 0) -> list[GrantRecord]:
        """List rows, newest first."""
        ...

    async def list_recent(self, n: int) -> list[GrantRecord]:
        """List the ``n`` newest rows."""
        ...

    async def list_active(self) -> list[GrantRecord]:
        """List rows that claim a live external grant."""
        ...

    async def count_by(self, predicate: LedgerCountPredicate) -> int:
        """Count rows matching a predicate."""
        ...

    async def stats(self) -> LedgerStats:
        """Return every counter at once."""
        ...

    async def mark_deleted(self, identity_key: str, reason: str) -> GrantRecord:
        """Flip the key's non-deleted row to deleted.

        Raises:
            GrantRecordNotFoundError: If no non-deleted row exists
            LedgerError: If the write fails
        """
        ...

    async def remove(self, identity_key: str) -> int:
        """Hard-delete the key's non-deleted rows.

        Used only by the reconciler.

        Returns:
            Number of rows removed
        """
        ...

    async def ping(self) -> None:
        """Check connectivity.

        Raises:
            LedgerError: If the store cannot be reached
        """
        ...


@runtime_checkable
class IAllowlistRepository(Protocol):
    """Repository for allowlist entries."""

    async def get(self, entry_id: int) -> AllowlistEntry | None:
        """Fetch an entry by id."""
        ...

    async def get_by_key(self, identity_key: str) -> AllowlistEntry | None:
        """Fetch an entry by identity key."""
        ...

    async def is_eligible(self, identity_key: str) -> bool:
        """Return whether the key is allowlisted and has not applied yet."""
        ...

    async def mark_applied(self, identity_key: str, db_name: str) -> bool:
        """Flip the entry to applied.

        Returns:
            True if the entry flipped, False if it was missing or already applied
        """
        ...

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
        ...

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
        ...

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
        ...

    async def delete(self, entry_id: int) -> None:
        """Delete an entry.

        Raises:
            AllowlistEntryNotFoundError: If the entry does not exist
        """
        ...

    async def list_entries(self, limit: int, offset: int = 0) -> list[AllowlistEntry]:
        """List entries, newest first."""
        ...

    async def stats(self) -> AllowlistStats:
        """Return total and applied counts."""
        ...
