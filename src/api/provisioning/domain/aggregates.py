"""Aggregates for the provisioning domain."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from provisioning.domain.value_objects import GrantStatus

MASK = "****"
MASK_VISIBLE_PREFIX = 4


def mask_identity_key(identity_key: str) -> str:
    """Mask a key for public listings.

    Keeps the first four characters; keys of four characters or fewer are
    masked entirely.
    """
    if len(identity_key) <= MASK_VISIBLE_PREFIX:
        return MASK
    return identity_key[:MASK_VISIBLE_PREFIX] + MASK


@dataclass
class GrantRecord:
    """One ledger row: a single provisioning attempt and its fate.

    Business rules:
    - At most one row per identity key has a status other than ``deleted``
    - Failure rows carry empty database and user names
    - Only admin deletion or reconciler repair change a row after insert
    """

    id: int | None
    identity_key: str
    db_name: str
    db_user: str
    status: GrantStatus
    created_at: datetime | None = None
    failure_reason: str | None = None
    deleted_at: datetime | None = None
    deletion_reason: str | None = None

    @property
    def is_active(self) -> bool:
        """The row blocks a new provisioning attempt for its key."""
        return self.status is not GrantStatus.DELETED

    @property
    def is_live_grant(self) -> bool:
        """The row claims an external grant exists."""
        return self.status is GrantStatus.SUCCESS and self.deleted_at is None

    @property
    def masked_identity_key(self) -> str:
        """Identity key safe for public listings."""
        return mask_identity_key(self.identity_key)


@dataclass
class AllowlistEntry:
    """A pre-registered identity key that may provision once."""

    id: int | None
    identity_key: str
    display_name: str | None = None
    group_info: str | None = None
    has_applied: bool = False
    applied_db_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_eligible(self) -> bool:
        """The key may start a provisioning attempt."""
        return not self.has_applied


@dataclass(frozen=True)
class AllowlistImportRow:
    """One parsed line of a batch import."""

    line_number: int
    identity_key: str
    display_name: str | None = None
    group_info: str | None = None


def parse_allowlist_import(text: str) -> list[AllowlistImportRow]:
    """Parse batch import text.

    Each non-blank line is ``identity_key[,display_name[,group_info]]``.
    Fields are trimmed and empty optional fields become None. Key format is
    not checked here.

    Args:
        text: Raw import text

    Returns:
        Parsed rows with 1-based line numbers
    """
    rows: list[AllowlistImportRow] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        parts = [part.strip() for part in line.split(",")]
        rows.append(
            AllowlistImportRow(
                line_number=line_number,
                identity_key=parts[0],
                display_name=(parts[1] or None) if len(parts) > 1 else None,
                group_info=(parts[2] or None) if len(parts) > 2 else None,
            )
        )
    return rows
