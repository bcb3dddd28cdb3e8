"""Consistency reconciler.

Cross-checks every ledger row that claims a live grant against the MySQL
server and repairs divergence in one direction only: the server is ground
truth. A row whose database or user is missing is removed from the ledger,
then whatever remains on the server is torn down.

Reconciliation only runs when an admin asks for it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum

from provisioning.application.observability import (
    DefaultReconcilerProbe,
    ReconcilerProbe,
)
from provisioning.domain.aggregates import GrantRecord
from provisioning.domain.exceptions import (
    InvalidIdentityKeyError,
    UnsafeIdentifierError,
)
from provisioning.domain.validation import IdentifierValidator
from provisioning.domain.value_objects import ResourceNames, ResourceState
from provisioning.ports.exceptions import GrantEngineError, LedgerError
from provisioning.ports.grant_engine import IGrantEngine
from provisioning.ports.repositories import ILedgerRepository


class ReconcileStage(StrEnum):
    """Where a per-record reconcile error happened."""

    RESOLVE_NAMES = "resolve_names"
    CHECK = "check"
    REMOVE = "remove"


@dataclass(frozen=True)
class ReconcileEntry:
    """What the reconciler found and did for one ledger row.

    Only rows that were inconsistent or could not be checked get an entry.
    """

    identity_key: str
    db_name: str
    inconsistent: bool
    repaired: bool
    db_exists: bool | None = None
    user_exists: bool | None = None
    teardown_clean: bool | None = None
    error_stage: ReconcileStage | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        """Checking or repairing this row raised an error."""
        return self.error is not None


@dataclass(frozen=True)
class ReconcileReport:
    """Totals and per-record entries of one reconciliation pass."""

    checked: int = 0
    inconsistent: int = 0
    repaired: int = 0
    failed: int = 0
    entries: list[ReconcileEntry] = field(default_factory=list)

    @classmethod
    def from_entries(cls, checked: int, entries: list[ReconcileEntry]) -> ReconcileReport:
        """Aggregate per-record entries into a report."""
        return cls(
            checked=checked,
            inconsistent=sum(1 for e in entries if e.inconsistent),
            repaired=sum(1 for e in entries if e.repaired),
            failed=sum(1 for e in entries if e.failed),
            entries=entries,
        )


class ConsistencyReconciler:
    """Repairs ledger rows that have no complete grant on the server."""

    def __init__(
        self,
        ledger: ILedgerRepository,
        grant_engine: IGrantEngine,
        validator: IdentifierValidator,
        concurrency: int = 1,
        probe: ReconcilerProbe | None = None,
    ):
        """Initialize the reconciler.

        Args:
            ledger: Ledger repository
            grant_engine: Grant engine for the shared MySQL server
            validator: Rebuilds trusted names from stored identity keys
            concurrency: Maximum records checked at once (1 is sequential)
            probe: Optional domain probe for observability

        Raises:
            ValueError: If concurrency is not positive
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._ledger = ledger
        self._grant_engine = grant_engine
        self._validator = validator
        self._concurrency = concurrency
        self._probe = probe or DefaultReconcilerProbe()

    async def run(self) -> ReconcileReport:
        """Run one full reconciliation pass.

        Returns:
            Report of the pass. Per-record errors are entries, not raised.

        Raises:
            LedgerError: If the ledger rows cannot be listed at all
        """
        records = await self._ledger.list_active()
        self._probe.reconcile_started(len(records), self._concurrency)

        semaphore = asyncio.Semaphore(self._concurrency)

        async def bounded(record: GrantRecord) -> ReconcileEntry | None:
            async with semaphore:
                return await self._reconcile_record(record)

        results = await asyncio.gather(*(bounded(record) for record in records))
        entries = [entry for entry in results if entry is not None]

        report = ReconcileReport.from_entries(len(records), entries)
        self._probe.reconcile_completed(
            report.checked, report.inconsistent, report.repaired, report.failed
        )
        return report

    async def _reconcile_record(self, record: GrantRecord) -> ReconcileEntry | None:
        key = record.identity_key

        try:
            names = self._validator.resource_names(key)
        except (InvalidIdentityKeyError, UnsafeIdentifierError) as e:
            return self._failed(record, ReconcileStage.RESOLVE_NAMES, e, inconsistent=False)

        try:
            state = await self._grant_engine.resource_exists(names)
        except GrantEngineError as e:
            return self._failed(record, ReconcileStage.CHECK, e, inconsistent=False)

        if state.complete:
            return None

        self._probe.record_inconsistent(key, state.db_exists, state.user_exists)
        try:
            await self._ledger.remove(key)
        except LedgerError as e:
            return self._failed(record, ReconcileStage.REMOVE, e, inconsistent=True, state=state)

        teardown_clean = await self._teardown(names)
        self._probe.record_repaired(key, teardown_clean)
        return ReconcileEntry(
            identity_key=key,
            db_name=record.db_name,
            inconsistent=True,
            repaired=True,
            db_exists=state.db_exists,
            user_exists=state.user_exists,
            teardown_clean=teardown_clean,
        )

    async def _teardown(self, names: ResourceNames) -> bool:
        try:
            result = await self._grant_engine.teardown(names)
        except GrantEngineError:
            return False
        return result.clean

    def _failed(
        self,
        record: GrantRecord,
        stage: ReconcileStage,
        error: Exception,
        inconsistent: bool,
        state: ResourceState | None = None,
    ) -> ReconcileEntry:
        self._probe.record_failed(record.identity_key, stage.value, error)
        return ReconcileEntry(
            identity_key=record.identity_key,
            db_name=record.db_name,
            inconsistent=inconsistent,
            repaired=False,
            db_exists=state.db_exists if state else None,
            user_exists=state.user_exists if state else None,
            error_stage=stage,
            error=str(error),
        )
