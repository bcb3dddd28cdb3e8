"""Administrative operations over the ledger, the allowlist and the grants.

Every operation returns an ``ApiResponse``. Store failures are logged
through the probe and reported as ``INTERNAL_ERROR`` without detail.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from provisioning.application.envelope import ApiResponse, StatusCode
from provisioning.application.observability import (
    AdminServiceProbe,
    DefaultAdminServiceProbe,
)
from provisioning.application.reconciler import ConsistencyReconciler, ReconcileReport
from provisioning.domain.aggregates import (
    AllowlistEntry,
    GrantRecord,
    parse_allowlist_import,
)
from provisioning.domain.exceptions import (
    InvalidIdentityKeyError,
    UnsafeIdentifierError,
)
from provisioning.domain.validation import IdentifierValidator
from provisioning.domain.value_objects import (
    AllowlistStats,
    GrantStatus,
    ImportResult,
    LedgerStats,
    ResourceNames,
)
from provisioning.ports.exceptions import (
    AllowlistEntryNotFoundError,
    DuplicateAllowlistEntryError,
    GrantEngineError,
    GrantRecordNotFoundError,
    LedgerError,
)
from provisioning.ports.grant_engine import IGrantEngine
from provisioning.ports.repositories import IAllowlistRepository, ILedgerRepository

DEFAULT_PAGE_LIMIT = 100
MAX_PAGE_LIMIT = 500
PUBLIC_LISTING_LIMIT = 50
RECENT_APPLICATIONS = 10

STATUS_OK = "ok"
STATUS_UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class PublicApplication:
    """A ledger row with everything but the masked key stripped."""

    id: int | None
    masked_identity_key: str
    status: GrantStatus
    created_at: datetime | None

    @classmethod
    def from_record(cls, record: GrantRecord) -> PublicApplication:
        """Build the public view of a ledger row."""
        return cls(
            id=record.id,
            masked_identity_key=record.masked_identity_key,
            status=record.status,
            created_at=record.created_at,
        )


@dataclass(frozen=True)
class ApplicationStats:
    """Ledger counters plus the most recent rows."""

    counts: LedgerStats
    recent: list[GrantRecord]


@dataclass(frozen=True)
class SystemStatus:
    """Connectivity of both stores and headline counters."""

    ledger_status: str
    mysql_status: str
    total_applications: int | None
    today_applications: int | None
    version: str


@dataclass(frozen=True)
class Page:
    """Normalized pagination window."""

    limit: int
    offset: int


def normalize_page(limit: int | None = None, offset: int | None = None) -> Page:
    """Apply pagination defaults and the limit cap.

    Raises:
        ValueError: If limit is below 1 or offset is negative
    """
    limit = DEFAULT_PAGE_LIMIT if limit is None else limit
    offset = 0 if offset is None else offset
    if limit < 1:
        raise ValueError("limit must be at least 1")
    if offset < 0:
        raise ValueError("offset must not be negative")
    return Page(limit=min(limit, MAX_PAGE_LIMIT), offset=offset)


class AdminService:
    """Application service behind the admin surface.

    Deleting a user tears the grant down first and only then marks the
    ledger row deleted, so a failed teardown leaves the row active and the
    deletion can be retried.
    """

    def __init__(
        self,
        validator: IdentifierValidator,
        ledger: ILedgerRepository,
        allowlist: IAllowlistRepository,
        grant_engine: IGrantEngine,
        reconciler: ConsistencyReconciler,
        version: str,
        probe: AdminServiceProbe | None = None,
    ):
        """Initialize the service.

        Args:
            validator: Identity key validator and name deriver
            ledger: Ledger repository
            allowlist: Allowlist repository
            grant_engine: Grant engine for the shared MySQL server
            reconciler: Reconciler run by ``repair``
            version: Service version reported by ``system_status``
            probe: Optional domain probe for observability
        """
        self._validator = validator
        self._ledger = ledger
        self._allowlist = allowlist
        self._grant_engine = grant_engine
        self._reconciler = reconciler
        self._version = version
        self._probe = probe or DefaultAdminServiceProbe()

    def _internal_error(self, operation: str, error: Exception) -> ApiResponse:
        self._probe.operation_failed(operation, error)
        return ApiResponse.error(StatusCode.INTERNAL_ERROR)

    # Users and grants

    async def delete_user(self, raw_key: str, reason: str) -> ApiResponse[None]:
        """Tear down a key's grant and mark its ledger row deleted.

        Args:
            raw_key: Identity key of the grant
            reason: Why the grant is being removed

        Returns:
            Success, INVALID_INPUT, NOT_FOUND if no active row exists, or
            INTERNAL_ERROR if teardown was incomplete
        """
        reason = (reason or "").strip()
        try:
            key = self._validator.validate(raw_key)
        except InvalidIdentityKeyError:
            return ApiResponse.error(StatusCode.INVALID_INPUT)
        if not reason:
            return ApiResponse.error(StatusCode.INVALID_INPUT)

        try:
            record = await self._ledger.get_active(key.value)
        except LedgerError as e:
            return self._internal_error("delete_user", e)
        if record is None:
            return ApiResponse.error(StatusCode.NOT_FOUND)

        # A key too long for MySQL names never created anything external.
        names: ResourceNames | None
        try:
            names = self._validator.resource_names(key)
        except UnsafeIdentifierError:
            names = None

        if names is not None:
            try:
                result = await self._grant_engine.teardown(names)
            except GrantEngineError as e:
                return self._internal_error("delete_user", e)
            if not result.clean:
                self._probe.teardown_incomplete(
                    key.value, {step.value: msg for step, msg in result.errors.items()}
                )
                return ApiResponse.error(StatusCode.INTERNAL_ERROR)

        try:
            await self._ledger.mark_deleted(key.value, reason)
        except GrantRecordNotFoundError:
            return ApiResponse.error(StatusCode.NOT_FOUND)
        except LedgerError as e:
            return self._internal_error("delete_user", e)

        self._probe.user_deleted(key.value, reason)
        return ApiResponse.success(message="User deleted")

    async def list_applicants(self) -> ApiResponse[list[GrantRecord]]:
        """List every ledger row, newest first."""
        try:
            records = await self._ledger.list_all()
        except LedgerError as e:
            return self._internal_error("list_applicants", e)
        return ApiResponse.success(records)

    async def list_users(self) -> ApiResponse[list[GrantRecord]]:
        """List rows that claim a live grant."""
        try:
            records = await self._ledger.list_active()
        except LedgerError as e:
            return self._internal_error("list_users", e)
        return ApiResponse.success(records)

    async def public_applications(
        self, limit: int = PUBLIC_LISTING_LIMIT
    ) -> ApiResponse[list[PublicApplication]]:
        """List recent rows with masked keys and no resource names."""
        try:
            records = await self._ledger.list_recent(limit)
        except LedgerError as e:
            return self._internal_error("public_applications", e)
        return ApiResponse.success([PublicApplication.from_record(r) for r in records])

    async def application_stats(self) -> ApiResponse[ApplicationStats]:
        """Ledger counters and the ten most recent rows."""
        try:
            counts = await self._ledger.stats()
            recent = await self._ledger.list_recent(RECENT_APPLICATIONS)
        except LedgerError as e:
            return self._internal_error("application_stats", e)
        return ApiResponse.success(ApplicationStats(counts=counts, recent=recent))

    async def system_status(self) -> ApiResponse[SystemStatus]:
        """Report connectivity of both stores.

        An unreachable store is reported in the data, not as an error.
        """
        total: int | None = None
        today: int | None = None
        try:
            await self._ledger.ping()
            stats = await self._ledger.stats()
        except LedgerError as e:
            self._probe.operation_failed("system_status.ledger", e)
            ledger_status = STATUS_UNAVAILABLE
        else:
            ledger_status = STATUS_OK
            total, today = stats.total, stats.today

        try:
            await self._grant_engine.ping()
        except GrantEngineError as e:
            self._probe.operation_failed("system_status.mysql", e)
            mysql_status = STATUS_UNAVAILABLE
        else:
            mysql_status = STATUS_OK

        return ApiResponse.success(
            SystemStatus(
                ledger_status=ledger_status,
                mysql_status=mysql_status,
                total_applications=total,
                today_applications=today,
                version=self._version,
            )
        )

    async def repair(self) -> ApiResponse[ReconcileReport]:
        """Run one reconciliation pass."""
        try:
            report = await self._reconciler.run()
        except LedgerError as e:
            return self._internal_error("repair", e)
        return ApiResponse.success(report)

    # Allowlist

    async def list_allowlist(
        self, limit: int | None = None, offset: int | None = None
    ) -> ApiResponse[list[AllowlistEntry]]:
        """List allowlist entries, newest first."""
        try:
            page = normalize_page(limit, offset)
        except ValueError:
            return ApiResponse.error(StatusCode.INVALID_INPUT)
        try:
            entries = await self._allowlist.list_entries(page.limit, page.offset)
        except LedgerError as e:
            return self._internal_error("list_allowlist", e)
        return ApiResponse.success(entries)

    async def add_allowlist_entry(
        self,
        raw_key: str,
        display_name: str | None = None,
        group_info: str | None = None,
    ) -> ApiResponse[AllowlistEntry]:
        """Allowlist a key after checking it against the active policy."""
        try:
            key = self._validator.validate(raw_key)
        except InvalidIdentityKeyError:
            return ApiResponse.error(StatusCode.INVALID_INPUT)
        try:
            entry = await self._allowlist.add(key.value, display_name, group_info)
        except DuplicateAllowlistEntryError:
            return ApiResponse.error(StatusCode.ALLOWLIST_ENTRY_EXISTS)
        except LedgerError as e:
            return self._internal_error("add_allowlist_entry", e)
        return ApiResponse.success(entry)

    async def update_allowlist_entry(
        self,
        entry_id: int,
        display_name: str | None,
        group_info: str | None,
    ) -> ApiResponse[AllowlistEntry]:
        """Replace an entry's descriptive fields."""
        try:
            entry = await self._allowlist.update(entry_id, display_name, group_info)
        except AllowlistEntryNotFoundError:
            return ApiResponse.error(StatusCode.NOT_FOUND)
        except LedgerError as e:
            return self._internal_error("update_allowlist_entry", e)
        return ApiResponse.success(entry)

    async def delete_allowlist_entry(self, entry_id: int) -> ApiResponse[None]:
        """Delete an entry unless it still backs an active grant.

        The grant has to be deleted first, so no live database is left
        without an allowlist entry.
        """
        try:
            entry = await self._allowlist.get(entry_id)
            if entry is None:
                return ApiResponse.error(StatusCode.NOT_FOUND)
            if entry.has_applied and await self._ledger.exists_active(entry.identity_key):
                self._probe.allowlist_entry_in_use(entry_id, entry.identity_key)
                return ApiResponse.error(StatusCode.ALLOWLIST_ENTRY_IN_USE)
            await self._allowlist.delete(entry_id)
        except AllowlistEntryNotFoundError:
            return ApiResponse.error(StatusCode.NOT_FOUND)
        except LedgerError as e:
            return self._internal_error("delete_allowlist_entry", e)
        return ApiResponse.success(message="Allowlist entry deleted")

    async def batch_import(
        self, text: str, overwrite_existing: bool = False
    ) -> ApiResponse[ImportResult]:
        """Import allowlist entries from ``key[,display_name[,group_info]]`` lines.

        Bad lines are reported by line number and do not stop the import.

        Args:
            text: Import text, one entry per line
            overwrite_existing: Update descriptive fields of keys that are
                already allowlisted instead of reporting them

        Returns:
            Counts of imported and updated entries plus per-line errors
        """
        imported = 0
        updated = 0
        errors: list[str] = []

        for row in parse_allowlist_import(text):
            prefix = f"Line {row.line_number}"
            if not self._validator.is_valid(row.identity_key):
                errors.append(f"{prefix}: invalid identity key '{row.identity_key}'")
                continue
            try:
                existing = await self._allowlist.get_by_key(row.identity_key)
                if existing is None:
                    await self._allowlist.add(
                        row.identity_key, row.display_name, row.group_info
                    )
                    imported += 1
                elif overwrite_existing:
                    await self._allowlist.update_by_key(
                        row.identity_key, row.display_name, row.group_info
                    )
                    updated += 1
                else:
                    errors.append(f"{prefix}: identity key '{row.identity_key}' already exists")
            except DuplicateAllowlistEntryError:
                errors.append(f"{prefix}: identity key '{row.identity_key}' already exists")
            except (AllowlistEntryNotFoundError, LedgerError) as e:
                self._probe.operation_failed("batch_import", e)
                errors.append(f"{prefix}: entry could not be saved")

        self._probe.batch_import_completed(imported, updated, len(errors))
        return ApiResponse.success(
            ImportResult(imported=imported, updated=updated, errors=errors)
        )

    async def allowlist_stats(self) -> ApiResponse[AllowlistStats]:
        """Total, applied and not-yet-applied counts."""
        try:
            stats = await self._allowlist.stats()
        except LedgerError as e:
            return self._internal_error("allowlist_stats", e)
        return ApiResponse.success(stats)
