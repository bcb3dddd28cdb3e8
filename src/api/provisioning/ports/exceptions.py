"""Port-level exceptions for the provisioning bounded context.

These exceptions are raised by adapters (ledger, allowlist, grant engine)
and surface raw to the application layer, which alone decides whether to
compensate. Driver errors are chained as ``__cause__`` and never shown to
clients.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from provisioning.domain.value_objects import GrantStep


class LedgerError(Exception):
    """Raised when a ledger or allowlist operation fails in the store."""

    pass


class LedgerUnavailableError(LedgerError):
    """Raised when no ledger connection could be acquired in time.

    Transient: the caller may retry. The orchestrator itself never does.
    """

    pass


class DuplicateActiveGrantError(LedgerError):
    """Raised when an insert would create a second non-deleted row for a key.

    This is the ledger's partial unique index rejecting the loser of a
    concurrent provisioning race.
    """

    pass


class GrantRecordNotFoundError(Exception):
    """Raised when no non-deleted ledger row exists for an identity key.

    Deleting an already-deleted key raises this and changes nothing.
    """

    pass


class AllowlistEntryNotFoundError(Exception):
    """Raised when an allowlist entry cannot be found."""

    pass


class DuplicateAllowlistEntryError(Exception):
    """Raised when adding an identity key that is already allowlisted."""

    pass


class GrantEngineError(Exception):
    """Raised when the MySQL server rejects a grant operation.

    Carries the step that failed and the steps completed before it, so the
    orchestrator can tell whether anything needs tearing down.
    """

    def __init__(
        self,
        message: str,
        step: GrantStep | None = None,
        completed_steps: tuple[GrantStep, ...] = (),
    ):
        super().__init__(message)
        self.step = step
        self.completed_steps = completed_steps

    @property
    def partial(self) -> bool:
        """Some external state may exist."""
        return bool(self.completed_steps)


class GrantEngineUnavailableError(GrantEngineError):
    """Raised when no MySQL connection could be acquired or opened."""

    pass
