"""Domain probes for ledger and allowlist repository operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class LedgerRepositoryProbe(Protocol):
    """Domain probe for ledger repository operations."""

    def grant_recorded(self, identity_key: str, status: str) -> None:
        """Record that a ledger row was appended."""
        ...

    def duplicate_active_grant(self, identity_key: str) -> None:
        """Record that the active-key index rejected an insert."""
        ...

    def grant_marked_deleted(self, identity_key: str, reason: str) -> None:
        """Record that a ledger row was flipped to deleted."""
        ...

    def grant_record_not_found(self, identity_key: str) -> None:
        """Record that no active row existed for a key."""
        ...

    def grant_records_removed(self, identity_key: str, count: int) -> None:
        """Record that rows were hard-deleted."""
        ...

    def records_listed(self, count: int) -> None:
        """Record that ledger rows were listed."""
        ...

    def with_context(self, context: ObservationContext) -> LedgerRepositoryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultLedgerRepositoryProbe:
    """Default implementation of LedgerRepositoryProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(
        self, context: ObservationContext
    ) -> DefaultLedgerRepositoryProbe:
        """Create a new probe with observation context bound."""
        return DefaultLedgerRepositoryProbe(logger=self._logger, context=context)

    def grant_recorded(self, identity_key: str, status: str) -> None:
        """Record that a ledger row was appended."""
        self._logger.info(
            "grant_recorded",
            identity_key=identity_key,
            status=status,
            **self._get_context_kwargs(),
        )

    def duplicate_active_grant(self, identity_key: str) -> None:
        """Record that the active-key index rejected an insert."""
        self._logger.warning(
            "duplicate_active_grant",
            identity_key=identity_key,
            **self._get_context_kwargs(),
        )

    def grant_marked_deleted(self, identity_key: str, reason: str) -> None:
        """Record that a ledger row was flipped to deleted."""
        self._logger.info(
            "grant_marked_deleted",
            identity_key=identity_key,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def grant_record_not_found(self, identity_key: str) -> None:
        """Record that no active row existed for a key."""
        self._logger.debug(
            "grant_record_not_found",
            identity_key=identity_key,
            **self._get_context_kwargs(),
        )

    def grant_records_removed(self, identity_key: str, count: int) -> None:
        """Record that rows were hard-deleted."""
        self._logger.warning(
            "grant_records_removed",
            identity_key=identity_key,
            count=count,
            **self._get_context_kwargs(),
        )

    def records_listed(self, count: int) -> None:
        """Record that ledger rows were listed."""
        self._logger.debug(
            "grant_records_listed",
            count=count,
            **self._get_context_kwargs(),
        )


class AllowlistRepositoryProbe(Protocol):
    """Domain probe for allowlist repository operations."""

    def entry_added(self, identity_key: str) -> None:
        """Record that an allowlist entry was added."""
        ...

    def entry_updated(self, identity_key: str) -> None:
        """Record that an allowlist entry was updated."""
        ...

    def entry_deleted(self, identity_key: str) -> None:
        """Record that an allowlist entry was deleted."""
        ...

    def entry_marked_applied(self, identity_key: str, db_name: str) -> None:
        """Record that an allowlist entry flipped to applied."""
        ...

    def duplicate_entry(self, identity_key: str) -> None:
        """Record that an add was rejected because the key exists."""
        ...

    def entry_not_found(self, reference: str) -> None:
        """Record that an allowlist entry was not found."""
        ...

    def with_context(self, context: ObservationContext) -> AllowlistRepositoryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultAllowlistRepositoryProbe:
    """Default implementation of AllowlistRepositoryProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(
        self, context: ObservationContext
    ) -> DefaultAllowlistRepositoryProbe:
        """Create a new probe with observation context bound."""
        return DefaultAllowlistRepositoryProbe(logger=self._logger, context=context)

    def entry_added(self, identity_key: str) -> None:
        """Record that an allowlist entry was added."""
        self._logger.info(
            "allowlist_entry_added",
            identity_key=identity_key,
            **self._get_context_kwargs(),
        )

    def entry_updated(self, identity_key: str) -> None:
        """Record that an allowlist entry was updated."""
        self._logger.info(
            "allowlist_entry_updated",
            identity_key=identity_key,
            **self._get_context_kwargs(),
        )

    def entry_deleted(self, identity_key: str) -> None:
        """Record that an allowlist entry was deleted."""
        self._logger.info(
            "allowlist_entry_deleted",
            identity_key=identity_key,
            **self._get_context_kwargs(),
        )

    def entry_marked_applied(self, identity_key: str, db_name: str) -> None:
        """Record that an allowlist entry flipped to applied."""
        self._logger.info(
            "allowlist_entry_marked_applied",
            identity_key=identity_key,
            db_name=db_name,
            **self._get_context_kwargs(),
        )

    def duplicate_entry(self, identity_key: str) -> None:
        """Record that an add was rejected because the key exists."""
        self._logger.warning(
            "duplicate_allowlist_entry",
            identity_key=identity_key,
            **self._get_context_kwargs(),
        )

    def entry_not_found(self, reference: str) -> None:
        """Record that an allowlist entry was not found."""
        self._logger.debug(
            "allowlist_entry_not_found",
            reference=reference,
            **self._get_context_kwargs(),
        )
