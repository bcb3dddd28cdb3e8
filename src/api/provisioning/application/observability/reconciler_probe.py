"""Protocol for consistency reconciler observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ReconcilerProbe(Protocol):
    """Domain probe for reconciliation passes."""

    def reconcile_started(self, count: int, concurrency: int) -> None:
        """Record that a pass started over ``count`` ledger rows."""
        ...

    def record_inconsistent(
        self, identity_key: str, db_exists: bool, user_exists: bool
    ) -> None:
        """Record that a ledger row has no complete external grant."""
        ...

    def record_repaired(self, identity_key: str, teardown_clean: bool) -> None:
        """Record that a stale ledger row was removed."""
        ...

    def record_failed(self, identity_key: str, stage: str, error: Exception) -> None:
        """Record that checking or repairing a row failed."""
        ...

    def reconcile_completed(
        self, checked: int, inconsistent: int, repaired: int, failed: int
    ) -> None:
        """Record the totals of a finished pass."""
        ...

    def with_context(self, context: ObservationContext) -> ReconcilerProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultReconcilerProbe:
    """Default implementation of ReconcilerProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultReconcilerProbe:
        """Create a new probe with observation context bound."""
        return DefaultReconcilerProbe(logger=self._logger, context=context)

    def reconcile_started(self, count: int, concurrency: int) -> None:
        """Record that a pass started over ``count`` ledger rows."""
        self._logger.info(
            "reconcile_started",
            count=count,
            concurrency=concurrency,
            **self._get_context_kwargs(),
        )

    def record_inconsistent(
        self, identity_key: str, db_exists: bool, user_exists: bool
    ) -> None:
        """Record that a ledger row has no complete external grant."""
        self._logger.warning(
            "reconcile_record_inconsistent",
            identity_key=identity_key,
            db_exists=db_exists,
            user_exists=user_exists,
            **self._get_context_kwargs(),
        )

    def record_repaired(self, identity_key: str, teardown_clean: bool) -> None:
        """Record that a stale ledger row was removed."""
        self._logger.info(
            "reconcile_record_repaired",
            identity_key=identity_key,
            teardown_clean=teardown_clean,
            **self._get_context_kwargs(),
        )

    def record_failed(self, identity_key: str, stage: str, error: Exception) -> None:
        """Record that checking or repairing a row failed."""
        self._logger.error(
            "reconcile_record_failed",
            identity_key=identity_key,
            stage=stage,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def reconcile_completed(
        self, checked: int, inconsistent: int, repaired: int, failed: int
    ) -> None:
        """Record the totals of a finished pass."""
        self._logger.info(
            "reconcile_completed",
            checked=checked,
            inconsistent=inconsistent,
            repaired=repaired,
            failed=failed,
            **self._get_context_kwargs(),
        )
