"""Protocol for admin service observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class AdminServiceProbe(Protocol):
    """Domain probe for administrative operations."""

    def user_deleted(self, identity_key: str, reason: str) -> None:
        """Record that a grant was torn down and marked deleted."""
        ...

    def teardown_incomplete(self, identity_key: str, errors: dict[str, str]) -> None:
        """Record that an admin teardown left errors; the row stays active."""
        ...

    def allowlist_entry_in_use(self, entry_id: int, identity_key: str) -> None:
        """Record that deleting an allowlist entry was blocked."""
        ...

    def batch_import_completed(self, imported: int, updated: int, errors: int) -> None:
        """Record the totals of a batch import."""
        ...

    def operation_failed(self, operation: str, error: Exception) -> None:
        """Record that an admin operation failed on the server side."""
        ...

    def with_context(self, context: ObservationContext) -> AdminServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultAdminServiceProbe:
    """Default implementation of AdminServiceProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultAdminServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultAdminServiceProbe(logger=self._logger, context=context)

    def user_deleted(self, identity_key: str, reason: str) -> None:
        """Record that a grant was torn down and marked deleted."""
        self._logger.info(
            "user_deleted",
            identity_key=identity_key,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def teardown_incomplete(self, identity_key: str, errors: dict[str, str]) -> None:
        """Record that an admin teardown left errors; the row stays active."""
        self._logger.error(
            "user_delete_teardown_incomplete",
            identity_key=identity_key,
            errors=errors,
            **self._get_context_kwargs(),
        )

    def allowlist_entry_in_use(self, entry_id: int, identity_key: str) -> None:
        """Record that deleting an allowlist entry was blocked."""
        self._logger.warning(
            "allowlist_entry_in_use",
            entry_id=entry_id,
            identity_key=identity_key,
            **self._get_context_kwargs(),
        )

    def batch_import_completed(self, imported: int, updated: int, errors: int) -> None:
        """Record the totals of a batch import."""
        self._logger.info(
            "allowlist_batch_import_completed",
            imported=imported,
            updated=updated,
            errors=errors,
            **self._get_context_kwargs(),
        )

    def operation_failed(self, operation: str, error: Exception) -> None:
        """Record that an admin operation failed on the server side."""
        self._logger.error(
            "admin_operation_failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )
