"""Domain probe for grant engine operations against the MySQL server.

No method takes a password argument; credentials never reach the logs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class GrantEngineProbe(Protocol):
    """Domain probe for grant engine operations."""

    def step_completed(self, step: str, database: str, user: str) -> None:
        """Record that a grant statement succeeded."""
        ...

    def step_failed(self, step: str, database: str, user: str, error: Exception) -> None:
        """Record that a grant statement failed and aborted creation."""
        ...

    def revoke_failed(self, user: str, error: Exception) -> None:
        """Record that the best-effort revoke failed."""
        ...

    def resource_created(self, database: str, user: str, host: str) -> None:
        """Record that a scoped database and account were created."""
        ...

    def teardown_completed(self, database: str, user: str, errors: dict[str, str]) -> None:
        """Record the outcome of a teardown."""
        ...

    def resource_checked(
        self, database: str, user: str, db_exists: bool, user_exists: bool
    ) -> None:
        """Record a live catalog lookup."""
        ...

    def with_context(self, context: ObservationContext) -> GrantEngineProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultGrantEngineProbe:
    """Default implementation of GrantEngineProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultGrantEngineProbe:
        """Create a new probe with observation context bound."""
        return DefaultGrantEngineProbe(logger=self._logger, context=context)

    def step_completed(self, step: str, database: str, user: str) -> None:
        """Record that a grant statement succeeded."""
        self._logger.debug(
            "grant_step_completed",
            step=step,
            database=database,
            user=user,
            **self._get_context_kwargs(),
        )

    def step_failed(self, step: str, database: str, user: str, error: Exception) -> None:
        """Record that a grant statement failed and aborted creation."""
        self._logger.error(
            "grant_step_failed",
            step=step,
            database=database,
            user=user,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def revoke_failed(self, user: str, error: Exception) -> None:
        """Record that the best-effort revoke failed."""
        self._logger.warning(
            "grant_revoke_failed",
            user=user,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def resource_created(self, database: str, user: str, host: str) -> None:
        """Record that a scoped database and account were created."""
        self._logger.info(
            "scoped_resource_created",
            database=database,
            user=user,
            host=host,
            **self._get_context_kwargs(),
        )

    def teardown_completed(self, database: str, user: str, errors: dict[str, str]) -> None:
        """Record the outcome of a teardown."""
        if errors:
            self._logger.error(
                "teardown_incomplete",
                database=database,
                user=user,
                errors=errors,
                **self._get_context_kwargs(),
            )
            return
        self._logger.info(
            "teardown_completed",
            database=database,
            user=user,
            **self._get_context_kwargs(),
        )

    def resource_checked(
        self, database: str, user: str, db_exists: bool, user_exists: bool
    ) -> None:
        """Record a live catalog lookup."""
        self._logger.debug(
            "scoped_resource_checked",
            database=database,
            user=user,
            db_exists=db_exists,
            user_exists=user_exists,
            **self._get_context_kwargs(),
        )
