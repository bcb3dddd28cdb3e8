"""Domain probes for infrastructure observability.

Domain probes provide a high-level instrumentation API oriented around
domain semantics, keeping infrastructure code clean and testable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ConnectionProbe(Protocol):
    """Domain probe for store connection observability.

    Covers both stores the service talks to: the local ledger and the
    shared MySQL server. The ``store`` argument names which one.
    """

    def engine_created(self, store: str, url: str, pool_size: int | None) -> None:
        """Record that a connection pool was configured for a store."""
        ...

    def connection_established(self, store: str, attempt: int) -> None:
        """Record that a store answered a connectivity check."""
        ...

    def connection_failed(
        self, store: str, attempt: int, max_attempts: int, error: Exception
    ) -> None:
        """Record that a connection attempt to a store failed."""
        ...

    def retry_scheduled(self, store: str, attempt: int, delay: float) -> None:
        """Record that a new connection attempt will follow after a delay."""
        ...

    def schema_ensured(self, store: str) -> None:
        """Record that the ledger schema was created or already present."""
        ...

    def pool_closed(self, store: str) -> None:
        """Record that a store's connection pool was disposed."""
        ...

    def with_context(self, context: ObservationContext) -> ConnectionProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultConnectionProbe:
    """Default implementation of ConnectionProbe using structlog.

    Supports observation context for including request-scoped metadata
    with all log events.
    """

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

    def with_context(self, context: ObservationContext) -> DefaultConnectionProbe:
        """Create a new probe with observation context bound."""
        return DefaultConnectionProbe(logger=self._logger, context=context)

    def engine_created(self, store: str, url: str, pool_size: int | None) -> None:
        """Record that a connection pool was configured for a store."""
        self._logger.info(
            "database_engine_created",
            store=store,
            url=url,
            pool_size=pool_size,
            **self._get_context_kwargs(),
        )

    def connection_established(self, store: str, attempt: int) -> None:
        """Record that a store answered a connectivity check."""
        self._logger.info(
            "database_connection_established",
            store=store,
            attempt=attempt,
            **self._get_context_kwargs(),
        )

    def connection_failed(
        self, store: str, attempt: int, max_attempts: int, error: Exception
    ) -> None:
        """Record that a connection attempt to a store failed."""
        self._logger.error(
            "database_connection_failed",
            store=store,
            attempt=attempt,
            max_attempts=max_attempts,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def retry_scheduled(self, store: str, attempt: int, delay: float) -> None:
        """Record that a new connection attempt will follow after a delay."""
        self._logger.warning(
            "database_connection_retry_scheduled",
            store=store,
            next_attempt=attempt,
            delay_seconds=delay,
            **self._get_context_kwargs(),
        )

    def schema_ensured(self, store: str) -> None:
        """Record that the ledger schema was created or already present."""
        self._logger.info(
            "database_schema_ensured",
            store=store,
            **self._get_context_kwargs(),
        )

    def pool_closed(self, store: str) -> None:
        """Record that a store's connection pool was disposed."""
        self._logger.info(
            "connection_pool_closed",
            store=store,
            **self._get_context_kwargs(),
        )
