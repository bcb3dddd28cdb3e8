"""Protocol for provisioning orchestrator observability.

Defines the interface for domain probes that capture each terminal state
of a provisioning request and every compensating action taken on the way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class OrchestratorProbe(Protocol):
    """Domain probe for provisioning orchestrator operations."""

    def provision_requested(self, identity_key: str) -> None:
        """Record that a provisioning request started."""
        ...

    def provision_rejected(self, identity_key: str, reason: str) -> None:
        """Record that a request ended in a client-side rejection."""
        ...

    def provision_succeeded(self, identity_key: str, db_name: str, db_user: str) -> None:
        """Record that a grant was created and recorded."""
        ...

    def provision_failed(self, identity_key: str, stage: str, error: Exception) -> None:
        """Record that a request failed on the server side."""
        ...

    def compensation_started(
        self, identity_key: str, stage: str, actions: list[str]
    ) -> None:
        """Record that compensating actions are about to run."""
        ...

    def compensation_failed(
        self, identity_key: str, action: str, error: Exception | str
    ) -> None:
        """Record that a compensating action did not fully succeed."""
        ...

    def allowlist_update_failed(self, identity_key: str, error: Exception) -> None:
        """Record that marking the allowlist entry applied failed."""
        ...

    def with_context(self, context: ObservationContext) -> OrchestratorProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultOrchestratorProbe:
    """Default implementation of OrchestratorProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultOrchestratorProbe:
        """Create a new probe with observation context bound."""
        return DefaultOrchestratorProbe(logger=self._logger, context=context)

    def provision_requested(self, identity_key: str) -> None:
        """Record that a provisioning request started."""
        self._logger.info(
            "provision_requested",
            identity_key=identity_key,
            **self._get_context_kwargs(),
        )

    def provision_rejected(self, identity_key: str, reason: str) -> None:
        """Record that a request ended in a client-side rejection."""
        self._logger.info(
            "provision_rejected",
            identity_key=identity_key,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def provision_succeeded(self, identity_key: str, db_name: str, db_user: str) -> None:
        """Record that a grant was created and recorded."""
        self._logger.info(
            "provision_succeeded",
            identity_key=identity_key,
            db_name=db_name,
            db_user=db_user,
            **self._get_context_kwargs(),
        )

    def provision_failed(self, identity_key: str, stage: str, error: Exception) -> None:
        """Record that a request failed on the server side."""
        self._logger.error(
            "provision_failed",
            identity_key=identity_key,
            stage=stage,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def compensation_started(
        self, identity_key: str, stage: str, actions: list[str]
    ) -> None:
        """Record that compensating actions are about to run."""
        self._logger.warning(
            "provision_compensation_started",
            identity_key=identity_key,
            stage=stage,
            actions=actions,
            **self._get_context_kwargs(),
        )

    def compensation_failed(
        self, identity_key: str, action: str, error: Exception | str
    ) -> None:
        """Record that a compensating action did not fully succeed."""
        self._logger.error(
            "provision_compensation_failed",
            identity_key=identity_key,
            action=action,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def allowlist_update_failed(self, identity_key: str, error: Exception) -> None:
        """Record that marking the allowlist entry applied failed."""
        self._logger.warning(
            "allowlist_update_failed",
            identity_key=identity_key,
            error=str(error),
            **self._get_context_kwargs(),
        )
