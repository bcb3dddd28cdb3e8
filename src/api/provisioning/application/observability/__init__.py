"""Domain-Oriented Observability for the provisioning application layer."""

from provisioning.application.observability.admin_service_probe import (
    AdminServiceProbe,
    DefaultAdminServiceProbe,
)
from provisioning.application.observability.orchestrator_probe import (
    DefaultOrchestratorProbe,
    OrchestratorProbe,
)
from provisioning.application.observability.reconciler_probe import (
    DefaultReconcilerProbe,
    ReconcilerProbe,
)

__all__ = [
    "AdminServiceProbe",
    "DefaultAdminServiceProbe",
    "DefaultOrchestratorProbe",
    "DefaultReconcilerProbe",
    "OrchestratorProbe",
    "ReconcilerProbe",
]
