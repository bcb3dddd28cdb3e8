"""Domain-Oriented Observability for provisioning infrastructure.

Probes for repository and grant engine operations.
"""

from provisioning.infrastructure.observability.grant_engine_probe import (
    DefaultGrantEngineProbe,
    GrantEngineProbe,
)
from provisioning.infrastructure.observability.repository_probe import (
    AllowlistRepositoryProbe,
    DefaultAllowlistRepositoryProbe,
    DefaultLedgerRepositoryProbe,
    LedgerRepositoryProbe,
)

__all__ = [
    "AllowlistRepositoryProbe",
    "DefaultAllowlistRepositoryProbe",
    "DefaultGrantEngineProbe",
    "DefaultLedgerRepositoryProbe",
    "GrantEngineProbe",
    "LedgerRepositoryProbe",
]
