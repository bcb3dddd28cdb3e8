"""Ports (interfaces) for the provisioning bounded context.

Ports define the contracts for the ledger, the allowlist and the grant
engine without specifying implementation details. Application services
receive implementations through their constructors.
"""

from provisioning.ports.exceptions import (
    AllowlistEntryNotFoundError,
    DuplicateActiveGrantError,
    DuplicateAllowlistEntryError,
    GrantEngineError,
    GrantEngineUnavailableError,
    GrantRecordNotFoundError,
    LedgerError,
    LedgerUnavailableError,
)
from provisioning.ports.grant_engine import IGrantEngine
from provisioning.ports.repositories import IAllowlistRepository, ILedgerRepository

__all__ = [
    "IAllowlistRepository",
    "IGrantEngine",
    "ILedgerRepository",
    "AllowlistEntryNotFoundError",
    "DuplicateActiveGrantError",
    "DuplicateAllowlistEntryError",
    "GrantEngineError",
    "GrantEngineUnavailableError",
    "GrantRecordNotFoundError",
    "LedgerError",
    "LedgerUnavailableError",
]
