"""FastAPI dependency providers for the provisioning bounded context.

Services are process-wide singletons built once from settings. The
orchestrator has to be shared because it owns the per-key locks that
serialize concurrent requests for the same identity key.
"""

from __future__ import annotations

from functools import lru_cache

from infrastructure.database.dependencies import (
    get_ledger_sessionmaker,
    get_mysql_engine,
)
from infrastructure.settings import get_mysql_settings, get_provisioning_settings
from infrastructure.version import __version__
from provisioning.application.admin_service import AdminService
from provisioning.application.orchestrator import ProvisioningOrchestrator
from provisioning.application.reconciler import ConsistencyReconciler
from provisioning.domain.credentials import CredentialGenerator
from provisioning.domain.validation import IdentifierValidator, validate_host
from provisioning.domain.value_objects import DatabaseEndpoint, KeyPolicy
from provisioning.infrastructure.allowlist_repository import AllowlistRepository
from provisioning.infrastructure.ledger_repository import LedgerRepository
from provisioning.infrastructure.mysql_grant_engine import MySQLGrantEngine


@lru_cache
def get_identifier_validator() -> IdentifierValidator:
    """Get the validator for the configured key policy."""
    settings = get_provisioning_settings()
    return IdentifierValidator(
        policy=KeyPolicy(settings.key_policy),
        max_length=settings.key_max_length,
    )


@lru_cache
def get_credential_generator() -> CredentialGenerator:
    """Get the password generator for the configured length."""
    return CredentialGenerator(length=get_provisioning_settings().password_length)


@lru_cache
def get_database_endpoint() -> DatabaseEndpoint:
    """Get the host and port advertised to tenants."""
    settings = get_mysql_settings()
    return DatabaseEndpoint(host=settings.advertised_host, port=settings.port)


def get_ledger_repository() -> LedgerRepository:
    """Get a LedgerRepository bound to the ledger sessionmaker."""
    return LedgerRepository(session_factory=get_ledger_sessionmaker())


def get_allowlist_repository() -> AllowlistRepository:
    """Get an AllowlistRepository bound to the ledger sessionmaker."""
    return AllowlistRepository(session_factory=get_ledger_sessionmaker())


@lru_cache
def get_grant_engine() -> MySQLGrantEngine:
    """Get the grant engine for the shared MySQL server.

    Raises:
        InvalidHostError: If the configured allowed host is not acceptable
    """
    settings = get_mysql_settings()
    allowed_host = validate_host(settings.allowed_host, allow_wildcard=settings.dev_mode)
    return MySQLGrantEngine(engine=get_mysql_engine(), allowed_host=allowed_host)


@lru_cache
def get_consistency_reconciler() -> ConsistencyReconciler:
    """Get the consistency reconciler."""
    return ConsistencyReconciler(
        ledger=get_ledger_repository(),
        grant_engine=get_grant_engine(),
        validator=get_identifier_validator(),
        concurrency=get_provisioning_settings().reconcile_concurrency,
    )


@lru_cache
def get_provisioning_orchestrator() -> ProvisioningOrchestrator:
    """Get the provisioning orchestrator (singleton)."""
    return ProvisioningOrchestrator(
        validator=get_identifier_validator(),
        credential_generator=get_credential_generator(),
        ledger=get_ledger_repository(),
        allowlist=get_allowlist_repository(),
        grant_engine=get_grant_engine(),
        endpoint=get_database_endpoint(),
    )


@lru_cache
def get_admin_service() -> AdminService:
    """Get the admin service."""
    return AdminService(
        validator=get_identifier_validator(),
        ledger=get_ledger_repository(),
        allowlist=get_allowlist_repository(),
        grant_engine=get_grant_engine(),
        reconciler=get_consistency_reconciler(),
        version=__version__,
    )


def reset_provisioning_dependencies() -> None:
    """Clear cached services so they are rebuilt on next use.

    Called at shutdown, after the engines they hold have been disposed.
    """
    for provider in (
        get_identifier_validator,
        get_credential_generator,
        get_database_endpoint,
        get_grant_engine,
        get_consistency_reconciler,
        get_provisioning_orchestrator,
        get_admin_service,
    ):
        provider.cache_clear()
