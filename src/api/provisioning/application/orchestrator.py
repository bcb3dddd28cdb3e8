"""Provisioning orchestrator.

Composes the validator, the allowlist, the ledger and the grant engine into
one logical operation. There is no transaction spanning the ledger and the
MySQL server, so the operation runs as a saga: each stage that can fail
after external state exists has a fixed list of compensating actions in
``COMPENSATIONS``, and this class is the only place that runs them.

Terminal states:

- ``rejected``: client error, nothing external was left behind
- ``failed``: server error, compensations ran (best-effort)
- ``success``: the grant exists, is recorded, and credentials are returned
"""

from __future__ import annotations

import asyncio
import weakref
from dataclasses import dataclass
from enum import StrEnum

from provisioning.application.envelope import ApiResponse, StatusCode
from provisioning.application.observability import (
    DefaultOrchestratorProbe,
    OrchestratorProbe,
)
from provisioning.domain.credentials import CredentialGenerator
from provisioning.domain.exceptions import (
    InvalidIdentityKeyError,
    UnsafeIdentifierError,
)
from provisioning.domain.validation import IdentifierValidator
from provisioning.domain.value_objects import (
    Credentials,
    DatabaseEndpoint,
    IdentityKey,
    ResourceNames,
)
from provisioning.ports.exceptions import (
    DuplicateActiveGrantError,
    GrantEngineError,
    LedgerError,
)
from provisioning.ports.grant_engine import IGrantEngine
from provisioning.ports.repositories import IAllowlistRepository, ILedgerRepository


class ProvisionState(StrEnum):
    """Terminal state of a provisioning request."""

    SUCCESS = "success"
    REJECTED = "rejected"
    FAILED = "failed"


class ProvisionStage(StrEnum):
    """Stages of a provisioning request, in execution order."""

    VALIDATE = "validate"
    CHECK_ALLOWLIST = "check_allowlist"
    CHECK_LEDGER = "check_ledger"
    CREATE_GRANT = "create_grant"
    RECORD_SUCCESS = "record_success"
    MARK_APPLIED = "mark_applied"


class Compensation(StrEnum):
    """Compensating actions the orchestrator may run."""

    TEARDOWN = "teardown"
    RECORD_FAILURE = "record_failure"


# Actions run, in order, when the given stage fails.
COMPENSATIONS: dict[ProvisionStage, tuple[Compensation, ...]] = {
    ProvisionStage.VALIDATE: (),
    ProvisionStage.CHECK_ALLOWLIST: (),
    ProvisionStage.CHECK_LEDGER: (),
    ProvisionStage.CREATE_GRANT: (Compensation.TEARDOWN, Compensation.RECORD_FAILURE),
    ProvisionStage.RECORD_SUCCESS: (Compensation.TEARDOWN,),
    ProvisionStage.MARK_APPLIED: (),
}


@dataclass(frozen=True)
class ProvisionOutcome:
    """Result of one provisioning request.

    ``reason`` is server-side detail for logs and tests; it never reaches
    the response envelope.
    """

    state: ProvisionState
    code: StatusCode
    credentials: Credentials | None = None
    reason: str | None = None

    @property
    def response(self) -> ApiResponse[Credentials]:
        """Envelope to hand back to the caller."""
        if self.state is ProvisionState.SUCCESS:
            return ApiResponse.success(self.credentials)
        return ApiResponse.error(self.code)


def failure_reason(error: Exception) -> str:
    """Render an error as a ledger failure reason."""
    if isinstance(error, GrantEngineError) and error.step is not None:
        return f"{error.step.value}: {error}"
    return str(error)


class ProvisioningOrchestrator:
    """Runs the provisioning saga for one identity key at a time.

    Requests for the same key are serialized inside the process by a
    per-key lock. Requests from other processes race on the ledger's
    partial unique index; the loser tears down and reports the key as
    already existing.
    """

    def __init__(
        self,
        validator: IdentifierValidator,
        credential_generator: CredentialGenerator,
        ledger: ILedgerRepository,
        allowlist: IAllowlistRepository,
        grant_engine: IGrantEngine,
        endpoint: DatabaseEndpoint,
        probe: OrchestratorProbe | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            validator: Identity key validator and name deriver
            credential_generator: Password source for new accounts
            ledger: Ledger repository
            allowlist: Allowlist repository
            grant_engine: Grant engine for the shared MySQL server
            endpoint: Host and port advertised to tenants
            probe: Optional domain probe for observability
        """
        self._validator = validator
        self._credential_generator = credential_generator
        self._ledger = ledger
        self._allowlist = allowlist
        self._grant_engine = grant_engine
        self._endpoint = endpoint
        self._probe = probe or DefaultOrchestratorProbe()
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, identity_key: str) -> asyncio.Lock:
        lock = self._locks.get(identity_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity_key] = lock
        return lock

    async def provision(self, raw_key: str) -> ProvisionOutcome:
        """Provision a database and user for an identity key.

        Args:
            raw_key: Identity key exactly as supplied by the caller

        Returns:
            The terminal outcome. Store errors are reported as outcomes,
            not raised.
        """
        self._probe.provision_requested(raw_key)

        try:
            key = self._validator.validate(raw_key)
        except InvalidIdentityKeyError as e:
            return self._reject(raw_key, StatusCode.INVALID_INPUT, str(e))

        async with self._lock_for(key.value):
            return await self._provision_key(key)

    async def _provision_key(self, key: IdentityKey) -> ProvisionOutcome:
        try:
            eligible = await self._allowlist.is_eligible(key.value)
        except LedgerError as e:
            return self._fail(key, ProvisionStage.CHECK_ALLOWLIST, StatusCode.INTERNAL_ERROR, e)

        try:
            exists = await self._ledger.exists_active(key.value)
        except LedgerError as e:
            return self._fail(key, ProvisionStage.CHECK_LEDGER, StatusCode.INTERNAL_ERROR, e)

        # An applied entry with a live row is a repeat request, not an outsider.
        if exists:
            return self._reject(key.value, StatusCode.IDENTITY_EXISTS, "active grant exists")
        if not eligible:
            return self._reject(key.value, StatusCode.NOT_ALLOWED, "not eligible")

        password = self._credential_generator.generate()
        names: ResourceNames | None = None
        try:
            names = self._validator.resource_names(key)
            await self._grant_engine.create_scoped_resource(names, password)
        except (GrantEngineError, UnsafeIdentifierError) as e:
            await self._compensate(ProvisionStage.CREATE_GRANT, key, names, failure_reason(e))
            return self._fail(key, ProvisionStage.CREATE_GRANT, StatusCode.PROVISION_FAILED, e)

        try:
            await self._ledger.insert_success(
                key.value, names.database.value, names.user.value
            )
        except DuplicateActiveGrantError as e:
            await self._compensate(ProvisionStage.RECORD_SUCCESS, key, names, str(e))
            return self._reject(key.value, StatusCode.IDENTITY_EXISTS, "lost concurrent race")
        except LedgerError as e:
            await self._compensate(ProvisionStage.RECORD_SUCCESS, key, names, str(e))
            return self._fail(
                key, ProvisionStage.RECORD_SUCCESS, StatusCode.LEDGER_WRITE_FAILED, e
            )

        try:
            await self._allowlist.mark_applied(key.value, names.database.value)
        except LedgerError as e:
            # The grant and the ledger already agree; only the allowlist lags.
            self._probe.allowlist_update_failed(key.value, e)

        self._probe.provision_succeeded(key.value, names.database.value, names.user.value)
        return ProvisionOutcome(
            state=ProvisionState.SUCCESS,
            code=StatusCode.SUCCESS,
            credentials=Credentials(
                db_host=self._endpoint.host,
                db_port=self._endpoint.port,
                db_name=names.database.value,
                username=names.user.value,
                password=password,
            ),
        )

    async def _compensate(
        self,
        stage: ProvisionStage,
        key: IdentityKey,
        names: ResourceNames | None,
        reason: str,
    ) -> None:
        """Run the compensations registered for a failed stage.

        Each action is best-effort: its own failure is logged and the next
        action still runs.
        """
        actions = COMPENSATIONS[stage]
        if not actions:
            return
        self._probe.compensation_started(key.value, stage.value, [a.value for a in actions])

        for action in actions:
            if action is Compensation.TEARDOWN:
                if names is None:
                    continue
                await self._teardown(key, names)
            elif action is Compensation.RECORD_FAILURE:
                await self._record_failure(key, reason)

    async def _teardown(self, key: IdentityKey, names: ResourceNames) -> None:
        try:
            result = await self._grant_engine.teardown(names)
        except GrantEngineError as e:
            self._probe.compensation_failed(key.value, Compensation.TEARDOWN.value, e)
            return
        if not result.clean:
            detail = "; ".join(f"{step.value}: {msg}" for step, msg in result.errors.items())
            self._probe.compensation_failed(key.value, Compensation.TEARDOWN.value, detail)

    async def _record_failure(self, key: IdentityKey, reason: str) -> None:
        try:
            await self._ledger.insert_failure(key.value, reason)
        except LedgerError as e:
            self._probe.compensation_failed(key.value, Compensation.RECORD_FAILURE.value, e)

    def _reject(self, identity_key: str, code: StatusCode, reason: str) -> ProvisionOutcome:
        self._probe.provision_rejected(identity_key, reason)
        return ProvisionOutcome(state=ProvisionState.REJECTED, code=code, reason=reason)

    def _fail(
        self,
        key: IdentityKey,
        stage: ProvisionStage,
        code: StatusCode,
        error: Exception,
    ) -> ProvisionOutcome:
        self._probe.provision_failed(key.value, stage.value, error)
        return ProvisionOutcome(
            state=ProvisionState.FAILED, code=code, reason=failure_reason(error)
        )
