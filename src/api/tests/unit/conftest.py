"""Unit test fixtures: in-memory ledger store and a fake grant engine."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import provisioning.infrastructure.models  # noqa: F401
from infrastructure.database.models import Base
from provisioning.domain.validation import IdentifierValidator
from provisioning.domain.value_objects import (
    GrantStep,
    ResourceNames,
    ResourceState,
    TeardownResult,
)
from provisioning.infrastructure.allowlist_repository import AllowlistRepository
from provisioning.infrastructure.ledger_repository import LedgerRepository
from provisioning.ports.exceptions import GrantEngineError

CREATE_STEPS = (
    GrantStep.CREATE_DATABASE,
    GrantStep.CREATE_USER,
    GrantStep.GRANT_PRIVILEGES,
    GrantStep.REVOKE_PRIVILEGES,
    GrantStep.FLUSH_PRIVILEGES,
)


class FakeGrantEngine:
    """In-memory stand-in for the MySQL grant engine.

    Tracks which databases and users exist and records every call. Set
    ``fail_at`` to make ``create_scoped_resource`` raise at that step, after
    the earlier steps took effect.
    """

    def __init__(self):
        self.databases: set[str] = set()
        self.users: set[str] = set()
        self.passwords: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_at: GrantStep | None = None
        self.teardown_errors: dict[GrantStep, str] = {}
        self.check_error: GrantEngineError | None = None
        self.ping_error: GrantEngineError | None = None

    async def create_scoped_resource(self, names: ResourceNames, password: str) -> None:
        self.calls.append(("create", names.database.value))
        completed: list[GrantStep] = []
        for step in CREATE_STEPS:
            if step is self.fail_at:
                raise GrantEngineError(
                    f"{step.value} rejected",
                    step=step,
                    completed_steps=tuple(completed),
                )
            if step is GrantStep.CREATE_DATABASE:
                self.databases.add(names.database.value)
            elif step is GrantStep.CREATE_USER:
                self.users.add(names.user.value)
                self.passwords[names.user.value] = password
            completed.append(step)

    async def teardown(self, names: ResourceNames) -> TeardownResult:
        self.calls.append(("teardown", names.database.value))
        if GrantStep.DROP_USER not in self.teardown_errors:
            self.users.discard(names.user.value)
            self.passwords.pop(names.user.value, None)
        if GrantStep.DROP_DATABASE not in self.teardown_errors:
            self.databases.discard(names.database.value)
        return TeardownResult(errors=dict(self.teardown_errors))

    async def resource_exists(self, names: ResourceNames) -> ResourceState:
        self.calls.append(("check", names.database.value))
        if self.check_error is not None:
            raise self.check_error
        return ResourceState(
            db_exists=names.database.value in self.databases,
            user_exists=names.user.value in self.users,
        )

    async def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error

    def calls_named(self, name: str) -> list[str]:
        """Database names passed to every call of the given kind."""
        return [target for call, target in self.calls if call == name]


@pytest.fixture
def validator():
    """Identifier validator with the default flexible policy."""
    return IdentifierValidator()


@pytest.fixture
def fake_grant_engine():
    """Fresh in-memory grant engine."""
    return FakeGrantEngine()


@pytest_asyncio.fixture
async def ledger_session_factory():
    """Session factory on a fresh in-memory SQLite ledger."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def ledger_repository(ledger_session_factory):
    """Ledger repository on the in-memory store."""
    return LedgerRepository(ledger_session_factory)


@pytest.fixture
def allowlist_repository(ledger_session_factory):
    """Allowlist repository on the in-memory store."""
    return AllowlistRepository(ledger_session_factory)
