"""MySQL implementation of IGrantEngine.

Database, user and host names cannot be bound as parameters in MySQL
account and DDL statements, so they are interpolated, but only as
``TrustedIdentifier`` values produced by the identifier validator. The
password is always a bound parameter.

The engine never retries and keeps no state. Every existence check is a
live catalog query.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import TextClause, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from provisioning.domain.value_objects import (
    GrantStep,
    ResourceNames,
    ResourceState,
    TeardownResult,
    TrustedIdentifier,
)
from provisioning.infrastructure.observability import (
    DefaultGrantEngineProbe,
    GrantEngineProbe,
)
from provisioning.ports.exceptions import (
    GrantEngineError,
    GrantEngineUnavailableError,
)
from provisioning.ports.grant_engine import IGrantEngine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

MINIMAL_PRIVILEGES = (
    "SELECT",
    "INSERT",
    "UPDATE",
    "DELETE",
    "INDEX",
    "LOCK TABLES",
)

REVOKED_PRIVILEGES = (
    "CREATE",
    "DROP",
    "ALTER",
    "REFERENCES",
    "CREATE TEMPORARY TABLES",
    "EXECUTE",
    "CREATE VIEW",
    "SHOW VIEW",
    "CREATE ROUTINE",
    "ALTER ROUTINE",
    "EVENT",
    "TRIGGER",
    "GRANT OPTION",
)

TEARDOWN_STEPS = (
    GrantStep.DROP_USER,
    GrantStep.DROP_DATABASE,
    GrantStep.FLUSH_PRIVILEGES,
)


def account_name(names: ResourceNames, host: TrustedIdentifier) -> str:
    """Render ``'user'@'host'``."""
    return f"{names.user.quoted()}@{host.quoted()}"


def create_database_statement(names: ResourceNames) -> TextClause:
    return text(f"CREATE DATABASE IF NOT EXISTS {names.database.quoted()}")


def create_user_statement(names: ResourceNames, host: TrustedIdentifier) -> TextClause:
    return text(
        f"CREATE USER IF NOT EXISTS {account_name(names, host)} IDENTIFIED BY :password"
    )


def grant_statement(names: ResourceNames, host: TrustedIdentifier) -> TextClause:
    return text(
        f"GRANT {', '.join(MINIMAL_PRIVILEGES)} ON {names.database.quoted()}.* "
        f"TO {account_name(names, host)}"
    )


def revoke_statement(names: ResourceNames, host: TrustedIdentifier) -> TextClause:
    return text(
        f"REVOKE {', '.join(REVOKED_PRIVILEGES)} ON *.* "
        f"FROM {account_name(names, host)}"
    )


def flush_statement() -> TextClause:
    return text("FLUSH PRIVILEGES")


def drop_user_statement(names: ResourceNames, host: TrustedIdentifier) -> TextClause:
    return text(f"DROP USER IF EXISTS {account_name(names, host)}")


def drop_database_statement(names: ResourceNames) -> TextClause:
    return text(f"DROP DATABASE IF EXISTS {names.database.quoted()}")


SCHEMA_EXISTS_QUERY = text(
    "SELECT COUNT(*) FROM INFORMATION_SCHEMA.SCHEMATA WHERE SCHEMA_NAME = :name"
)
USER_EXISTS_QUERY = text(
    "SELECT COUNT(*) FROM mysql.user WHERE User = :user AND Host = :host"
)


class MySQLGrantEngine(IGrantEngine):
    """Grant engine backed by a pooled administrative MySQL connection."""

    def __init__(
        self,
        engine: AsyncEngine,
        allowed_host: TrustedIdentifier,
        probe: GrantEngineProbe | None = None,
    ) -> None:
        """Initialize the grant engine.

        Args:
            engine: AUTOCOMMIT async engine for the administrative account
            allowed_host: Validated host part for every created account
            probe: Optional domain probe for observability
        """
        self._engine = engine
        self._host = allowed_host
        self._probe = probe or DefaultGrantEngineProbe()

    @property
    def allowed_host(self) -> TrustedIdentifier:
        """Host part of created accounts."""
        return self._host

    async def create_scoped_resource(self, names: ResourceNames, password: str) -> None:
        """Create the database and a least-privilege user bound to it.

        The revoke runs even when the grant failed, because the user already
        exists at that point and must not keep anything beyond the minimal
        set. Revoke errors are logged and otherwise ignored: a fresh user
        usually holds none of the revoked privileges.

        Raises:
            GrantEngineUnavailableError: If no connection could be obtained
            GrantEngineError: If a statement failed
        """
        database, user = names.database.value, names.user.value
        completed: list[GrantStep] = []
        step: GrantStep | None = None

        try:
            async with self._engine.connect() as conn:
                step = GrantStep.CREATE_DATABASE
                await conn.execute(create_database_statement(names))
                self._completed(completed, step, names)

                step = GrantStep.CREATE_USER
                await conn.execute(
                    create_user_statement(names, self._host), {"password": password}
                )
                self._completed(completed, step, names)

                step = GrantStep.GRANT_PRIVILEGES
                grant_error = await self._try_execute(
                    conn, grant_statement(names, self._host)
                )
                if grant_error is None:
                    self._completed(completed, step, names)

                revoke_error = await self._try_execute(
                    conn, revoke_statement(names, self._host)
                )
                if revoke_error is None:
                    self._completed(completed, GrantStep.REVOKE_PRIVILEGES, names)
                else:
                    self._probe.revoke_failed(user, revoke_error)

                if grant_error is not None:
                    raise grant_error

                step = GrantStep.FLUSH_PRIVILEGES
                await conn.execute(flush_statement())
                self._completed(completed, step, names)

        except SQLAlchemyError as e:
            if step is None or isinstance(e, PoolTimeoutError):
                self._probe.step_failed("connect", database, user, e)
                raise GrantEngineUnavailableError(
                    "MySQL server unavailable",
                    step=step,
                    completed_steps=tuple(completed),
                ) from e

            self._probe.step_failed(step.value, database, user, e)
            raise GrantEngineError(
                f"Grant step {step.value} failed for {database}",
                step=step,
                completed_steps=tuple(completed),
            ) from e

        self._probe.resource_created(database, user, self._host.value)

    async def teardown(self, names: ResourceNames) -> TeardownResult:
        """Drop the user, then the database, then flush privileges.

        Each statement is attempted even if an earlier one failed. Nothing
        is raised; failures are returned in the result.
        """
        statements = {
            GrantStep.DROP_USER: drop_user_statement(names, self._host),
            GrantStep.DROP_DATABASE: drop_database_statement(names),
            GrantStep.FLUSH_PRIVILEGES: flush_statement(),
        }
        errors: dict[GrantStep, str] = {}

        try:
            async with self._engine.connect() as conn:
                for step in TEARDOWN_STEPS:
                    error = await self._try_execute(conn, statements[step])
                    if error is not None:
                        errors[step] = str(error)
        except SQLAlchemyError as e:
            for step in TEARDOWN_STEPS:
                errors.setdefault(step, str(e))

        self._probe.teardown_completed(
            names.database.value,
            names.user.value,
            {step.value: message for step, message in errors.items()},
        )
        return TeardownResult(errors=errors)

    async def resource_exists(self, names: ResourceNames) -> ResourceState:
        """Look up whether the database and user exist right now.

        Raises:
            GrantEngineError: If the catalog cannot be queried
        """
        try:
            async with self._engine.connect() as conn:
                db_count = await conn.scalar(
                    SCHEMA_EXISTS_QUERY, {"name": names.database.value}
                )
                user_count = await conn.scalar(
                    USER_EXISTS_QUERY,
                    {"user": names.user.value, "host": self._host.value},
                )
        except PoolTimeoutError as e:
            raise GrantEngineUnavailableError("MySQL server unavailable") from e
        except SQLAlchemyError as e:
            raise GrantEngineError(
                f"Catalog lookup failed for {names.database.value}"
            ) from e

        state = ResourceState(
            db_exists=bool(db_count),
            user_exists=bool(user_count),
        )
        self._probe.resource_checked(
            names.database.value, names.user.value, state.db_exists, state.user_exists
        )
        return state

    async def ping(self) -> None:
        """Check connectivity.

        Raises:
            GrantEngineUnavailableError: If the server cannot be reached
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise GrantEngineUnavailableError("MySQL server unavailable") from e

    @staticmethod
    async def _try_execute(
        conn: AsyncConnection, statement: TextClause
    ) -> SQLAlchemyError | None:
        try:
            await conn.execute(statement)
        except SQLAlchemyError as e:
            return e
        return None

    def _completed(
        self, completed: list[GrantStep], step: GrantStep, names: ResourceNames
    ) -> None:
        completed.append(step)
        self._probe.step_completed(step.value, names.database.value, names.user.value)
