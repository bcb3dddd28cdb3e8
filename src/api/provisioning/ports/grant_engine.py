"""Grant engine protocol (port).

The grant engine owns External Grants on the shared MySQL server. It keeps
no state of its own: every answer comes from a live query.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from provisioning.domain.value_objects import (
    ResourceNames,
    ResourceState,
    TeardownResult,
)


@runtime_checkable
class IGrantEngine(Protocol):
    """Creates, inspects and removes (database, user, privileges) triples."""

    async def create_scoped_resource(self, names: ResourceNames, password: str) -> None:
        """Create the database and a least-privilege user bound to it.

        Statements run in a fixed order: create database, create user,
        grant the minimal set, revoke structural and administrative
        privileges, flush. Creation uses IF NOT EXISTS, so a repeat is safe.

        Args:
            names: Trusted database and user names
            password: Password for the new account

        Raises:
            GrantEngineError: With the failed step and completed steps
        """
        ...

    async def teardown(self, names: ResourceNames) -> TeardownResult:
        """Drop the user, then the database, then flush privileges.

        Never raises for server-side errors; they are reported in the result.
        Missing resources are not errors.
        """
        ...

    async def resource_exists(self, names: ResourceNames) -> ResourceState:
        """Look up whether the database and user exist right now.

        Raises:
            GrantEngineError: If the catalog cannot be queried
        """
        ...

    async def ping(self) -> None:
        """Check connectivity.

        Raises:
            GrantEngineError: If the server cannot be reached
        """
        ...
