"""Architecture tests using pytest-archon.

These tests enforce DDD architectural boundaries between layers
within the Provisioning bounded context.
"""

from pytest_archon import archrule


class TestProvisioningDomainLayerBoundaries:
    """Tests that the domain layer has no forbidden dependencies."""

    def test_domain_does_not_import_infrastructure(self):
        """Domain layer should not depend on infrastructure.

        Identifier validation and credential generation are pure logic
        and must not know about SQLAlchemy sessions or MySQL drivers.
        """
        (
            archrule("domain_no_infrastructure")
            .match("provisioning.domain*")
            .should_not_import("provisioning.infrastructure*", "infrastructure*")
            .check("provisioning")
        )

    def test_domain_does_not_import_application(self):
        """Domain layer should not depend on application layer.

        Domain objects should be usable without application services.
        """
        (
            archrule("domain_no_application")
            .match("provisioning.domain*")
            .should_not_import("provisioning.application*")
            .check("provisioning")
        )

    def test_domain_does_not_import_frameworks(self):
        """Domain layer should not depend on FastAPI or SQLAlchemy.

        Domain objects should be framework-agnostic.
        """
        (
            archrule("domain_no_frameworks")
            .match("provisioning.domain*")
            .should_not_import("fastapi*", "starlette*", "sqlalchemy*", "pydantic*")
            .check("provisioning")
        )


class TestProvisioningPortsLayerBoundaries:
    """Tests that the ports layer has no forbidden dependencies."""

    def test_ports_does_not_import_infrastructure(self):
        """Ports should not depend on infrastructure implementations.

        Ports define the ledger, allowlist and grant engine interfaces;
        they should not know about LedgerRepository or MySQLGrantEngine.
        """
        (
            archrule("ports_no_infrastructure")
            .match("provisioning.ports*")
            .should_not_import("provisioning.infrastructure*", "sqlalchemy*")
            .check("provisioning")
        )

    def test_ports_does_not_import_application(self):
        """Ports should not depend on application services."""
        (
            archrule("ports_no_application")
            .match("provisioning.ports*")
            .should_not_import("provisioning.application*")
            .check("provisioning")
        )


class TestProvisioningApplicationLayerBoundaries:
    """Tests that the application layer has no forbidden dependencies."""

    def test_application_does_not_import_infrastructure(self):
        """Application services depend on ports, never on adapters.

        The orchestrator and reconciler receive their stores and grant
        engine through constructor injection.
        """
        (
            archrule("application_no_infrastructure")
            .match("provisioning.application*")
            .should_not_import("provisioning.infrastructure*", "sqlalchemy*")
            .check("provisioning")
        )

    def test_application_does_not_import_presentation(self):
        """Application services should not know about HTTP."""
        (
            archrule("application_no_presentation")
            .match("provisioning.application*")
            .should_not_import("provisioning.presentation*", "fastapi*", "starlette*")
            .check("provisioning")
        )


class TestProvisioningInfrastructureLayerBoundaries:
    """Tests that the infrastructure layer has no forbidden dependencies."""

    def test_infrastructure_does_not_import_application(self):
        """Adapters implement ports and do not call application services."""
        (
            archrule("infrastructure_no_application")
            .match("provisioning.infrastructure*")
            .should_not_import("provisioning.application*")
            .check("provisioning")
        )

    def test_infrastructure_does_not_import_presentation(self):
        """Adapters should not depend on the HTTP layer."""
        (
            archrule("infrastructure_no_presentation")
            .match("provisioning.infrastructure*")
            .should_not_import("provisioning.presentation*", "fastapi*")
            .check("provisioning")
        )


class TestSharedKernelBoundaries:
    """Tests that shared modules do not reach into the bounded context."""

    def test_shared_kernel_does_not_import_provisioning(self):
        """Shared kernel code is reusable by any bounded context."""
        (
            archrule("shared_kernel_no_provisioning")
            .match("shared_kernel*")
            .should_not_import("provisioning*")
            .check("shared_kernel")
        )

