"""Fixtures for provisioning route tests."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from pydantic import SecretStr

from infrastructure.settings import AdminSettings, get_admin_settings
from provisioning.application.admin_service import AdminService
from provisioning.application.orchestrator import ProvisioningOrchestrator
from provisioning.dependencies import get_admin_service, get_provisioning_orchestrator
from provisioning.presentation import router
from provisioning.presentation.auth import (
    AdminAuthenticationError,
    admin_authentication_error_handler,
)

ADMIN_TOKEN = "s3cret-admin-token"


@pytest.fixture
def mock_orchestrator() -> AsyncMock:
    """Mock ProvisioningOrchestrator for testing."""
    return AsyncMock(spec=ProvisioningOrchestrator)


@pytest.fixture
def mock_admin_service() -> AsyncMock:
    """Mock AdminService for testing."""
    return AsyncMock(spec=AdminService)


@pytest.fixture
def admin_settings() -> AdminSettings:
    """Admin settings with a configured token."""
    return AdminSettings(token=SecretStr(ADMIN_TOKEN))


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Authorization header carrying the admin token."""
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def test_client(
    mock_orchestrator: AsyncMock,
    mock_admin_service: AsyncMock,
    admin_settings: AdminSettings,
) -> TestClient:
    """Create TestClient with mocked dependencies."""
    from main import request_validation_error_handler

    app = FastAPI()

    # Override dependencies with mocks
    app.dependency_overrides[get_provisioning_orchestrator] = lambda: mock_orchestrator
    app.dependency_overrides[get_admin_service] = lambda: mock_admin_service
    app.dependency_overrides[get_admin_settings] = lambda: admin_settings

    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(AdminAuthenticationError, admin_authentication_error_handler)
    app.include_router(router)

    return TestClient(app)
