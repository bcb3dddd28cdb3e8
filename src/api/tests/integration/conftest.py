"""Integration test fixtures for MySQL grant tests.

These fixtures require a running MySQL server whose administrative user
may create databases and users. Use docker-compose for testing.
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

import provisioning.infrastructure.models  # noqa: F401
from infrastructure.database.engines import create_ledger_engine, create_mysql_engine
from infrastructure.database.exceptions import DatabaseConnectionError
from infrastructure.database.startup import connect_with_retry, create_ledger_schema
from infrastructure.settings import LedgerSettings, MySQLSettings
from provisioning.domain.validation import validate_host
from provisioning.infrastructure.mysql_grant_engine import MySQLGrantEngine


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires MySQL)",
    )


@pytest.fixture(scope="session")
def integration_mysql_settings() -> MySQLSettings:
    """MySQL settings for integration tests.

    Override with environment variables:
        DORMDB_TEST_MYSQL_HOST, DORMDB_TEST_MYSQL_PORT, etc.
    """
    return MySQLSettings(
        host=os.getenv("DORMDB_TEST_MYSQL_HOST", "localhost"),
        port=int(os.getenv("DORMDB_TEST_MYSQL_PORT", "3306")),
        username=os.getenv("DORMDB_TEST_MYSQL_USERNAME", "root"),
        password=SecretStr(os.getenv("DORMDB_TEST_MYSQL_PASSWORD", "dormdb_dev_password")),
        database="mysql",
        allowed_host=os.getenv("DORMDB_TEST_MYSQL_ALLOWED_HOST", "%"),
        dev_mode=True,
        pool_size=5,
    )


@pytest_asyncio.fixture
async def mysql_engine(
    integration_mysql_settings: MySQLSettings,
) -> AsyncGenerator[AsyncEngine, None]:
    """Provide a MySQL engine, skipping the test when no server answers."""
    engine = create_mysql_engine(integration_mysql_settings)
    try:
        await connect_with_retry(engine, "mysql", attempts=1)
    except DatabaseConnectionError as e:
        await engine.dispose()
        pytest.skip(f"MySQL not reachable: {e}")
    yield engine
    await engine.dispose()


@pytest.fixture
def grant_engine(
    mysql_engine: AsyncEngine, integration_mysql_settings: MySQLSettings
) -> MySQLGrantEngine:
    """Grant engine bound to the integration server."""
    allowed_host = validate_host(
        integration_mysql_settings.allowed_host,
        allow_wildcard=integration_mysql_settings.dev_mode,
    )
    return MySQLGrantEngine(engine=mysql_engine, allowed_host=allowed_host)


@pytest_asyncio.fixture
async def ledger_sessionmaker(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """File-backed ledger with its schema created."""
    engine = create_ledger_engine(
        LedgerSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    )
    await create_ledger_schema(engine)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()
