"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly,
in particular the MySQL administrative password and the admin token.

Every component receives its settings through its constructor; nothing
reads the environment after startup.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

WILDCARD_HOST = "%"

# Backends that honour the partial unique index on active grant rows.
LEDGER_BACKENDS = frozenset({"sqlite", "postgresql"})


class LedgerSettings(BaseSettings):
    """Local ledger store settings.

    Environment variables:
        DORMDB_LEDGER_URL: SQLAlchemy async URL (default: sqlite+aiosqlite:///./dormdb_state.db)
            SQLite and PostgreSQL only.
        DORMDB_LEDGER_POOL_SIZE: Maximum pooled connections (default: 20)
        DORMDB_LEDGER_POOL_TIMEOUT: Seconds to wait for a pooled connection (default: 10)
        DORMDB_LEDGER_CREATE_SCHEMA: Create tables at startup when missing (default: true)
    """

    model_config = SettingsConfigDict(
        env_prefix="DORMDB_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./dormdb_state.db",
        description="SQLAlchemy async URL of the ledger database",
    )
    pool_size: int = Field(
        default=20,
        description="Maximum connections in the ledger pool",
        ge=1,
        le=100,
    )
    pool_timeout: float = Field(
        default=10.0,
        description="Seconds to wait for a ledger connection before failing",
        gt=0,
    )
    create_schema: bool = Field(
        default=True,
        description="Create ledger tables at startup if they do not exist",
    )

    @field_validator("url")
    @classmethod
    def _require_partial_index_backend(cls, value: str) -> str:
        try:
            backend = make_url(value).get_backend_name()
        except ArgumentError as e:
            raise ValueError(f"Invalid ledger URL: {e}") from e
        if backend not in LEDGER_BACKENDS:
            raise ValueError(
                f"Ledger backend {backend!r} is not supported; "
                "use sqlite or postgresql"
            )
        return value


class MySQLSettings(BaseSettings):
    """Shared MySQL server settings used by the grant engine.

    Environment variables:
        DORMDB_MYSQL_HOST: MySQL host (default: localhost)
        DORMDB_MYSQL_PORT: MySQL port (default: 3306)
        DORMDB_MYSQL_USERNAME: Administrative user (default: root)
        DORMDB_MYSQL_PASSWORD: Administrative password (required in production)
        DORMDB_MYSQL_DATABASE: Database used for the admin connection (default: mysql)
        DORMDB_MYSQL_PUBLIC_HOST: Host reported to tenants (default: same as host)
        DORMDB_MYSQL_ALLOWED_HOST: Host part of created accounts (default: localhost)
        DORMDB_MYSQL_DEV_MODE: Permit the '%' wildcard allowed host (default: false)
        DORMDB_MYSQL_POOL_SIZE: Maximum pooled connections (default: 10)
        DORMDB_MYSQL_POOL_TIMEOUT: Seconds to wait for a pooled connection (default: 15)
        DORMDB_MYSQL_CONNECT_TIMEOUT: Seconds allowed for a TCP connect (default: 10)
    """

    model_config = SettingsConfigDict(
        env_prefix="DORMDB_MYSQL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="MySQL host")
    port: int = Field(default=3306, description="MySQL port", ge=1, le=65535)
    username: str = Field(default="root", description="MySQL administrative user")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="MySQL administrative password",
    )
    database: str = Field(
        default="mysql",
        description="Database selected by the administrative connection",
    )
    public_host: str | None = Field(
        default=None,
        description="Host name handed out in tenant connection strings",
    )
    allowed_host: str = Field(
        default="localhost",
        description="Host part of every created MySQL account",
        min_length=1,
        max_length=255,
    )
    dev_mode: bool = Field(
        default=False,
        description="Development mode; allows the wildcard allowed host",
    )
    pool_size: int = Field(
        default=10,
        description="Maximum connections in the MySQL pool",
        ge=1,
        le=100,
    )
    pool_timeout: float = Field(
        default=15.0,
        description="Seconds to wait for a MySQL connection before failing",
        gt=0,
    )
    connect_timeout: int = Field(
        default=10,
        description="Seconds allowed to establish a MySQL connection",
        ge=1,
        le=300,
    )

    @model_validator(mode="after")
    def validate_allowed_host(self) -> "MySQLSettings":
        """Reject the wildcard host outside development mode."""
        if self.allowed_host == WILDCARD_HOST and not self.dev_mode:
            raise ValueError(
                "allowed_host '%' grants access from any host on a shared server; "
                "set dev_mode=true to allow it"
            )
        return self

    @property
    def advertised_host(self) -> str:
        """Host name reported to tenants in their credentials."""
        return self.public_host or self.host

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"mysql://{self.username}@{self.host}:{self.port}/{self.database}"


class ProvisioningSettings(BaseSettings):
    """Provisioning policy settings.

    Environment variables:
        DORMDB_PROVISIONING_KEY_POLICY: 'flexible' or 'strict' (default: flexible)
        DORMDB_PROVISIONING_KEY_MAX_LENGTH: Maximum identity key length (default: 50)
        DORMDB_PROVISIONING_PASSWORD_LENGTH: Generated password length (default: 16)
        DORMDB_PROVISIONING_RECONCILE_CONCURRENCY: Parallel reconcile checks (default: 1)
        DORMDB_PROVISIONING_STARTUP_CONNECT_ATTEMPTS: Connect attempts at startup (default: 3)
        DORMDB_PROVISIONING_STARTUP_RETRY_DELAY: Base backoff delay in seconds (default: 1)
    """

    model_config = SettingsConfigDict(
        env_prefix="DORMDB_PROVISIONING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    key_policy: Literal["flexible", "strict"] = Field(
        default="flexible",
        description="Identity key format policy",
    )
    key_max_length: int = Field(
        default=50,
        description="Maximum identity key length under the flexible policy; "
        "keys too long for a MySQL user name are refused regardless",
        ge=1,
        le=64,
    )
    password_length: int = Field(
        default=16,
        description="Length of generated tenant passwords",
        ge=4,
        le=128,
    )
    reconcile_concurrency: int = Field(
        default=1,
        description="Upper bound on concurrent per-record reconcile checks",
        ge=1,
        le=32,
    )
    startup_connect_attempts: int = Field(
        default=3,
        description="Connection attempts per store at process startup",
        ge=1,
        le=10,
    )
    startup_retry_delay: float = Field(
        default=1.0,
        description="Base delay for exponential backoff between startup attempts",
        ge=0,
    )


class AdminSettings(BaseSettings):
    """Admin API settings.

    Environment variables:
        DORMDB_ADMIN_TOKEN: Bearer token for admin routes (empty disables them)
    """

    model_config = SettingsConfigDict(
        env_prefix="DORMDB_ADMIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    token: SecretStr = Field(
        default=SecretStr(""),
        description="Static bearer token required by admin routes",
    )

    @property
    def enabled(self) -> bool:
        """Admin routes are only reachable when a token is configured."""
        return bool(self.token.get_secret_value())


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_prefix="DORMDB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="DormDB API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level",
    )

    @property
    def ledger(self) -> LedgerSettings:
        """Get ledger settings."""
        return get_ledger_settings()

    @property
    def mysql(self) -> MySQLSettings:
        """Get MySQL settings."""
        return get_mysql_settings()

    @property
    def provisioning(self) -> ProvisioningSettings:
        """Get provisioning settings."""
        return get_provisioning_settings()

    @property
    def admin(self) -> AdminSettings:
        """Get admin settings."""
        return get_admin_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_ledger_settings() -> LedgerSettings:
    """Get cached ledger settings."""
    return LedgerSettings()


@lru_cache
def get_mysql_settings() -> MySQLSettings:
    """Get cached MySQL settings."""
    return MySQLSettings()


@lru_cache
def get_provisioning_settings() -> ProvisioningSettings:
    """Get cached provisioning settings."""
    return ProvisioningSettings()


@lru_cache
def get_admin_settings() -> AdminSettings:
    """Get cached admin settings."""
    return AdminSettings()
