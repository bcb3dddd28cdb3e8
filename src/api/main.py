"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

# Registers the ledger tables on Base.metadata
import provisioning.infrastructure.models  # noqa: F401
from infrastructure.database.dependencies import (
    close_database_connections,
    get_ledger_engine,
    get_mysql_engine,
)
from infrastructure.database.startup import connect_with_retry, create_ledger_schema
from infrastructure.logging import configure_logging
from infrastructure.settings import (
    get_ledger_settings,
    get_provisioning_settings,
    get_settings,
)
from infrastructure.version import __version__
from provisioning.application.envelope import ApiResponse, StatusCode
from provisioning.dependencies import get_grant_engine, reset_provisioning_dependencies
from provisioning.presentation import router as provisioning_router
from provisioning.presentation.auth import (
    AdminAuthenticationError,
    admin_authentication_error_handler,
)
from provisioning.presentation.models import envelope_response


@asynccontextmanager
async def dormdb_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - Logging configuration
    - Startup connectivity checks for both stores (bounded retry)
    - Ledger schema creation when enabled
    - Engine disposal on shutdown
    """
    configure_logging(get_settings().log_level)
    policy = get_provisioning_settings()

    ledger_engine = get_ledger_engine()
    await connect_with_retry(
        ledger_engine,
        "ledger",
        attempts=policy.startup_connect_attempts,
        base_delay=policy.startup_retry_delay,
    )
    if get_ledger_settings().create_schema:
        await create_ledger_schema(ledger_engine)

    await connect_with_retry(
        get_mysql_engine(),
        "mysql",
        attempts=policy.startup_connect_attempts,
        base_delay=policy.startup_retry_delay,
    )
    # Fail fast on an unacceptable allowed host
    get_grant_engine()

    yield

    await close_database_connections()
    reset_provisioning_dependencies()


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as INVALID_INPUT envelopes."""
    return envelope_response(ApiResponse.error(StatusCode.INVALID_INPUT))


app = FastAPI(
    title="DormDB API",
    description="Self-service provisioning of scoped MySQL databases",
    version=__version__,
    lifespan=dormdb_lifespan,
)

app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.add_exception_handler(AdminAuthenticationError, admin_authentication_error_handler)

# Include Provisioning bounded context routes
app.include_router(provisioning_router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}
