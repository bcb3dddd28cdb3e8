"""Engine singletons for the ledger and the shared MySQL server.

Engines are created on first use and disposed at application shutdown.
Each is created exactly once per process with double-check locking.
"""

from __future__ import annotations

import threading

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from infrastructure.database.engines import create_ledger_engine, create_mysql_engine
from infrastructure.observability import DefaultConnectionProbe
from infrastructure.settings import get_ledger_settings, get_mysql_settings

# Module-level probe for observability
_probe = DefaultConnectionProbe()

# Module-level engine instances (created on first use)
_ledger_engine: AsyncEngine | None = None
_mysql_engine: AsyncEngine | None = None

# Created together with the ledger engine
_ledger_sessionmaker: async_sessionmaker[AsyncSession] | None = None

# Thread lock for safe engine initialization
_engine_lock = threading.Lock()


def get_ledger_engine() -> AsyncEngine:
    """Get the ledger engine (singleton).

    Also creates and caches the sessionmaker used by ledger repositories.

    Returns:
        Configured async engine for the ledger store
    """
    global _ledger_engine, _ledger_sessionmaker
    if _ledger_engine is None:
        with _engine_lock:
            # Double-check after acquiring lock
            if _ledger_engine is None:
                settings = get_ledger_settings()
                _ledger_engine = create_ledger_engine(settings)
                _ledger_sessionmaker = async_sessionmaker(
                    _ledger_engine,
                    expire_on_commit=False,
                    class_=AsyncSession,
                )
                _probe.engine_created(
                    "ledger",
                    _ledger_engine.url.render_as_string(hide_password=True),
                    settings.pool_size,
                )
    return _ledger_engine


def get_ledger_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Get the sessionmaker bound to the ledger engine.

    Returns:
        Session factory; every repository call opens its own session
    """
    get_ledger_engine()
    assert _ledger_sessionmaker is not None
    return _ledger_sessionmaker


def get_mysql_engine() -> AsyncEngine:
    """Get the shared MySQL engine (singleton).

    Returns:
        Configured async engine for grant operations
    """
    global _mysql_engine
    if _mysql_engine is None:
        with _engine_lock:
            if _mysql_engine is None:
                settings = get_mysql_settings()
                _mysql_engine = create_mysql_engine(settings)
                _probe.engine_created(
                    "mysql",
                    settings.connection_string,
                    settings.pool_size,
                )
    return _mysql_engine


async def close_database_connections() -> None:
    """Dispose both engines.

    Should be called on application shutdown. Also resets the sessionmaker
    so the engines can be reinitialized.
    """
    global _ledger_engine, _mysql_engine, _ledger_sessionmaker

    if _ledger_engine is not None:
        await _ledger_engine.dispose()
        _probe.pool_closed("ledger")
        _ledger_engine = None
        _ledger_sessionmaker = None

    if _mysql_engine is not None:
        await _mysql_engine.dispose()
        _probe.pool_closed("mysql")
        _mysql_engine = None
