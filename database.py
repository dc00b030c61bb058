"""Floorline — Event Store Connection.

One async SQLAlchemy engine per process, created in the API lifespan and
shared by request handlers (through :func:`get_db`) and the liveness monitor
(through :func:`get_session_maker`). SQLite via aiosqlite is the default;
any async URL SQLAlchemy understands (postgresql+asyncpg, ...) works as is.

Usage:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_database()
        yield
        await shutdown_database()

    @app.get("/api/machines")
    async def list_machines(db: AsyncSession = Depends(get_db)):
        ...
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config import DatabaseSettings, get_settings
from db.base import Base
from logger import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

QUERY_START_KEY = "_query_start_time"
SLOW_QUERY_THRESHOLD_MS = 500
MAX_LOGGED_STATEMENT = 500


# =============================================================================
# Engine
# =============================================================================

def create_engine_from_settings(db_settings: DatabaseSettings) -> AsyncEngine:
    """Build the engine; server databases get a pre-pinged pool."""
    logger.info("Creating database engine", url=db_settings.url_safe)
    options: dict[str, Any] = {
        "echo": db_settings.echo,
        "hide_parameters": not db_settings.echo,
    }
    if db_settings.is_sqlite:
        _ensure_sqlite_directory(db_settings.url)
    else:
        options.update(
            pool_size=db_settings.pool_size,
            max_overflow=db_settings.max_overflow,
            pool_recycle=1800,
            pool_pre_ping=True,
        )

    engine = create_async_engine(db_settings.url, **options)
    register_engine_events(engine, sqlite=db_settings.is_sqlite)
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows are read after commit (log read-back), so nothing may expire.
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


def _ensure_sqlite_directory(url: str) -> None:
    database = make_url(url).database
    if database and database != ":memory:" and not database.startswith("file:"):
        Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def register_engine_events(engine: AsyncEngine, sqlite: bool = False) -> None:
    """Foreign keys on for SQLite connections; slow statements logged."""
    sync_engine = engine.sync_engine

    if sqlite:
        @event.listens_for(sync_engine, "connect")
        def enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @event.listens_for(sync_engine, "invalidate")
    def on_invalidate(dbapi_connection: Any, connection_record: Any, exception: BaseException | None) -> None:
        logger.warning("Connection invalidated", error=str(exception) if exception else None)

    @event.listens_for(sync_engine, "before_cursor_execute")
    def start_timer(conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool) -> None:
        conn.info[QUERY_START_KEY] = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def log_slow_query(conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool) -> None:
        started = conn.info.pop(QUERY_START_KEY, None)
        if started is None:
            return
        elapsed_ms = (time.perf_counter() - started) * 1000
        if elapsed_ms > SLOW_QUERY_THRESHOLD_MS:
            logger.warning(
                "slow_query",
                query=statement[:MAX_LOGGED_STATEMENT],
                latency_ms=round(elapsed_ms, 2),
                threshold_ms=SLOW_QUERY_THRESHOLD_MS,
            )


async def create_schema(engine: AsyncEngine) -> None:
    """Create the machines and logs tables if they do not exist."""
    import db.models  # noqa: F401  (registers the mappers on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# =============================================================================
# Lifecycle
# =============================================================================

async def init_database(db_settings: DatabaseSettings | None = None) -> None:
    """Open the engine, check connectivity and create the schema if asked.

    Raises:
        RuntimeError: If the store cannot be reached.
    """
    global _engine, _session_maker

    if _engine is not None:
        logger.warning("Database already initialized, skipping")
        return

    db_settings = db_settings or get_settings().database
    engine = create_engine_from_settings(db_settings)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        if db_settings.create_schema:
            await create_schema(engine)
    except Exception as exc:
        logger.error("Database initialization failed", error_type=type(exc).__name__, error=str(exc))
        await engine.dispose()
        raise RuntimeError(f"Failed to initialize database: {exc}") from exc

    _engine = engine
    _session_maker = create_session_maker(engine)
    logger.info("Database initialized", url=db_settings.url_safe, dialect=engine.dialect.name)


async def shutdown_database() -> None:
    global _engine, _session_maker

    if _engine is None:
        return

    engine, _engine, _session_maker = _engine, None, None
    try:
        await engine.dispose()
    except Exception as exc:
        logger.error("Error disposing database connections", error_type=type(exc).__name__, error=str(exc))
    else:
        logger.info("Database connections closed")


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory for work outside a request (the liveness monitor).

    Raises:
        RuntimeError: If :func:`init_database` has not run.
    """
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _session_maker


# =============================================================================
# FastAPI Dependency
# =============================================================================

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: committed on success, rolled back on error."""
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except DBAPIError as exc:
            await session.rollback()
            logger.error("Database operation failed", error_type=type(exc).__name__, error=str(exc))
            raise
        except Exception:
            await session.rollback()
            raise


# =============================================================================
# Health Check
# =============================================================================

async def check_database_health() -> dict[str, Any]:
    """Connectivity probe for the health endpoint."""
    if _engine is None:
        return {"status": "unhealthy", "error": "Database not initialized"}

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Database health check failed", error_type=type(exc).__name__, error=str(exc))
        return {"status": "unhealthy", "error": str(exc)}
    return {"status": "healthy", "dialect": _engine.dialect.name}
