"""Floorline — Pytest Configuration & Fixtures.

Provides an isolated testing environment with:
1. A fresh in-memory SQLite store per test (schema created, foreign keys on).
2. A recording notifier injected wherever machine updates are published.
3. AsyncClient for testing FastAPI endpoints without a network socket.

Usage:
    async def test_my_endpoint(client, notifier):
        response = await client.get("/api/machines")
        assert response.status_code == 200
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api_server import app, get_notifier
from database import create_schema, create_session_maker, get_db, register_engine_events
from factories import Log, RecordingNotifier


# =============================================================================
# Engine records
# =============================================================================

@pytest.fixture
def sm73_logs() -> list[Log]:
    """Shift start declaring 1,200 parts/hour, then one interval sample."""
    return [
        Log(
            event="start shift",
            comments="Standard Parts Rate: 1,200 parts",
            created_at="2026-01-07T08:00:00",
        ),
        Log(
            event="auto interval log",
            interval_count=150,
            machine_rate=900,
            created_at="2026-01-07T08:15:00",
        ),
    ]


# =============================================================================
# Event store
# =============================================================================

@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    register_engine_events(engine, sqlite=True)
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_maker(db_engine)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# =============================================================================
# API Client
# =============================================================================

@pytest_asyncio.fixture
async def client(session_maker, notifier) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app with the test store and notifier."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
