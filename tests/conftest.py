"""
Test configuration and fixtures for SmartShort.
This centralizes all test setup, making individual tests clean.

Every test gets its own SQLite file under tmp_path, so tests are isolated
and concurrent sessions really hit separate connections.
"""

import os

# Settings are read at import time; keep tests off external services
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("NOTIFICATION_BACKEND", "memory")
os.environ.setdefault("REAPER_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from main import app
from smartshort_app.database.connection import build_engine, build_session_factory, get_db, init_db
from smartshort_app.dependencies import get_analyzer, get_event_dispatcher
from smartshort_app.notifications.dispatcher import EventDispatcher
from smartshort_app.notifications.strategies import InMemoryNotifier


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Fresh database file with all tables created."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    """
    Create a fresh database session for each test.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def notifier():
    return InMemoryNotifier()


@pytest.fixture(scope="function")
def dispatcher(notifier):
    return EventDispatcher(notifier, channel_prefix="test_events", timeout=1.0)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, dispatcher):
    """
    Async test client with the database, dispatcher and analyzer overridden.
    Metadata enrichment is disabled (no network in tests).
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    # Override dependencies
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_analyzer] = lambda: None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    await dispatcher.drain()
    # Clean up overrides
    app.dependency_overrides.clear()
