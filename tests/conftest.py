"""Test fixtures — a fresh app with an in-memory database per test.

Learn: create_app() builds its own engine, bus and gateway, so every test
gets a completely isolated app. Two kinds of clients:

1. `client` — httpx AsyncClient over ASGITransport for plain HTTP tests.
   ASGITransport doesn't run the lifespan, so the fixture creates the schema
   and closes the bus itself.
2. `ws_client` — Starlette's TestClient used as a context manager, which
   runs the lifespan and keeps one event loop for HTTP and WebSocket calls.
   Needed because httpx can't open WebSockets.
"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from msgboard.config import Settings
from msgboard.db.engine import create_schema
from msgboard.main import create_app
from msgboard.realtime.bus import EventBus

TEST_DB_URL = "sqlite+aiosqlite://"


def _test_settings(**overrides) -> Settings:
    return Settings(database_url=TEST_DB_URL, **overrides)


@pytest_asyncio.fixture()
async def app():
    app = create_app(_test_settings())
    await create_schema(app.state.engine)
    try:
        yield app
    finally:
        app.state.bus.close()
        await app.state.engine.dispose()


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def db_session(app):
    """A session on the test app's database, for service-level tests."""
    async with app.state.session_factory() as session:
        yield session


@pytest.fixture
def bus():
    bus = EventBus()
    yield bus
    bus.close()


@pytest.fixture
def ws_app():
    return create_app(_test_settings())


@pytest.fixture
def ws_client(ws_app):
    with TestClient(ws_app) as tc:
        yield tc
