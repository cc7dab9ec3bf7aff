"""
Shared fixtures: a fresh SQLite database file per test, an inline event bus
wired to the qualification recompute, and an HTTP client over the app.
"""
import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.config.settings import DispatchMode
from tournament_hub.database import build_engine, build_session_factory, get_db
from tournament_hub.main import app, build_event_bus
from tournament_hub.orm.base import Base
from tournament_hub.services.storage import ObjectStore

TEST_SECRET = "test-storage-secret"


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def bus(session_factory):
    """Inline bus: the recompute has finished when publish() returns."""
    return build_event_bus(session_factory, mode=DispatchMode.INLINE, attempts=1)


@pytest.fixture
def store(tmp_path):
    return ObjectStore(root=str(tmp_path / "storage"), secret_key=TEST_SECRET)


@pytest_asyncio.fixture
async def client(session_factory, bus, store) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.event_bus = bus
    app.state.object_store = store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await bus.drain()
    app.dependency_overrides.clear()
