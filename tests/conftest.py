"""
Shared fixtures: a per-test SQLite database file, sessions, users and an HTTP client.
"""
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="crewmate-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("MAINTENANCE_INTERVAL_SECONDS", "0")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import crewmate.models  # noqa: F401
from crewmate.core import db as core_db
from crewmate.core.events import EventBus
from crewmate.core.jwt import create_access_token
from crewmate.models.user import User


@pytest_asyncio.fixture
async def engine():
    async with core_db.engine.begin() as conn:
        await conn.run_sync(core_db.Base.metadata.drop_all)
        await conn.run_sync(core_db.Base.metadata.create_all)
    yield core_db.engine
    await core_db.engine.dispose()


@pytest.fixture
def session_factory(engine):
    return core_db.SessionLocal


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def bus():
    return EventBus(queue_size=10)


@pytest_asyncio.fixture
async def make_user(db_session):
    async def _make_user(display_name: str = "Crew", airline: str = "Acme Air", base: str = "JFK") -> User:
        user = User(display_name=display_name, airline=airline, base=base)
        db_session.add(user)
        await db_session.commit()
        return user
    return _make_user


@pytest_asyncio.fixture
async def test_user(make_user):
    return await make_user("Alex")


@pytest_asyncio.fixture
async def other_user(make_user):
    return await make_user("Blake")


@pytest.fixture
def auth_headers():
    def _headers(user_id: int) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _headers


@pytest.fixture
def authenticated_headers(auth_headers, test_user):
    return auth_headers(test_user.id)


@pytest_asyncio.fixture
async def async_client(engine):
    from crewmate.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
