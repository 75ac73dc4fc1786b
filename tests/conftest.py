import os

# must be set before pp_app.core.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ADMIN_SECRET"] = "test-secret"
os.environ["ENV"] = "test"
os.environ["RESEND_API_KEY"] = ""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import pp_app.db.models  # noqa: F401
from pp_app.api.deps import _buckets, get_session
from pp_app.core.config import settings
from pp_app.db.base import Base
from pp_app.main import app


@pytest_asyncio.fixture(name="engine")
async def engine_fixture():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(name="session")
async def session_fixture(engine):
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture(name="client")
async def client_fixture(engine, tmp_path, monkeypatch):
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async def get_session_override():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    monkeypatch.setattr(settings, "certificate_dir", str(tmp_path / "certificates"))
    _buckets.clear()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="join")
def join_fixture(client):
    """POST a minimal valid signup; keyword args override the payload."""

    async def _join(role="consumer", email="ada@example.com", **extra):
        payload = {
            "role": role,
            "fullName": extra.pop("full_name", "Ada Lovelace"),
            "email": email,
            "accepted_privacy": True,
            "answers": extra.pop("answers", {}),
        }
        payload.update(extra)
        return await client.post("/api/signup", json=payload)

    return _join
