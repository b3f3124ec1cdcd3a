"""
Shared test fixtures.

Every test runs against a fresh in-memory SQLite database; outbound HTTP
goes through httpx.MockTransport and nothing touches a real SMTP server.
"""
import os
import tempfile
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Must be set before the app is imported so the default engine points somewhere writable
os.environ.setdefault("DATA_PATH", tempfile.mkdtemp(prefix="pinger-test-"))

from pinger.config import settings
from pinger.database import Base, build_engine, get_db
from pinger import models  # noqa: F401
from pinger.models import Target, CheckResult, NotificationChannel


TEST_DATABASE_URL = "sqlite+aiosqlite://"

# One shared connection so every session sees the same in-memory database
engine = build_engine(
    TEST_DATABASE_URL,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)


TestingSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test and drop them afterwards."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Each test runs on its own event loop; do not carry the connection over
    await engine.dispose()


@pytest.fixture
def session_factory() -> async_sessionmaker:
    return TestingSessionLocal


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app; the lifespan (and so the scheduler) never runs."""
    from pinger.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"x-api-key": settings.api_key},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def anonymous_client(client: AsyncClient) -> AsyncGenerator[AsyncClient, None]:
    """Same app and database as ``client`` but without the x-api-key header."""
    from pinger.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def make_target(db_session: AsyncSession):
    """Factory that inserts a target with sensible defaults."""

    async def _make(**overrides) -> Target:
        values = {
            "name": "api",
            "type": "HTTP",
            "endpoint": "https://api.example.com/health",
            "frequency_sec": 60,
            "timeout_ms": 5000,
            "enabled": True,
        }
        values.update(overrides)
        target = Target(**values)
        db_session.add(target)
        await db_session.commit()
        await db_session.refresh(target)
        return target

    return _make


@pytest_asyncio.fixture
async def make_result(db_session: AsyncSession):
    async def _make(target_id: int, status: str = "UP", **overrides) -> CheckResult:
        values = {"latency_ms": 12, "code": 200, "message": "OK"}
        values.update(overrides)
        record = CheckResult(target_id=target_id, status=status, **values)
        db_session.add(record)
        await db_session.commit()
        await db_session.refresh(record)
        return record

    return _make


@pytest_asyncio.fixture
async def make_channel(db_session: AsyncSession):
    async def _make(**overrides) -> NotificationChannel:
        values = {
            "name": "ops-slack",
            "type": "slack",
            "config": '{"webhookUrl": "https://hooks.slack.test/T000/B000"}',
            "enabled": True,
        }
        values.update(overrides)
        channel = NotificationChannel(**values)
        db_session.add(channel)
        await db_session.commit()
        await db_session.refresh(channel)
        return channel

    return _make
