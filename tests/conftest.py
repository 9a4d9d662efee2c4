"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.api.deps import get_delivery_queue
from app.core.auth import create_access_token
from app.domain.services.rule_cache import rule_cache
from app.persistence.database import Base, get_db
from app.persistence.models import *  # noqa: F401, F403


class RecordingQueue:
    """Delivery queue that only records what was enqueued."""

    def __init__(self) -> None:
        self.handler = None
        self.enqueued: list[tuple[int, float]] = []

    def start(self, handler) -> None:
        self.handler = handler

    async def enqueue(self, delivery_id: int, delay_seconds: float = 0) -> None:
        self.enqueued.append((delivery_id, delay_seconds))

    async def stop(self) -> None:
        self.handler = None

    @property
    def delivery_ids(self) -> list[int]:
        return [delivery_id for delivery_id, _ in self.enqueued]


@pytest.fixture(autouse=True)
def clear_rule_cache():
    """Rule snapshots must not leak between test databases."""
    rule_cache.clear()
    yield
    rule_cache.clear()


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine; every session gets its own connection."""
    db_path = tmp_path / "test.db"

    # Schema is created synchronously so the fixture works for sync and async tests
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    return create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        echo=False,
        poolclass=NullPool,
    )


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def admin_headers():
    token = create_access_token("admin@example.com", role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers():
    token = create_access_token("agent@example.com", role="user")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(session_factory, queue):
    """Create a test FastAPI client (lifespan is not run)."""
    from fastapi.testclient import TestClient
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_delivery_queue] = lambda: queue

    yield TestClient(app)

    app.dependency_overrides.clear()
