"""Pytest configuration and fixtures."""
import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("LOG_FORMAT", "text")

from app.main import app  # noqa: E402
from app.config import settings  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.schemas.task import TaskRecord  # noqa: E402
from app.services.task_service import TaskService  # noqa: E402
from app.services.task_store import InMemoryTaskStore  # noqa: E402


@pytest.fixture(autouse=True)
def fast_store_retries(monkeypatch):
    """Keep read retries but drop the wait between attempts."""
    monkeypatch.setattr(settings, "STORE_RETRY_WAIT_SECONDS", 0)


@pytest_asyncio.fixture(scope="function")
async def db_session():
    """Create a test database session on a fresh in-memory database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession):
    """Create an HTTP client overriding the database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_task():
    """Build a stored-task snapshot with sensible defaults."""

    def _make(task_id, parent_id=None, dependency_ids=(), container_id="project:p1", **kwargs):
        return TaskRecord(
            id=str(task_id),
            container_id=container_id,
            name=kwargs.pop("name", f"Task {task_id}"),
            parent_id=None if parent_id is None else str(parent_id),
            dependency_ids=[str(dep) for dep in dependency_ids],
            **kwargs,
        )

    return _make


@pytest.fixture
def memory_store():
    return InMemoryTaskStore()


@pytest.fixture
def task_service(memory_store):
    """Task service over an empty in-memory store."""
    return TaskService(memory_store)
