# @TASK S0-T0.3 - Test configuration
import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing notesync modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

DEVICE_A = "device-aaaa-0001"
DEVICE_B = "device-bbbb-0002"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture(scope="function")
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session for testing with automatic table creation.

    Each test gets a fresh in-memory SQLite database. ``StaticPool`` keeps a
    single connection so the tables created below are visible to the session.
    """
    from notesync.database import Base
    import notesync.models  # noqa: F401 - Import to register models with Base

    engine = create_async_engine(
        os.environ["DATABASE_URL"],
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_app(test_db: AsyncSession):
    """Provide the FastAPI app with the test database and fresh per-process state."""
    from notesync.config import get_settings
    from notesync.database import get_db
    from notesync.main import app
    from notesync.services.device_locks import DeviceLockRegistry
    from notesync.services.rate_limiter import SlidingWindowRateLimiter

    settings = get_settings()

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.state.rate_limiter = SlidingWindowRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )
    app.state.device_locks = DeviceLockRegistry()
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing with test database."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def make_note(note_id: str = "n1", content: str = "hello", **fields) -> dict:
    """Build a client note payload for request bodies."""
    return {"id": note_id, "content": content, **fields}
