# @TASK S0-T0.3 - Async engine, session factory and request-scoped session

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from notesync.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict[str, Any]:
    # aiosqlite connections are handed between threads by the driver.
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_async_engine(
    settings.async_database_url,
    echo=False,
    **_engine_options(settings.async_database_url),
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for notes, shares and server statistics."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session per request.

    Commits when the endpoint returns normally and rolls back if it raises.
    Endpoints that must commit while holding a device lock call
    ``session.commit()`` themselves; the trailing commit is then a no-op.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
