from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

# CLEAN URL: asyncpg rejects sslmode/channel_binding query params.
DATABASE_URL_ASYNC = settings.DATABASE_URL_ASYNC_CLEAN


def _engine_options(url: str) -> dict[str, Any]:
    # file/memory SQLite (local runs, tests) has no server-side connections to recycle
    if make_url(url).get_backend_name() == "sqlite":
        return {}
    return {
        "pool_pre_ping": True,  # detects dead connections before using them
        "pool_recycle": 300,    # seconds
    }


engine: AsyncEngine = create_async_engine(
    DATABASE_URL_ASYNC,
    echo=False,
    **_engine_options(DATABASE_URL_ASYNC),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One AsyncSession per request; guards and handlers share it."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def dispose_engine() -> None:
    await engine.dispose()
