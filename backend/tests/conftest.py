from __future__ import annotations

import os

# Settings are read at import time; give the app a throwaway database URL
# before anything under app.* is imported.
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///./staffdesk-test.db")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.db.session import get_db

# Ensure Base + models are registered before create_all
from app.db.base import Base
import app.models  # noqa: F401


# ---------------------------------------------------------
# Engine + schema lifecycle (one SQLite file per test)
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        future=True,
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )


# ---------------------------------------------------------
# DB session for assertions / setup
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & assertions ONLY.
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker):
    from app.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac


