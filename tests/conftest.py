"""Shared test fixtures.

Engine tests run against an in-memory SQLite database (aiosqlite) built from
the ORM metadata; API tests drive the FastAPI app through httpx with the
session dependency pointed at the same database.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fitstreak.database import get_session
from fitstreak.db import models  # noqa: F401
from fitstreak.db.base import Base
from fitstreak.dependencies import get_redis_dep
from fitstreak.main import create_app
from streak_helpers import TEST_USER


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for engine calls and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client authenticated as TEST_USER via X-User-Id."""
    app = create_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def _redis() -> AsyncGenerator[object, None]:
        yield None

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_redis_dep] = _redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers={"X-User-Id": TEST_USER}) as ac:
        yield ac
