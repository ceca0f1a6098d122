"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException, status

from fitstreak.database import get_session as _get_session
from fitstreak.redis_client import get_redis as _get_redis

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client as a FastAPI dependency."""
    yield _get_redis()


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller id forwarded by the authenticating gateway in X-User-Id."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id
