"""Process-wide Redis client used for streak events and readiness checks."""

import redis.asyncio as redis

from fitstreak.config import get_settings

_client: redis.Redis | None = None


def connect(url: str, max_connections: int) -> redis.Redis:
    """Build a client that returns str values."""
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def init_redis(url: str | None = None) -> redis.Redis:
    """Create the shared client (defaults to FS_REDIS_URL)."""
    global _client  # noqa: PLW0603
    settings = get_settings()
    _client = connect(url or settings.redis_url, settings.redis_max_connections)
    return _client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Get the shared client; the app lifespan must have called init_redis()."""
    if _client is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _client


async def ping_redis() -> bool:
    return bool(await get_redis().ping())
