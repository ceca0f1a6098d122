"""Streak arq worker: scheduled freeze resets, break checks and recovery cleanup.

Each job reads its session factory and Redis client from the arq ``ctx``
so tests can drive the jobs with their own.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings

from fitstreak.config import get_settings
from fitstreak.database import close_db, get_session_factory, init_db
from fitstreak.redis_client import connect
from fitstreak.streaks.claim_service import expire_stale_recoveries, reset_weekly_freezes, run_daily_streak_check
from fitstreak.streaks.dates import utc_now

logger = logging.getLogger(__name__)


async def streak_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize Redis + DB connections on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["redis"] = connect(settings.redis_url, settings.worker_redis_max_connections)
    ctx["session_factory"] = get_session_factory()
    logger.info("Streak worker started")


async def streak_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Streak worker shut down")


async def weekly_freeze_reset(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: grant weekly freeze shields, Monday 00:00 UTC."""
    result = await reset_weekly_freezes(ctx["session_factory"], now=utc_now())
    return result.processed


async def daily_streak_check(ctx: dict) -> dict[str, int]:  # type: ignore[type-arg]
    """Scheduled task: protect or break yesterday's streaks, daily 00:05 UTC."""
    result = await run_daily_streak_check(ctx["session_factory"], today=utc_now().date(), redis=ctx.get("redis"))
    return {
        "processed": result.processed,
        "broken": result.broken,
        "shields_applied": result.shields_applied,
        "errors": len(result.errors),
    }


async def cleanup_recoveries(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: expire overdue recoveries, hourly."""
    async with ctx["session_factory"]() as db:
        expired = await expire_stale_recoveries(db, utc_now())
        await db.commit()
    if expired:
        logger.info("Expired %d stale recoveries", expired)
    return expired


class WorkerSettings:
    """arq worker settings for the streak jobs."""

    functions = [weekly_freeze_reset, daily_streak_check, cleanup_recoveries]
    cron_jobs = [
        cron(weekly_freeze_reset, weekday="mon", hour=0, minute=0),
        cron(daily_streak_check, hour=0, minute=5),
        cron(cleanup_recoveries, minute=0),
    ]
    on_startup = streak_startup
    on_shutdown = streak_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4
