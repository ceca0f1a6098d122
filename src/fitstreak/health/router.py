"""Liveness, readiness and version probes."""

from collections.abc import Awaitable

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from fitstreak.config import get_settings
from fitstreak.database import get_session
from fitstreak.redis_client import ping_redis

router = APIRouter()


async def _probe(check: Awaitable[object]) -> str:
    try:
        await check
    except Exception as exc:
        return f"error: {exc}"
    return "ok"


async def _ping_database(db: AsyncSession) -> None:
    result = await db.execute(text("SELECT 1"))
    result.scalar()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: the database and Redis must both answer.

    Always 200; a failing dependency is reported as ``degraded`` with the
    error text so the orchestrator's logs show which one is down.
    """
    checks = {
        "database": await _probe(_ping_database(db)),
        "redis": await _probe(ping_redis()),
    }
    all_ok = all(value == "ok" for value in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "service": "fitstreak",
        "version": settings.app_version,
        "environment": settings.environment,
    }
