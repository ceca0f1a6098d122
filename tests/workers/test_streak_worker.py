"""Tests for the streak arq jobs and event publishing."""

from __future__ import annotations

import json
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from fitstreak.db.models import EngagementStreak
from fitstreak.streaks.claim_service import ensure_freeze_shield, start_recovery
from fitstreak.streaks.dates import utc_now, utc_today
from fitstreak.streaks.events import publish_streak_event
from fitstreak.streaks.worker import (
    WorkerSettings,
    cleanup_recoveries,
    daily_streak_check,
    weekly_freeze_reset,
)


@pytest.fixture
def ctx(session_factory) -> dict:
    return {"session_factory": session_factory, "redis": AsyncMock()}


class TestJobs:
    """Jobs run against the session factory found in ctx."""

    @pytest.mark.asyncio
    async def test_weekly_freeze_reset(self, ctx, session_factory) -> None:
        async with session_factory() as db:
            await ensure_freeze_shield(db, "u1")
            await db.commit()
        assert await weekly_freeze_reset(ctx) == 1

    @pytest.mark.asyncio
    async def test_daily_streak_check_breaks_and_notifies(self, ctx, session_factory) -> None:
        async with session_factory() as db:
            db.add(
                EngagementStreak(
                    user_id="u1",
                    current_streak=4,
                    longest_streak=4,
                    freezes_available=0,
                    freezes_used_this_week=0,
                    auto_freeze_reset_date=utc_today() + timedelta(days=7),
                    paused=False,
                    total_claims=0,
                )
            )
            freeze = await ensure_freeze_shield(db, "u1")
            freeze.available_count = 0
            await db.commit()

        summary = await daily_streak_check(ctx)
        assert summary == {"processed": 1, "broken": 1, "shields_applied": 0, "errors": 0}

        channel, payload = ctx["redis"].publish.await_args.args
        assert channel == "pubsub:streak_update"
        assert json.loads(payload) == {"user_id": "u1", "event": "streak_broken", "streak_length": 4}

    @pytest.mark.asyncio
    async def test_cleanup_recoveries(self, ctx, session_factory) -> None:
        async with session_factory() as db:
            broken_date = utc_today() - timedelta(days=3)
            await start_recovery(db, "u1", broken_date, "weekend_warrior", utc_now() - timedelta(days=2))
            await db.commit()
        assert await cleanup_recoveries(ctx) == 1
        assert await cleanup_recoveries(ctx) == 0


class TestWorkerSettings:
    def test_schedules(self) -> None:
        assert len(WorkerSettings.cron_jobs) == 3
        assert WorkerSettings.on_startup.__name__ == "streak_startup"


class TestPublishStreakEvent:
    @pytest.mark.asyncio
    async def test_no_redis_is_noop(self) -> None:
        await publish_streak_event(None, "u1", "streak_broken")

    @pytest.mark.asyncio
    async def test_publish_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        await publish_streak_event(redis, "u1", "milestone_reached", milestone="streak_7")
        assert "Failed to publish milestone_reached event for user u1" in caplog.text
