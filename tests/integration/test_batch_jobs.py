"""Batch job tests: weekly freeze reset and the daily break check.

Both jobs open their own session per user, so fixtures commit through the
session factory instead of using the shared db_session.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from fitstreak.db.models import EngagementStreak, StreakClaim, StreakShield
from fitstreak.streaks.claim_service import (
    add_purchased_shields,
    check_and_break_streak,
    ensure_freeze_shield,
    reset_weekly_freezes,
    run_daily_streak_check,
)
from fitstreak.streaks.dates import as_utc

TODAY = date(2026, 3, 16)
YESTERDAY = TODAY - timedelta(days=1)
MONDAY = datetime(2026, 3, 16, 0, 0, tzinfo=timezone.utc)


def streak_row(user_id: str, current: int, paused: bool = False) -> EngagementStreak:
    return EngagementStreak(
        user_id=user_id,
        current_streak=current,
        longest_streak=current,
        freezes_available=0,
        freezes_used_this_week=0,
        auto_freeze_reset_date=TODAY + timedelta(days=7),
        paused=paused,
        total_claims=0,
    )


async def shield_count(session_factory, user_id: str, shield_type: str) -> int:
    async with session_factory() as db:
        row = await db.scalar(
            select(StreakShield).where(StreakShield.user_id == user_id, StreakShield.shield_type == shield_type)
        )
        return row.available_count if row else 0


class TestWeeklyFreezeReset:
    @pytest.mark.asyncio
    async def test_grants_one_freeze_capped(self, session_factory):
        async with session_factory() as db:
            await ensure_freeze_shield(db, "alice", MONDAY - timedelta(days=7))
            freeze = await ensure_freeze_shield(db, "bob", MONDAY - timedelta(days=7))
            freeze.available_count = 5
            await add_purchased_shields(db, "bob", 2, MONDAY)
            await db.commit()

        result = await reset_weekly_freezes(session_factory, MONDAY)
        assert result.processed == 2
        assert result.errors == []

        assert await shield_count(session_factory, "alice", "freeze") == 2
        assert await shield_count(session_factory, "bob", "freeze") == 5
        assert await shield_count(session_factory, "bob", "purchased") == 2

        async with session_factory() as db:
            row = await db.scalar(select(StreakShield).where(StreakShield.user_id == "alice"))
            assert as_utc(row.last_reset_at) == MONDAY


class TestDailyStreakCheck:
    """Yesterday unclaimed: spend a shield if one is left, otherwise reset to zero."""

    @pytest.mark.asyncio
    async def test_outcomes(self, session_factory):
        async with session_factory() as db:
            db.add_all(
                [
                    streak_row("shielded", 5),
                    streak_row("claimed", 5),
                    streak_row("broken", 5),
                    streak_row("paused", 5, paused=True),
                    streak_row("idle", 0),
                ]
            )
            db.add(StreakClaim(user_id="claimed", claim_date=YESTERDAY, claim_method="explicit", timezone="UTC"))
            freeze = await ensure_freeze_shield(db, "broken", MONDAY - timedelta(days=7))
            freeze.available_count = 0
            await db.commit()

        result = await run_daily_streak_check(session_factory, TODAY)
        assert result.processed == 3
        assert result.shields_applied == 1
        assert result.broken == 1
        assert result.errors == []

        async with session_factory() as db:
            protected = await db.scalar(
                select(StreakClaim).where(StreakClaim.user_id == "shielded", StreakClaim.claim_date == YESTERDAY)
            )
            assert protected.claim_method == "freeze"

            broken = await db.get(EngagementStreak, "broken")
            assert broken.current_streak == 0
            assert broken.longest_streak == 5

            paused = await db.get(EngagementStreak, "paused")
            assert paused.current_streak == 5

        assert await shield_count(session_factory, "shielded", "freeze") == 0


class TestCheckAndBreakStreak:
    @pytest.mark.asyncio
    async def test_returns_true_only_on_reset(self, db_session):
        db_session.add(streak_row("solo", 3))
        await db_session.flush()

        # first check spends the lazily created weekly freeze
        assert await check_and_break_streak(db_session, "solo", TODAY) is False
        assert await check_and_break_streak(db_session, "solo", TODAY + timedelta(days=1)) is True

        state = await db_session.get(EngagementStreak, "solo")
        assert state.current_streak == 0

    @pytest.mark.asyncio
    async def test_paused_streak_untouched(self, db_session):
        db_session.add(streak_row("resting", 3, paused=True))
        await db_session.flush()
        assert await check_and_break_streak(db_session, "resting", TODAY) is False
