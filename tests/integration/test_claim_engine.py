"""Claim engine tests: retroactive window, timezones, milestones and shields."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from fitstreak.db.models import EngagementActivity, StreakClaim
from fitstreak.streaks.claim_service import (
    REASON_ALREADY_CLAIMED,
    REASON_FUTURE,
    REASON_NO_HEALTH_DATA,
    REASON_OUTSIDE_WINDOW,
    activate_freeze,
    add_purchased_shields,
    can_claim_streak,
    claim_streak,
    get_available_shields,
    get_claimable_days,
    grant_milestone_shields,
)
from fitstreak.streaks.constants import ClaimMethod
from fitstreak.streaks.engagement_service import get_engagement_state
from fitstreak.streaks.errors import AlreadyClaimedError, NoShieldsAvailableError, NotClaimableError
from streak_helpers import add_tracking, days_between

USER = "claimer-3"
# Saturday
NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


def d(day: int) -> date:
    return date(2026, 3, day)


def noon(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 12, 0, tzinfo=timezone.utc)


class TestCanClaim:
    """Validation order: future, window, duplicate, health data."""

    @pytest.mark.asyncio
    async def test_today_with_health_data(self, db_session):
        await add_tracking(db_session, USER, d(14))
        result = await can_claim_streak(db_session, USER, d(14), now=NOW)
        assert result.can_claim is True
        assert result.has_health_data is True

    @pytest.mark.asyncio
    async def test_future_date(self, db_session):
        result = await can_claim_streak(db_session, USER, d(15), now=NOW)
        assert result.can_claim is False
        assert result.reason == REASON_FUTURE

    @pytest.mark.asyncio
    async def test_seven_days_back_is_inside_window(self, db_session):
        await add_tracking(db_session, USER, d(7))
        result = await can_claim_streak(db_session, USER, d(7), now=NOW)
        assert result.can_claim is True

    @pytest.mark.asyncio
    async def test_eight_days_back_is_outside_window(self, db_session):
        await add_tracking(db_session, USER, d(6))
        result = await can_claim_streak(db_session, USER, d(6), now=NOW)
        assert result.can_claim is False
        assert result.reason == REASON_OUTSIDE_WINDOW

    @pytest.mark.asyncio
    async def test_no_health_data(self, db_session):
        result = await can_claim_streak(db_session, USER, d(14), now=NOW)
        assert result.can_claim is False
        assert result.has_health_data is False
        assert result.reason == REASON_NO_HEALTH_DATA

    @pytest.mark.asyncio
    async def test_steps_only_counts_as_health_data(self, db_session):
        await add_tracking(db_session, USER, d(14), weight_kg=None, steps=4000)
        result = await can_claim_streak(db_session, USER, d(14), now=NOW)
        assert result.can_claim is True

    @pytest.mark.asyncio
    async def test_today_follows_user_timezone(self, db_session):
        """02:00 UTC on the 15th is still the 14th in Sao Paulo."""
        await add_tracking(db_session, USER, d(15))
        now = datetime(2026, 3, 15, 2, 0, tzinfo=timezone.utc)

        local = await can_claim_streak(db_session, USER, d(15), "America/Sao_Paulo", now=now)
        assert local.reason == REASON_FUTURE
        utc = await can_claim_streak(db_session, USER, d(15), "UTC", now=now)
        assert utc.can_claim is True

    @pytest.mark.asyncio
    async def test_grace_period_for_yesterday(self, db_session):
        await add_tracking(db_session, USER, d(14))
        now = datetime(2026, 3, 15, 1, 0, tzinfo=timezone.utc)
        result = await can_claim_streak(db_session, USER, d(14), now=now)
        assert result.grace_period_active is True


class TestClaimStreak:
    @pytest.mark.asyncio
    async def test_claim_records_day(self, db_session):
        await add_tracking(db_session, USER, d(14), steps=9000)
        result = await claim_streak(db_session, USER, d(14), now=NOW)

        assert result.success is True
        # the default engagement freeze covers the 13th
        assert result.streak_count == 2
        assert result.milestone is None
        assert result.claim.claim_method == "explicit"

        claim = await db_session.scalar(select(StreakClaim).where(StreakClaim.user_id == USER))
        assert claim.health_data_synced is True
        assert claim.extra_data["health"]["steps"] == 9000

        activity = await db_session.scalar(
            select(EngagementActivity).where(
                EngagementActivity.user_id == USER,
                EngagementActivity.activity_type == "streak_claim",
            )
        )
        assert activity.activity_date == d(14)

    @pytest.mark.asyncio
    async def test_manual_entry_method(self, db_session):
        await add_tracking(db_session, USER, d(13))
        result = await claim_streak(db_session, USER, d(13), method=ClaimMethod.MANUAL_ENTRY, now=NOW)
        assert result.claim.claim_method == "manual_entry"

    @pytest.mark.asyncio
    async def test_double_claim_rejected(self, db_session):
        await add_tracking(db_session, USER, d(14))
        await claim_streak(db_session, USER, d(14), now=NOW)
        with pytest.raises(AlreadyClaimedError):
            await claim_streak(db_session, USER, d(14), now=NOW)

    @pytest.mark.asyncio
    async def test_not_claimable_carries_reason(self, db_session):
        with pytest.raises(NotClaimableError) as exc_info:
            await claim_streak(db_session, USER, d(14), now=NOW)
        assert exc_info.value.reason == REASON_NO_HEALTH_DATA

    @pytest.mark.asyncio
    async def test_seventh_day_reaches_milestone(self, db_session):
        """Claim Monday through Saturday: with the frozen Sunday the sixth claim makes seven."""
        for day in days_between(d(9), d(14)):
            await add_tracking(db_session, USER, day)

        results = [await claim_streak(db_session, USER, day, now=noon(day)) for day in days_between(d(9), d(14))]
        assert [r.streak_count for r in results] == [2, 3, 4, 5, 6, 7]
        assert all(r.milestone is None for r in results[:-1])
        assert results[-1].milestone == "streak_7"
        assert results[-1].shields_granted == 1
        assert "Milestone reached: streak_7" in results[-1].message

        state = await get_engagement_state(db_session, USER)
        assert state.total_claims == 6
        assert state.last_claim_date == d(14)

        shields = await get_available_shields(db_session, USER, NOW)
        assert shields.milestone_shields == 1

    @pytest.mark.asyncio
    async def test_milestone_event_published(self, db_session):
        redis = AsyncMock()
        for day in days_between(d(9), d(14)):
            await add_tracking(db_session, USER, day)
        for day in days_between(d(9), d(14)):
            await claim_streak(db_session, USER, day, now=noon(day), redis=redis)

        redis.publish.assert_awaited_once()
        channel, payload = redis.publish.await_args.args
        assert channel == "pubsub:streak_update"
        assert '"milestone_reached"' in payload


class TestClaimableDays:
    @pytest.mark.asyncio
    async def test_window_listing(self, db_session):
        await add_tracking(db_session, USER, d(14))
        await add_tracking(db_session, USER, d(13))
        await claim_streak(db_session, USER, d(13), now=NOW)

        days = await get_claimable_days(db_session, USER, now=NOW)
        assert len(days) == 8
        assert days[0].day == d(14)
        assert days[-1].day == d(7)

        assert days[0].can_claim is True
        assert days[1].already_claimed is True
        assert days[1].reason == REASON_ALREADY_CLAIMED
        assert days[2].has_health_data is False
        assert days[2].reason == REASON_NO_HEALTH_DATA


class TestShields:
    """Shield inventory and spending order."""

    @pytest.mark.asyncio
    async def test_weekly_freeze_created_lazily(self, db_session):
        status = await get_available_shields(db_session, USER, NOW)
        assert status.freezes == 1
        assert status.total == 1
        assert status.next_freeze_reset == datetime(2026, 3, 16, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_per_type_cap(self, db_session):
        assert await add_purchased_shields(db_session, USER, 10, NOW) == 5

    @pytest.mark.asyncio
    async def test_spend_order(self, db_session):
        await grant_milestone_shields(db_session, USER, 1, NOW)
        await add_purchased_shields(db_session, USER, 1, NOW)

        for day in (d(11), d(12), d(13)):
            assert await activate_freeze(db_session, USER, day, NOW) is True

        claims = await db_session.execute(
            select(StreakClaim).where(StreakClaim.user_id == USER).order_by(StreakClaim.claim_date)
        )
        spent = [c.extra_data["shield_type"] for c in claims.scalars()]
        assert spent == ["freeze", "milestone_shield", "purchased"]

        with pytest.raises(NoShieldsAvailableError):
            await activate_freeze(db_session, USER, d(10), NOW)

    @pytest.mark.asyncio
    async def test_freeze_on_claimed_day_is_noop(self, db_session):
        await add_tracking(db_session, USER, d(14))
        await claim_streak(db_session, USER, d(14), now=NOW)
        assert await activate_freeze(db_session, USER, d(14), NOW) is False

        status = await get_available_shields(db_session, USER, NOW)
        assert status.freezes == 1

    @pytest.mark.asyncio
    async def test_frozen_day_blocks_claim(self, db_session):
        await add_tracking(db_session, USER, d(13))
        await activate_freeze(db_session, USER, d(13), NOW)
        result = await can_claim_streak(db_session, USER, d(13), now=NOW)
        assert result.already_claimed is True

    @pytest.mark.asyncio
    async def test_frozen_day_counts_toward_streak(self, db_session):
        await add_tracking(db_session, USER, d(12))
        await add_tracking(db_session, USER, d(14))
        await claim_streak(db_session, USER, d(12), now=noon(d(12)))
        await activate_freeze(db_session, USER, d(13), noon(d(14)))
        result = await claim_streak(db_session, USER, d(14), now=NOW)
        # 14, 13 (shield), 12 and the 11th covered by the engagement freeze
        assert result.streak_count == 4

    @pytest.mark.asyncio
    async def test_freeze_rejects_future_date(self, db_session):
        with pytest.raises(NotClaimableError) as exc_info:
            await activate_freeze(db_session, USER, d(15), NOW)
        assert exc_info.value.reason == REASON_FUTURE

        status = await get_available_shields(db_session, USER, NOW)
        assert status.freezes == 1
        assert await db_session.scalar(select(StreakClaim).where(StreakClaim.user_id == USER)) is None

    @pytest.mark.asyncio
    async def test_freeze_rejects_date_outside_window(self, db_session):
        with pytest.raises(NotClaimableError) as exc_info:
            await activate_freeze(db_session, USER, d(6), NOW)
        assert exc_info.value.reason == REASON_OUTSIDE_WINDOW

    @pytest.mark.asyncio
    async def test_future_freeze_does_not_block_later_claim(self, db_session):
        with pytest.raises(NotClaimableError):
            await activate_freeze(db_session, USER, d(15), NOW)

        tomorrow = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
        await add_tracking(db_session, USER, d(15))
        result = await claim_streak(db_session, USER, d(15), now=tomorrow)
        assert result.success is True
