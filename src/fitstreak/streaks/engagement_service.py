"""Engagement streak: activity recording, recomputation, freezes and pauses.

The streak is always recomputed from the activity log rather than
incremented, so repeated or concurrent calls converge on the same value.
Functions flush; the caller owns the commit.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitstreak.config import get_settings
from fitstreak.db.models import EngagementStreak, StreakPause
from fitstreak.streaks.activity_log import add_activity, get_activities, get_activity_dates, parse_activity_type
from fitstreak.streaks.calculator import compute_streak, newly_earned_freezes
from fitstreak.streaks.constants import ActivityType
from fitstreak.streaks.dates import advance_reset_date, utc_now, utc_today
from fitstreak.streaks.errors import (
    AlreadyPausedError,
    FreezeLimitReachedError,
    InvalidDateRangeError,
    NotPausedError,
    PauseTooLongError,
)
from fitstreak.streaks.schemas import EngagementDay, EngagementHistoryResponse, EngagementStreakResponse

logger = logging.getLogger(__name__)


async def get_engagement_state(db: AsyncSession, user_id: str) -> EngagementStreak | None:
    result = await db.execute(select(EngagementStreak).where(EngagementStreak.user_id == user_id))
    return result.scalar_one_or_none()


async def get_or_create_engagement_streak(
    db: AsyncSession, user_id: str, today: date | None = None
) -> EngagementStreak:
    """Get or lazily create the engagement streak row for a user."""
    state = await get_engagement_state(db, user_id)
    if state is None:
        settings = get_settings()
        today = today or utc_today()
        state = EngagementStreak(
            user_id=user_id,
            current_streak=0,
            longest_streak=0,
            freezes_available=settings.default_streak_freezes,
            freezes_used_this_week=0,
            auto_freeze_reset_date=today + timedelta(days=settings.freeze_reset_interval_days),
            paused=False,
            total_claims=0,
        )
        db.add(state)
        await db.flush()
    return state


async def _load_exempt_dates(db: AsyncSession, user_id: str, since: date) -> set[date]:
    """Expand completed pauses ending on or after ``since`` into individual days."""
    result = await db.execute(
        select(StreakPause).where(StreakPause.user_id == user_id, StreakPause.end_date >= since)
    )
    exempt: set[date] = set()
    for pause in result.scalars():
        day = pause.start_date
        while day <= pause.end_date:
            exempt.add(day)
            day += timedelta(days=1)
    return exempt


async def _close_pause(db: AsyncSession, state: EngagementStreak, today: date) -> None:
    """Record the paused interval and clear the pause fields."""
    start = state.pause_start_date
    end = today - timedelta(days=1)
    if state.pause_end_date is not None:
        end = min(end, state.pause_end_date - timedelta(days=1))
    if start is not None and end >= start:
        db.add(StreakPause(user_id=state.user_id, start_date=start, end_date=end))
    state.paused = False
    state.pause_start_date = None
    state.pause_end_date = None
    await db.flush()
    logger.info("Streak resumed for user %s (paused %s..%s)", state.user_id, start, end)


def _apply_weekly_reset(state: EngagementStreak, today: date) -> None:
    settings = get_settings()
    if state.auto_freeze_reset_date is None:
        state.auto_freeze_reset_date = today + timedelta(days=settings.freeze_reset_interval_days)
        return
    if today < state.auto_freeze_reset_date:
        return
    # a single freeze no matter how many intervals elapsed
    state.freezes_available = min(settings.max_streak_freezes, state.freezes_available + 1)
    state.freezes_used_this_week = 0
    state.auto_freeze_reset_date = advance_reset_date(
        state.auto_freeze_reset_date, today, settings.freeze_reset_interval_days
    )


async def update_engagement_streak(
    db: AsyncSession, user_id: str, today: date | None = None
) -> EngagementStreak:
    """Recompute the engagement streak from the trailing activity window.

    Steps:
    1. Auto-resume a pause whose end date has arrived; otherwise a paused
       streak is returned untouched.
    2. Apply the weekly freeze reset when due.
    3. Walk the log, spending freezes on gaps (paused days are exempt).
    4. Persist each protected day as a streak_freeze activity so the next
       recomputation sees it as covered and does not charge it again.
    5. Earn a freeze for every 7th day of streak gained and write back.
    """
    settings = get_settings()
    today = today or utc_today()
    state = await get_or_create_engagement_streak(db, user_id, today)

    if state.paused:
        if state.pause_end_date is None or today < state.pause_end_date:
            return state
        await _close_pause(db, state, today)

    _apply_weekly_reset(state, today)

    lookback = settings.streak_lookback_days
    exempt = await _load_exempt_dates(
        db, user_id, today - timedelta(days=lookback + settings.max_pause_duration_days)
    )
    since = today - timedelta(days=lookback + len(exempt))
    activity_dates, last_genuine = await get_activity_dates(db, user_id, since, today)

    calc = compute_streak(
        activity_dates,
        state.freezes_available,
        today,
        exempt_dates=exempt,
        lookback_days=lookback,
    )
    for frozen_day in calc.frozen_dates:
        await add_activity(db, user_id, ActivityType.STREAK_FREEZE, frozen_day)

    previous = state.current_streak
    earned = newly_earned_freezes(calc.streak, previous, settings.freeze_earn_streak_days)

    state.current_streak = calc.streak
    state.longest_streak = max(state.longest_streak, calc.streak)
    state.freezes_available = min(
        settings.max_streak_freezes,
        state.freezes_available - calc.freezes_used + earned,
    )
    state.freezes_used_this_week += calc.freezes_used
    if last_genuine is not None:
        state.last_engagement_date = last_genuine
    state.updated_at = utc_now()
    await db.flush()

    if calc.freezes_used or earned:
        logger.info(
            "User %s streak %d -> %d: %d freeze(s) used, %d earned",
            user_id, previous, calc.streak, calc.freezes_used, earned,
        )
    return state


async def record_activity(
    db: AsyncSession,
    user_id: str,
    activity_type: str | ActivityType,
    reference_id: str | None = None,
    activity_date: date | None = None,
    today: date | None = None,
) -> EngagementStreak:
    """Record a qualifying action (duplicates are ignored) and recompute the streak."""
    parsed = parse_activity_type(activity_type)
    today = today or utc_today()
    await add_activity(db, user_id, parsed, activity_date or today, reference_id)
    return await update_engagement_streak(db, user_id, today)


async def get_engagement_streak(db: AsyncSession, user_id: str) -> EngagementStreakResponse:
    """Read-only projection. Users with no history get the defaults."""
    state = await get_engagement_state(db, user_id)
    if state is None:
        return EngagementStreakResponse(
            user_id=user_id,
            freezes_available=get_settings().default_streak_freezes,
        )
    return EngagementStreakResponse.model_validate(state)


async def pause_streak(
    db: AsyncSession,
    user_id: str,
    resume_date: date | None = None,
    today: date | None = None,
) -> EngagementStreak:
    """Pause the streak until ``resume_date`` (default: the longest allowed pause)."""
    settings = get_settings()
    today = today or utc_today()
    state = await get_or_create_engagement_streak(db, user_id, today)
    if state.paused:
        raise AlreadyPausedError()

    max_days = settings.max_pause_duration_days
    if resume_date is None:
        resume_date = today + timedelta(days=max_days)
    requested_days = (resume_date - today).days
    if requested_days <= 0:
        raise InvalidDateRangeError(
            "Resume date must be after today",
            {"resume_date": resume_date.isoformat(), "today": today.isoformat()},
        )
    if requested_days > max_days:
        raise PauseTooLongError(max_days, requested_days)

    state.paused = True
    state.pause_start_date = today
    state.pause_end_date = resume_date
    state.updated_at = utc_now()
    await db.flush()
    logger.info("Streak paused for user %s until %s", user_id, resume_date)
    return state


async def resume_streak(db: AsyncSession, user_id: str, today: date | None = None) -> EngagementStreak:
    """End a pause early and recompute. Paused days stay exempt from breaking the streak."""
    today = today or utc_today()
    state = await get_engagement_state(db, user_id)
    if state is None or not state.paused:
        raise NotPausedError()
    await _close_pause(db, state, today)
    return await update_engagement_streak(db, user_id, today)


async def purchase_freeze(db: AsyncSession, user_id: str, today: date | None = None) -> EngagementStreak:
    """Add one engagement freeze; fails at the cap."""
    settings = get_settings()
    state = await get_or_create_engagement_streak(db, user_id, today)
    if state.freezes_available >= settings.max_streak_freezes:
        raise FreezeLimitReachedError(settings.max_streak_freezes)
    state.freezes_available += 1
    state.updated_at = utc_now()
    await db.flush()
    return state


async def get_engagement_history(
    db: AsyncSession, user_id: str, days: int = 90, today: date | None = None
) -> EngagementHistoryResponse:
    """Activities in the trailing window grouped by day, newest first."""
    today = today or utc_today()
    rows = await get_activities(db, user_id, today - timedelta(days=days - 1), today)
    grouped: dict[date, list[str]] = defaultdict(list)
    for row in rows:
        grouped[row.activity_date].append(row.activity_type)
    history = [EngagementDay(day=day, activities=types) for day, types in sorted(grouped.items(), reverse=True)]
    return EngagementHistoryResponse(
        history=history,
        total_days=len(history),
        total_activities=len(rows),
    )
