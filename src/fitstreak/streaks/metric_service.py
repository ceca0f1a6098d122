"""Per-metric streaks over the daily tracking log.

Daily metrics (weight, steps, mood) use the grace walk with a weekly grace
allotment; weekly metrics (measurements, photos) count Sunday-Saturday
weeks, optionally restricted to certain weekdays.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitstreak.config import get_settings
from fitstreak.db.models import MetricStreak
from fitstreak.streaks.activity_log import get_metric_log_dates, parse_metric_type
from fitstreak.streaks.calculator import (
    compute_daily_metric_streak,
    compute_weekly_streak,
    longest_daily_run,
    longest_weekly_run,
)
from fitstreak.streaks.constants import METRIC_CONFIG, Cadence, MetricType
from fitstreak.streaks.dates import utc_now, utc_today, week_start_sunday
from fitstreak.streaks.schemas import MetricStreakResponse

logger = logging.getLogger(__name__)


async def _get_metric_state(db: AsyncSession, user_id: str, metric_type: MetricType) -> MetricStreak | None:
    result = await db.execute(
        select(MetricStreak).where(
            MetricStreak.user_id == user_id,
            MetricStreak.metric_type == metric_type.value,
        )
    )
    return result.scalar_one_or_none()


async def update_metric_streak(
    db: AsyncSession,
    user_id: str,
    metric_type: str | MetricType,
    log_date: date | None = None,
    today: date | None = None,
) -> MetricStreak:
    """Recompute one metric's streak walking back from today.

    ``log_date`` is the day the entry was logged for; a backfilled day only
    feeds the log and never moves the walk or ``last_log_date`` backwards.
    """
    metric = parse_metric_type(metric_type)
    config = METRIC_CONFIG[metric]
    settings = get_settings()
    today = today or utc_today()
    logged_on = log_date or today

    log_dates = await get_metric_log_dates(
        db, user_id, metric, today - timedelta(days=settings.metric_log_lookback_days), today
    )

    if config.cadence is Cadence.DAILY:
        lookback = settings.streak_lookback_days
        calc = compute_daily_metric_streak(log_dates, config.grace_days, today, lookback_days=lookback)
        window_longest = longest_daily_run(log_dates, config.grace_days, today, lookback_days=lookback)
        this_week = week_start_sunday(today)
        used_this_week = sum(1 for d in calc.frozen_dates if week_start_sunday(d) == this_week)
        grace_left = config.grace_days - used_this_week
    else:
        weeks = settings.weekly_streak_lookback_weeks
        calc = compute_weekly_streak(log_dates, today, config.allowed_weekdays, lookback_weeks=weeks)
        window_longest = longest_weekly_run(log_dates, today, config.allowed_weekdays, lookback_weeks=weeks)
        grace_left = 0

    state = await _get_metric_state(db, user_id, metric)
    if state is None:
        state = MetricStreak(user_id=user_id, metric_type=metric.value, longest_streak=0)
        db.add(state)

    state.current_streak = calc.streak
    state.longest_streak = max(state.longest_streak or 0, calc.streak, window_longest)
    state.grace_days_available = grace_left
    state.last_log_date = max(state.last_log_date or logged_on, logged_on)
    state.updated_at = utc_now()
    await db.flush()

    logger.debug("User %s %s streak = %d", user_id, metric.value, calc.streak)
    return state


async def get_metric_streaks(db: AsyncSession, user_id: str) -> dict[str, MetricStreakResponse | None]:
    """Every known metric, with None for metrics never logged."""
    result = await db.execute(select(MetricStreak).where(MetricStreak.user_id == user_id))
    by_type = {row.metric_type: row for row in result.scalars()}
    return {
        metric.value: MetricStreakResponse.model_validate(by_type[metric.value]) if metric.value in by_type else None
        for metric in MetricType
    }


async def get_metric_streak(
    db: AsyncSession, user_id: str, metric_type: str | MetricType
) -> MetricStreakResponse | None:
    metric = parse_metric_type(metric_type)
    state = await _get_metric_state(db, user_id, metric)
    return MetricStreakResponse.model_validate(state) if state else None
