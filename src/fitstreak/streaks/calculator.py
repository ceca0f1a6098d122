"""Pure streak calculators. No I/O: every function takes dates and returns numbers.

The engagement and daily-metric engines share the grace walk: starting at
``as_of`` and moving back one day at a time, a day with activity extends
the streak, ``as_of`` itself without activity is skipped, and any other
empty day either consumes a freeze (and still counts) or ends the streak.
A walk that never reaches a day with activity scores zero and spends nothing.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

from fitstreak.streaks.constants import STREAK_LOOKBACK_DAYS, WEEKLY_STREAK_LOOKBACK_WEEKS
from fitstreak.streaks.dates import week_start_sunday


@dataclass
class StreakComputation:
    """Result of a backward streak walk."""

    streak: int = 0
    freezes_used: int = 0
    frozen_dates: list[date] = field(default_factory=list)
    broken: bool = False


def _grace_walk(
    active: set[date],
    as_of: date,
    lookback_days: int,
    can_freeze: Callable[[date], bool],
    on_freeze: Callable[[date], None],
    exempt: Collection[date] = (),
) -> StreakComputation:
    result = StreakComputation()
    found_activity = False
    limit = lookback_days
    offset = 0

    while offset < limit:
        day = as_of - timedelta(days=offset)
        offset += 1
        if day in active:
            result.streak += 1
            found_activity = True
        elif offset == 1:
            continue
        elif day in exempt:
            # paused days widen the window instead of consuming it
            limit += 1
        elif can_freeze(day):
            on_freeze(day)
            result.freezes_used += 1
            result.streak += 1
            result.frozen_dates.append(day)
        else:
            result.broken = True
            break

    if not found_activity:
        return StreakComputation(broken=result.broken)
    return result


def compute_streak(
    activity_dates: Iterable[date],
    freezes_available: int,
    as_of: date,
    exempt_dates: Collection[date] = (),
    lookback_days: int = STREAK_LOOKBACK_DAYS,
) -> StreakComputation:
    """Walk back from ``as_of`` spending up to ``freezes_available`` freezes on gaps.

    ``exempt_dates`` are paused days: without activity they are skipped
    (neither counted nor breaking).
    """
    spent: list[date] = []
    return _grace_walk(
        set(activity_dates),
        as_of,
        lookback_days,
        can_freeze=lambda _day: len(spent) < freezes_available,
        on_freeze=spent.append,
        exempt=set(exempt_dates),
    )


def newly_earned_freezes(new_streak: int, old_streak: int, earn_every: int = 7) -> int:
    """One freeze for every ``earn_every``-th consecutive day since the last observed length."""
    return max(0, new_streak // earn_every - old_streak // earn_every)


# ---------------------------------------------------------------------------
# Metric streaks
# ---------------------------------------------------------------------------


def compute_daily_metric_streak(
    log_dates: Iterable[date],
    grace_per_week: int,
    as_of: date,
    lookback_days: int = STREAK_LOOKBACK_DAYS,
) -> StreakComputation:
    """Grace walk where the allotment is restored for every Sunday-Saturday week."""
    used_by_week: dict[date, int] = {}

    def can_freeze(day: date) -> bool:
        return used_by_week.get(week_start_sunday(day), 0) < grace_per_week

    def on_freeze(day: date) -> None:
        week = week_start_sunday(day)
        used_by_week[week] = used_by_week.get(week, 0) + 1

    return _grace_walk(
        set(log_dates),
        as_of,
        lookback_days,
        can_freeze=can_freeze,
        on_freeze=on_freeze,
    )


def longest_daily_run(
    log_dates: Iterable[date],
    grace_per_week: int,
    as_of: date,
    lookback_days: int = STREAK_LOOKBACK_DAYS,
) -> int:
    """Longest run inside the window; a grace day counts only once a later log closes the gap."""
    logged = set(log_dates)
    best = run = 0
    used_by_week: dict[date, int] = {}

    for offset in range(lookback_days - 1, -1, -1):
        day = as_of - timedelta(days=offset)
        week = week_start_sunday(day)
        if day in logged:
            run += 1
            best = max(best, run)
        elif run and used_by_week.get(week, 0) < grace_per_week:
            used_by_week[week] = used_by_week.get(week, 0) + 1
            run += 1
        else:
            run = 0

    return best


def _week_qualifies(week_start: date, logged: set[date], allowed_weekdays: Collection[int] | None) -> bool:
    for offset in range(7):
        day = week_start + timedelta(days=offset)
        if day in logged and (allowed_weekdays is None or day.weekday() in allowed_weekdays):
            return True
    return False


def compute_weekly_streak(
    log_dates: Iterable[date],
    as_of: date,
    allowed_weekdays: Collection[int] | None = None,
    lookback_weeks: int = WEEKLY_STREAK_LOOKBACK_WEEKS,
) -> StreakComputation:
    """Count consecutive Sunday-Saturday weeks with a qualifying log.

    The current week without a log yet does not break the streak.
    """
    logged = set(log_dates)
    current_week = week_start_sunday(as_of)
    result = StreakComputation()

    for offset in range(lookback_weeks):
        week = current_week - timedelta(weeks=offset)
        if _week_qualifies(week, logged, allowed_weekdays):
            result.streak += 1
        elif offset == 0:
            continue
        else:
            result.broken = True
            break

    return result


def longest_weekly_run(
    log_dates: Iterable[date],
    as_of: date,
    allowed_weekdays: Collection[int] | None = None,
    lookback_weeks: int = WEEKLY_STREAK_LOOKBACK_WEEKS,
) -> int:
    """Longest run of qualifying weeks inside the window."""
    logged = set(log_dates)
    current_week = week_start_sunday(as_of)
    best = run = 0

    for offset in range(lookback_weeks - 1, -1, -1):
        week = current_week - timedelta(weeks=offset)
        if _week_qualifies(week, logged, allowed_weekdays):
            run += 1
            best = max(best, run)
        else:
            run = 0

    return best
