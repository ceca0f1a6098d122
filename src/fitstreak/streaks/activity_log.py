"""Activity log and health tracking reads.

Activity rows are insert-only; a duplicate (user, date, type) is silently
ignored via INSERT ... ON CONFLICT DO NOTHING.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from fitstreak.db.models import DailyTracking, EngagementActivity
from fitstreak.streaks.constants import ActivityType, MetricType
from fitstreak.streaks.errors import InvalidActivityTypeError, InvalidMetricTypeError

# Activities written by the engine itself rather than by the user.
SYNTHETIC_ACTIVITY_TYPES = frozenset({ActivityType.STREAK_FREEZE.value})


def parse_activity_type(activity_type: str | ActivityType) -> ActivityType:
    try:
        return ActivityType(activity_type)
    except ValueError:
        raise InvalidActivityTypeError(str(activity_type)) from None


def parse_metric_type(metric_type: str | MetricType) -> MetricType:
    try:
        return MetricType(metric_type)
    except ValueError:
        raise InvalidMetricTypeError(str(metric_type)) from None


async def insert_ignore(
    db: AsyncSession,
    model: type,
    values: dict[str, Any],
    index_elements: list[str],
) -> bool:
    """Insert a row unless it collides with ``index_elements``. Returns True if inserted."""
    dialect = db.get_bind().dialect.name
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=index_elements)
    result = await db.execute(stmt)
    return bool(result.rowcount)


async def add_activity(
    db: AsyncSession,
    user_id: str,
    activity_type: str | ActivityType,
    activity_date: date,
    reference_id: str | None = None,
) -> bool:
    """Append an activity record. Returns False if it already existed."""
    parsed = parse_activity_type(activity_type)
    return await insert_ignore(
        db,
        EngagementActivity,
        {
            "user_id": user_id,
            "activity_date": activity_date,
            "activity_type": parsed.value,
            "reference_id": reference_id,
        },
        ["user_id", "activity_date", "activity_type"],
    )


async def get_activities(
    db: AsyncSession,
    user_id: str,
    since: date,
    until: date | None = None,
) -> list[EngagementActivity]:
    """Get a user's activity rows in [since, until], newest first."""
    stmt = select(EngagementActivity).where(
        EngagementActivity.user_id == user_id,
        EngagementActivity.activity_date >= since,
    )
    if until is not None:
        stmt = stmt.where(EngagementActivity.activity_date <= until)
    stmt = stmt.order_by(EngagementActivity.activity_date.desc(), EngagementActivity.id.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_activity_dates(
    db: AsyncSession,
    user_id: str,
    since: date,
    until: date | None = None,
) -> tuple[set[date], date | None]:
    """Get the set of days with any activity and the latest day with a user-made one."""
    rows = await get_activities(db, user_id, since, until)
    dates = {row.activity_date for row in rows}
    genuine = [row.activity_date for row in rows if row.activity_type not in SYNTHETIC_ACTIVITY_TYPES]
    return dates, max(genuine) if genuine else None


# ---------------------------------------------------------------------------
# Health tracking
# ---------------------------------------------------------------------------


def has_health_data(row: DailyTracking | None) -> bool:
    """A day has health data when weight, steps, mood or energy were recorded."""
    if row is None:
        return False
    return bool(
        (row.weight_kg is not None and row.weight_kg > 0)
        or (row.steps is not None and row.steps > 0)
        or row.mood_score is not None
        or row.energy_level is not None
    )


def health_snapshot(row: DailyTracking | None) -> dict[str, Any]:
    """JSON-safe copy of the day's health values, stored with a claim."""
    if row is None:
        return {}
    return {
        "weight_kg": float(row.weight_kg) if row.weight_kg is not None else None,
        "steps": row.steps,
        "mood_score": row.mood_score,
        "energy_level": row.energy_level,
    }


async def get_daily_tracking(db: AsyncSession, user_id: str, tracking_date: date) -> DailyTracking | None:
    result = await db.execute(
        select(DailyTracking).where(
            DailyTracking.user_id == user_id,
            DailyTracking.tracking_date == tracking_date,
        )
    )
    return result.scalar_one_or_none()


_METRIC_PRESENCE = {
    MetricType.WEIGHT: lambda: DailyTracking.weight_kg > 0,
    MetricType.STEPS: lambda: DailyTracking.steps > 0,
    MetricType.MOOD: lambda: DailyTracking.mood_score.is_not(None),
    MetricType.MEASUREMENTS: lambda: DailyTracking.measurements_logged.is_(True),
    MetricType.PHOTOS: lambda: DailyTracking.photo_logged.is_(True),
}


async def get_metric_log_dates(
    db: AsyncSession,
    user_id: str,
    metric_type: MetricType,
    since: date,
    until: date,
) -> set[date]:
    """Get the days in [since, until] on which the metric was logged."""
    result = await db.execute(
        select(DailyTracking.tracking_date).where(
            DailyTracking.user_id == user_id,
            DailyTracking.tracking_date >= since,
            DailyTracking.tracking_date <= until,
            _METRIC_PRESENCE[metric_type](),
        )
    )
    return set(result.scalars().all())
