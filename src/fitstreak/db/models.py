"""ORM models for the streak engines.

User ids are opaque strings issued by the upstream auth gateway, so no
table carries a foreign key to a users table. JSON columns use JSONB on
PostgreSQL and plain JSON elsewhere.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fitstreak.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Activity log
# ---------------------------------------------------------------------------


class EngagementActivity(Base):
    """One qualifying action per user, day and type. Rows are never updated."""

    __tablename__ = "engagement_activities"
    __table_args__ = (
        UniqueConstraint("user_id", "activity_date", "activity_type", name="uq_engagement_activity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)
    activity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reference_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class DailyTracking(Base):
    """Daily health log written by the tracking feature; read-only here."""

    __tablename__ = "daily_tracking"
    __table_args__ = (
        UniqueConstraint("user_id", "tracking_date", name="uq_daily_tracking_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tracking_date: Mapped[date] = mapped_column(Date, nullable=False)
    weight_kg: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    steps: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mood_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    energy_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    measurements_logged: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="0"
    )
    photo_logged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")


# ---------------------------------------------------------------------------
# Streak state
# ---------------------------------------------------------------------------


class EngagementStreak(Base):
    """Overall engagement streak, one row per user."""

    __tablename__ = "engagement_streaks"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    freezes_available: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    freezes_used_this_week: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    last_engagement_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    auto_freeze_reset_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    pause_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pause_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_claim_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_claims: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class StreakPause(Base):
    """A completed pause interval. Both dates are inclusive."""

    __tablename__ = "streak_pauses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class MetricStreak(Base):
    """Per-metric streak, one row per (user, metric_type)."""

    __tablename__ = "metric_streaks"
    __table_args__ = (
        UniqueConstraint("user_id", "metric_type", name="uq_metric_streak_user_metric"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    metric_type: Mapped[str] = mapped_column(String(32), nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    grace_days_available: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    last_log_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Claims, shields, recoveries
# ---------------------------------------------------------------------------


class StreakClaim(Base):
    """A user's explicit claim of a calendar day."""

    __tablename__ = "streak_claims"
    __table_args__ = (
        UniqueConstraint("user_id", "claim_date", name="uq_streak_claim_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    claim_date: Mapped[date] = mapped_column(Date, nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    claim_method: Mapped[str] = mapped_column(String(16), nullable=False, default="explicit")
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    health_data_synced: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="0"
    )
    extra_data: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)


class StreakShield(Base):
    """Shield inventory, one row per (user, shield_type)."""

    __tablename__ = "streak_shields"
    __table_args__ = (
        UniqueConstraint("user_id", "shield_type", name="uq_streak_shield_user_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    shield_type: Mapped[str] = mapped_column(String(32), nullable=False)
    available_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_reset_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class StreakRecovery(Base):
    """A recovery attempt for a broken day."""

    __tablename__ = "streak_recoveries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    broken_date: Mapped[date] = mapped_column(Date, nullable=False)
    recovery_type: Mapped[str] = mapped_column(String(32), nullable=False)
    recovery_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    actions_required: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    actions_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    extra_data: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
