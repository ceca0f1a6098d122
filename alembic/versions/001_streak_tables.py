"""Streak engine tables.

Creates engagement_activities, daily_tracking, engagement_streaks,
streak_pauses, metric_streaks, streak_claims, streak_shields and
streak_recoveries.

Revision ID: 001_streak_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_streak_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Activity log ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS engagement_activities (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            activity_date DATE NOT NULL,
            activity_type VARCHAR(32) NOT NULL,
            reference_id VARCHAR(128),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_engagement_activity UNIQUE (user_id, activity_date, activity_type)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_engagement_activities_user_date
        ON engagement_activities(user_id, activity_date DESC)
    """)

    # --- Daily tracking (written by the tracking feature) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_tracking (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            tracking_date DATE NOT NULL,
            weight_kg NUMERIC(6, 2),
            steps INTEGER,
            mood_score INTEGER,
            energy_level INTEGER,
            measurements_logged BOOLEAN NOT NULL DEFAULT false,
            photo_logged BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT uq_daily_tracking_user_date UNIQUE (user_id, tracking_date)
        )
    """)

    # --- Engagement streak state ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS engagement_streaks (
            user_id VARCHAR(64) PRIMARY KEY,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            freezes_available INTEGER NOT NULL DEFAULT 1,
            freezes_used_this_week INTEGER NOT NULL DEFAULT 0,
            last_engagement_date DATE,
            auto_freeze_reset_date DATE,
            paused BOOLEAN NOT NULL DEFAULT false,
            pause_start_date DATE,
            pause_end_date DATE,
            last_claim_date DATE,
            total_claims INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_freezes_non_negative CHECK (freezes_available >= 0)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_engagement_streaks_active
        ON engagement_streaks(current_streak) WHERE paused = false
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS streak_pauses (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            start_date DATE NOT NULL,
            end_date DATE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_streak_pauses_user_id ON streak_pauses(user_id)")

    # --- Metric streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS metric_streaks (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            metric_type VARCHAR(32) NOT NULL,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            grace_days_available INTEGER NOT NULL DEFAULT 1,
            last_log_date DATE,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_metric_streak_user_metric UNIQUE (user_id, metric_type)
        )
    """)

    # --- Claims ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streak_claims (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            claim_date DATE NOT NULL,
            claimed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            claim_method VARCHAR(16) NOT NULL DEFAULT 'explicit',
            timezone VARCHAR(64) NOT NULL DEFAULT 'UTC',
            health_data_synced BOOLEAN NOT NULL DEFAULT false,
            metadata JSONB NOT NULL DEFAULT '{}',
            CONSTRAINT uq_streak_claim_user_date UNIQUE (user_id, claim_date)
        )
    """)

    # --- Shields ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streak_shields (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            shield_type VARCHAR(32) NOT NULL,
            available_count INTEGER NOT NULL DEFAULT 0 CHECK (available_count >= 0),
            last_reset_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_streak_shield_user_type UNIQUE (user_id, shield_type)
        )
    """)

    # --- Recoveries ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streak_recoveries (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            broken_date DATE NOT NULL,
            recovery_type VARCHAR(32) NOT NULL,
            recovery_status VARCHAR(16) NOT NULL DEFAULT 'pending',
            actions_required INTEGER NOT NULL DEFAULT 0,
            actions_completed INTEGER NOT NULL DEFAULT 0,
            expires_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            metadata JSONB NOT NULL DEFAULT '{}'
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_streak_recoveries_pending
        ON streak_recoveries(expires_at) WHERE recovery_status = 'pending'
    """)


def downgrade() -> None:
    for table in [
        "streak_recoveries",
        "streak_shields",
        "streak_claims",
        "metric_streaks",
        "streak_pauses",
        "engagement_streaks",
        "daily_tracking",
        "engagement_activities",
    ]:
        op.execute(f"DROP TABLE IF EXISTS {table}")  # noqa: S608
