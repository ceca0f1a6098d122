"""Pydantic models for streak results and API payloads."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from fitstreak.streaks.constants import ActivityType, ClaimMethod, MetricType, RecoveryType


# --- Engagement ---


class EngagementStreakResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    freezes_available: int = 1
    freezes_used_this_week: int = 0
    last_engagement_date: date | None = None
    auto_freeze_reset_date: date | None = None
    paused: bool = False
    pause_start_date: date | None = None
    pause_end_date: date | None = None
    last_claim_date: date | None = None
    total_claims: int = 0


class EngagementDay(BaseModel):
    day: date
    activities: list[str]


class EngagementHistoryResponse(BaseModel):
    history: list[EngagementDay]
    total_days: int
    total_activities: int


# --- Metrics ---


class MetricStreakResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    metric_type: str
    current_streak: int
    longest_streak: int
    grace_days_available: int
    last_log_date: date | None = None


class MetricStreaksResponse(BaseModel):
    streaks: dict[str, MetricStreakResponse | None]


# --- Claims ---


class CanClaimResult(BaseModel):
    can_claim: bool
    already_claimed: bool = False
    reason: str | None = None
    has_health_data: bool | None = None
    grace_period_active: bool | None = None


class StreakClaimResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    claim_date: date
    claimed_at: datetime
    claim_method: str
    timezone: str
    health_data_synced: bool


class ClaimResult(BaseModel):
    success: bool
    streak_count: int
    milestone: str | None = None
    shields_granted: int = 0
    message: str
    claim: StreakClaimResponse | None = None


class ClaimableDay(BaseModel):
    day: date
    can_claim: bool
    already_claimed: bool
    has_health_data: bool
    reason: str | None = None


class ClaimableDaysResponse(BaseModel):
    days: list[ClaimableDay]


# --- Shields ---


class ShieldStatus(BaseModel):
    freezes: int = 0
    milestone_shields: int = 0
    purchased: int = 0
    total: int = 0
    last_freeze_reset: datetime | None = None
    next_freeze_reset: datetime


# --- Recovery ---


class RecoveryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    broken_date: date
    recovery_type: str
    recovery_status: str
    actions_required: int
    actions_completed: int
    expires_at: datetime | None = None
    completed_at: datetime | None = None


class RecoveryActionResult(BaseModel):
    completed: bool
    recovery: RecoveryResponse


# --- Batch jobs ---


class BatchResult(BaseModel):
    processed: int = 0
    broken: int = 0
    shields_applied: int = 0
    errors: list[str] = Field(default_factory=list)


# --- Requests ---


class RecordActivityRequest(BaseModel):
    activity_type: ActivityType
    reference_id: str | None = None
    activity_date: date | None = None


class PauseRequest(BaseModel):
    resume_date: date | None = None


class ClaimRequest(BaseModel):
    claim_date: date
    timezone: str = "UTC"
    method: ClaimMethod = ClaimMethod.EXPLICIT


class FreezeRequest(BaseModel):
    freeze_date: date


class MetricLogRequest(BaseModel):
    metric_type: MetricType
    log_date: date | None = None


class StartRecoveryRequest(BaseModel):
    broken_date: date
    recovery_type: RecoveryType
