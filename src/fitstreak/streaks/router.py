"""Streak API endpoints.

Thin layer over the engines: resolve the caller, call the engine, commit.
Engine errors are rendered by the StreakError handler.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitstreak.database import get_session
from fitstreak.dependencies import get_current_user_id, get_redis_dep
from fitstreak.streaks import claim_service, engagement_service, metric_service
from fitstreak.streaks.schemas import (
    CanClaimResult,
    ClaimableDaysResponse,
    ClaimRequest,
    ClaimResult,
    EngagementHistoryResponse,
    EngagementStreakResponse,
    FreezeRequest,
    MetricLogRequest,
    MetricStreakResponse,
    MetricStreaksResponse,
    PauseRequest,
    RecordActivityRequest,
    RecoveryActionResult,
    RecoveryResponse,
    ShieldStatus,
    StartRecoveryRequest,
)

router = APIRouter(prefix="/api/v1/streaks", tags=["Streaks"])


# ── Engagement ──


@router.get("/engagement", response_model=EngagementStreakResponse)
async def get_engagement(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Current engagement streak (defaults for new users)."""
    return await engagement_service.get_engagement_streak(db, user_id)


@router.post("/activities", response_model=EngagementStreakResponse)
async def record_activity(
    body: RecordActivityRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    state = await engagement_service.record_activity(
        db, user_id, body.activity_type, body.reference_id, body.activity_date
    )
    await db.commit()
    return EngagementStreakResponse.model_validate(state)


@router.get("/engagement/history", response_model=EngagementHistoryResponse)
async def get_history(
    days: int = Query(90, ge=1, le=365),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    return await engagement_service.get_engagement_history(db, user_id, days)


@router.post("/engagement/pause", response_model=EngagementStreakResponse)
async def pause(
    body: PauseRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    state = await engagement_service.pause_streak(db, user_id, body.resume_date)
    await db.commit()
    return EngagementStreakResponse.model_validate(state)


@router.post("/engagement/resume", response_model=EngagementStreakResponse)
async def resume(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    state = await engagement_service.resume_streak(db, user_id)
    await db.commit()
    return EngagementStreakResponse.model_validate(state)


@router.post("/engagement/freezes", response_model=EngagementStreakResponse)
async def purchase_freeze(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    state = await engagement_service.purchase_freeze(db, user_id)
    await db.commit()
    return EngagementStreakResponse.model_validate(state)


# ── Metrics ──


@router.get("/metrics", response_model=MetricStreaksResponse)
async def get_metrics(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    return MetricStreaksResponse(streaks=await metric_service.get_metric_streaks(db, user_id))


@router.post("/metrics", response_model=MetricStreakResponse)
async def update_metric(
    body: MetricLogRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    state = await metric_service.update_metric_streak(db, user_id, body.metric_type, body.log_date)
    await db.commit()
    return MetricStreakResponse.model_validate(state)


# ── Claims ──


@router.get("/claims/check", response_model=CanClaimResult)
async def check_claim(
    claim_date: date = Query(..., alias="date"),
    timezone: str = Query("UTC"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    return await claim_service.can_claim_streak(db, user_id, claim_date, timezone)


@router.post("/claims", response_model=ClaimResult)
async def claim(
    body: ClaimRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Claim a day (today or up to a week back)."""
    result = await claim_service.claim_streak(
        db, user_id, body.claim_date, body.timezone, body.method, redis=redis
    )
    await db.commit()
    return result


@router.get("/claims/claimable", response_model=ClaimableDaysResponse)
async def claimable_days(
    timezone: str = Query("UTC"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    return ClaimableDaysResponse(days=await claim_service.get_claimable_days(db, user_id, timezone))


# ── Shields ──


@router.get("/shields", response_model=ShieldStatus)
async def shields(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    status = await claim_service.get_available_shields(db, user_id)
    await db.commit()
    return status


@router.post("/shields/activate")
async def activate_freeze(
    body: FreezeRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    activated = await claim_service.activate_freeze(db, user_id, body.freeze_date)
    await db.commit()
    return {"activated": activated}


# ── Recovery ──


@router.post("/recoveries", response_model=RecoveryResponse)
async def start_recovery(
    body: StartRecoveryRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    recovery = await claim_service.start_recovery(db, user_id, body.broken_date, body.recovery_type)
    await db.commit()
    return RecoveryResponse.model_validate(recovery)


@router.post("/recoveries/{recovery_id}/actions", response_model=RecoveryActionResult)
async def recovery_action(
    recovery_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    completed, recovery = await claim_service.complete_recovery_action(db, user_id, recovery_id)
    await db.commit()
    return RecoveryActionResult(completed=completed, recovery=RecoveryResponse.model_validate(recovery))
