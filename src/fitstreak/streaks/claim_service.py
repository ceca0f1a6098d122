"""Streak claiming: retroactive claims, the shield economy, recovery and daily checks.

A claim marks a calendar day (in the user's timezone) as satisfied. Claims
are unique per (user, date); the database constraint settles concurrent
attempts and the loser sees AlreadyClaimedError. Shields protect missed
days and are consumed in priority order: freeze, milestone, purchased.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fitstreak.config import get_settings
from fitstreak.db.models import DailyTracking, EngagementStreak, StreakClaim, StreakRecovery, StreakShield
from fitstreak.streaks.activity_log import add_activity, get_daily_tracking, has_health_data, health_snapshot
from fitstreak.streaks.constants import (
    SHIELD_PRIORITY,
    ActivityType,
    ClaimMethod,
    RecoveryStatus,
    RecoveryType,
    ShieldType,
)
from fitstreak.streaks.dates import as_utc, local_now, next_monday, utc_now
from fitstreak.streaks.engagement_service import (
    get_engagement_state,
    get_or_create_engagement_streak,
    update_engagement_streak,
)
from fitstreak.streaks.errors import (
    AlreadyClaimedError,
    InvalidRecoveryTypeError,
    NoShieldsAvailableError,
    NotClaimableError,
    RecoveryExpiredError,
    RecoveryInProgressError,
    RecoveryNotFoundError,
)
from fitstreak.streaks.events import publish_streak_event
from fitstreak.streaks.milestones import check_streak_milestone, get_milestone_info
from fitstreak.streaks.schemas import (
    BatchResult,
    CanClaimResult,
    ClaimableDay,
    ClaimResult,
    ShieldStatus,
    StreakClaimResponse,
)

logger = logging.getLogger(__name__)

REASON_FUTURE = "Cannot claim future dates"
REASON_OUTSIDE_WINDOW = "Date is outside 7-day retroactive claiming window"
REASON_ALREADY_CLAIMED = "Already claimed for this date"
REASON_NO_HEALTH_DATA = "No health data recorded for this date"


class BreakOutcome(str, Enum):
    KEPT = "kept"
    SHIELDED = "shielded"
    BROKEN = "broken"


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _date_outside_window(day: date, today: date) -> str | None:
    """Reason a day cannot be claimed or frozen, or None when it is in range."""
    if day > today:
        return REASON_FUTURE
    if (today - day).days > get_settings().retroactive_window_days:
        return REASON_OUTSIDE_WINDOW
    return None


async def _get_claim(db: AsyncSession, user_id: str, claim_date: date) -> StreakClaim | None:
    result = await db.execute(
        select(StreakClaim).where(StreakClaim.user_id == user_id, StreakClaim.claim_date == claim_date)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Shields
# ---------------------------------------------------------------------------


async def _get_shields(db: AsyncSession, user_id: str) -> dict[str, StreakShield]:
    result = await db.execute(select(StreakShield).where(StreakShield.user_id == user_id))
    return {row.shield_type: row for row in result.scalars()}


async def ensure_freeze_shield(db: AsyncSession, user_id: str, now: datetime | None = None) -> StreakShield:
    """Create the weekly freeze row on first contact with the claim engine."""
    shields = await _get_shields(db, user_id)
    row = shields.get(ShieldType.FREEZE.value)
    if row is None:
        row = StreakShield(
            user_id=user_id,
            shield_type=ShieldType.FREEZE.value,
            available_count=get_settings().weekly_free_freeze,
            last_reset_at=now or utc_now(),
        )
        db.add(row)
        await db.flush()
    return row


async def _add_shields(
    db: AsyncSession, user_id: str, shield_type: ShieldType, count: int, now: datetime | None = None
) -> int:
    """Increment a shield type up to the cap. Returns the new count."""
    cap = get_settings().max_total_shields
    shields = await _get_shields(db, user_id)
    row = shields.get(shield_type.value)
    if row is None:
        row = StreakShield(user_id=user_id, shield_type=shield_type.value, available_count=0)
        db.add(row)
    row.available_count = min(cap, row.available_count + count)
    row.updated_at = now or utc_now()
    await db.flush()
    return row.available_count


async def grant_milestone_shields(
    db: AsyncSession, user_id: str, count: int, now: datetime | None = None
) -> int:
    return await _add_shields(db, user_id, ShieldType.MILESTONE_SHIELD, count, now)


async def add_purchased_shields(
    db: AsyncSession, user_id: str, count: int, now: datetime | None = None
) -> int:
    return await _add_shields(db, user_id, ShieldType.PURCHASED, count, now)


async def get_available_shields(db: AsyncSession, user_id: str, now: datetime | None = None) -> ShieldStatus:
    now = now or utc_now()
    await ensure_freeze_shield(db, user_id, now)
    shields = await _get_shields(db, user_id)

    def count(shield_type: ShieldType) -> int:
        row = shields.get(shield_type.value)
        return row.available_count if row else 0

    freezes = count(ShieldType.FREEZE)
    milestone = count(ShieldType.MILESTONE_SHIELD)
    purchased = count(ShieldType.PURCHASED)
    return ShieldStatus(
        freezes=freezes,
        milestone_shields=milestone,
        purchased=purchased,
        total=freezes + milestone + purchased,
        last_freeze_reset=as_utc(shields[ShieldType.FREEZE.value].last_reset_at),
        next_freeze_reset=next_monday(now),
    )


async def activate_freeze(
    db: AsyncSession, user_id: str, freeze_date: date, now: datetime | None = None
) -> bool:
    """Spend one shield to protect ``freeze_date``.

    Returns False without spending anything when the day is already claimed.
    Days a claim could not cover (future or outside the retroactive window)
    raise NotClaimableError.
    """
    now = now or utc_now()
    reason = _date_outside_window(freeze_date, local_now(now, "UTC").date())
    if reason is not None:
        raise NotClaimableError(reason, freeze_date)
    if await _get_claim(db, user_id, freeze_date) is not None:
        return False

    await ensure_freeze_shield(db, user_id, now)
    shields = await _get_shields(db, user_id)
    spent: ShieldType | None = None
    for shield_type in SHIELD_PRIORITY:
        row = shields.get(shield_type.value)
        if row is not None and row.available_count > 0:
            row.available_count -= 1
            row.updated_at = now
            spent = shield_type
            break
    if spent is None:
        raise NoShieldsAvailableError()

    db.add(
        StreakClaim(
            user_id=user_id,
            claim_date=freeze_date,
            claimed_at=now,
            claim_method=ClaimMethod.FREEZE.value,
            timezone="UTC",
            health_data_synced=False,
            extra_data={"shield_type": spent.value},
        )
    )
    await db.flush()
    await add_activity(db, user_id, ActivityType.STREAK_FREEZE, freeze_date)
    await update_engagement_streak(db, user_id, now.date())
    logger.info("User %s protected %s with a %s shield", user_id, freeze_date, spent.value)
    return True


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------


async def can_claim_streak(
    db: AsyncSession,
    user_id: str,
    claim_date: date,
    timezone_name: str = "UTC",
    now: datetime | None = None,
) -> CanClaimResult:
    """Validate a claim without writing anything."""
    settings = get_settings()
    local = local_now(now or utc_now(), timezone_name)
    today = local.date()

    reason = _date_outside_window(claim_date, today)
    if reason is not None:
        return CanClaimResult(can_claim=False, reason=reason)
    days_ago = (today - claim_date).days
    if await _get_claim(db, user_id, claim_date) is not None:
        return CanClaimResult(can_claim=False, already_claimed=True, reason=REASON_ALREADY_CLAIMED)

    tracking = await get_daily_tracking(db, user_id, claim_date)
    if not has_health_data(tracking):
        return CanClaimResult(can_claim=False, has_health_data=False, reason=REASON_NO_HEALTH_DATA)

    return CanClaimResult(
        can_claim=True,
        has_health_data=True,
        grace_period_active=days_ago == 1 and local.hour < settings.claim_grace_period_hours,
    )


async def claim_streak(
    db: AsyncSession,
    user_id: str,
    claim_date: date,
    timezone_name: str = "UTC",
    method: ClaimMethod = ClaimMethod.EXPLICIT,
    now: datetime | None = None,
    redis: object = None,
) -> ClaimResult:
    """Claim a day, recompute the streak and reward any milestone crossed."""
    now = now or utc_now()
    check = await can_claim_streak(db, user_id, claim_date, timezone_name, now)
    if check.already_claimed:
        raise AlreadyClaimedError(claim_date)
    if not check.can_claim:
        raise NotClaimableError(check.reason or REASON_NO_HEALTH_DATA, claim_date)

    today = local_now(now, timezone_name).date()
    await ensure_freeze_shield(db, user_id, now)
    tracking = await get_daily_tracking(db, user_id, claim_date)

    claim = StreakClaim(
        user_id=user_id,
        claim_date=claim_date,
        claimed_at=now,
        claim_method=ClaimMethod(method).value,
        timezone=timezone_name,
        health_data_synced=True,
        extra_data={"health": health_snapshot(tracking)},
    )
    db.add(claim)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise AlreadyClaimedError(claim_date) from None

    state = await get_or_create_engagement_streak(db, user_id, today)
    previous = state.current_streak
    await add_activity(db, user_id, ActivityType.STREAK_CLAIM, claim_date, reference_id=str(claim.id))
    state = await update_engagement_streak(db, user_id, today)

    state.last_claim_date = max(state.last_claim_date or claim_date, claim_date)
    state.total_claims += 1

    milestone = check_streak_milestone(state.current_streak, previous)
    shields_granted = 0
    if milestone is not None:
        info = get_milestone_info(milestone)
        shields_granted = info.shields_granted if info else 0
        if shields_granted:
            await grant_milestone_shields(db, user_id, shields_granted, now)
        await publish_streak_event(
            redis, user_id, "milestone_reached",
            milestone=milestone, streak_length=state.current_streak, shields_granted=shields_granted,
        )
    await db.flush()

    if milestone is not None:
        message = f"Streak claimed! {state.current_streak} days. Milestone reached: {milestone}"
    else:
        message = f"Streak claimed! {state.current_streak} days."
    return ClaimResult(
        success=True,
        streak_count=state.current_streak,
        milestone=milestone,
        shields_granted=shields_granted,
        message=message,
        claim=StreakClaimResponse.model_validate(claim),
    )


async def get_claimable_days(
    db: AsyncSession,
    user_id: str,
    timezone_name: str = "UTC",
    now: datetime | None = None,
) -> list[ClaimableDay]:
    """Today and every day of the retroactive window, newest first."""
    settings = get_settings()
    today = local_now(now or utc_now(), timezone_name).date()
    oldest = today - timedelta(days=settings.retroactive_window_days)

    claims = await db.execute(
        select(StreakClaim.claim_date).where(
            StreakClaim.user_id == user_id,
            StreakClaim.claim_date >= oldest,
            StreakClaim.claim_date <= today,
        )
    )
    claimed = set(claims.scalars().all())
    tracking = await db.execute(
        select(DailyTracking).where(
            DailyTracking.user_id == user_id,
            DailyTracking.tracking_date >= oldest,
            DailyTracking.tracking_date <= today,
        )
    )
    health = {row.tracking_date: has_health_data(row) for row in tracking.scalars()}

    days = []
    for offset in range(settings.retroactive_window_days + 1):
        day = today - timedelta(days=offset)
        already = day in claimed
        has_data = health.get(day, False)
        reason = None
        if already:
            reason = REASON_ALREADY_CLAIMED
        elif not has_data:
            reason = REASON_NO_HEALTH_DATA
        days.append(
            ClaimableDay(
                day=day,
                can_claim=not already and has_data,
                already_claimed=already,
                has_health_data=has_data,
                reason=reason,
            )
        )
    return days


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------


def _is_expired(recovery: StreakRecovery, now: datetime) -> bool:
    expires_at = as_utc(recovery.expires_at)
    return expires_at is not None and now > expires_at


async def _restore_broken_day(db: AsyncSession, recovery: StreakRecovery, now: datetime) -> None:
    await add_activity(
        db, recovery.user_id, ActivityType.STREAK_RECOVERY, recovery.broken_date, reference_id=str(recovery.id)
    )
    await update_engagement_streak(db, recovery.user_id, now.date())
    logger.info("User %s recovered %s via %s", recovery.user_id, recovery.broken_date, recovery.recovery_type)


async def start_recovery(
    db: AsyncSession,
    user_id: str,
    broken_date: date,
    recovery_type: str | RecoveryType,
    now: datetime | None = None,
) -> StreakRecovery:
    """Open a recovery for a broken day.

    weekend_warrior needs a number of follow-up actions inside a time window;
    purchased completes immediately and restores the day.
    """
    settings = get_settings()
    now = now or utc_now()
    try:
        kind = RecoveryType(recovery_type)
    except ValueError:
        raise InvalidRecoveryTypeError(str(recovery_type)) from None

    pending = await db.execute(
        select(StreakRecovery).where(
            StreakRecovery.user_id == user_id,
            StreakRecovery.broken_date == broken_date,
            StreakRecovery.recovery_status == RecoveryStatus.PENDING.value,
        )
    )
    for existing in pending.scalars():
        if not _is_expired(existing, now):
            raise RecoveryInProgressError(existing.id)
        existing.recovery_status = RecoveryStatus.EXPIRED.value

    if kind is RecoveryType.WEEKEND_WARRIOR:
        recovery = StreakRecovery(
            user_id=user_id,
            broken_date=broken_date,
            recovery_type=kind.value,
            recovery_status=RecoveryStatus.PENDING.value,
            actions_required=settings.weekend_warrior_actions,
            actions_completed=0,
            expires_at=now + timedelta(hours=settings.weekend_warrior_window_hours),
            created_at=now,
            extra_data={},
        )
        db.add(recovery)
        await db.flush()
    else:
        recovery = StreakRecovery(
            user_id=user_id,
            broken_date=broken_date,
            recovery_type=kind.value,
            recovery_status=RecoveryStatus.COMPLETED.value,
            actions_required=0,
            actions_completed=0,
            completed_at=now,
            created_at=now,
            extra_data={},
        )
        db.add(recovery)
        await db.flush()
        await _restore_broken_day(db, recovery, now)

    return recovery


async def complete_recovery_action(
    db: AsyncSession,
    user_id: str,
    recovery_id: int,
    now: datetime | None = None,
) -> tuple[bool, StreakRecovery]:
    """Count one follow-up action. Returns (completed, recovery)."""
    now = now or utc_now()
    result = await db.execute(
        select(StreakRecovery).where(StreakRecovery.id == recovery_id, StreakRecovery.user_id == user_id)
    )
    recovery = result.scalar_one_or_none()
    if recovery is None:
        raise RecoveryNotFoundError(recovery_id)

    if recovery.recovery_status == RecoveryStatus.PENDING.value and _is_expired(recovery, now):
        recovery.recovery_status = RecoveryStatus.EXPIRED.value
        await db.flush()
    if recovery.recovery_status != RecoveryStatus.PENDING.value:
        raise RecoveryExpiredError(recovery_id)

    recovery.actions_completed += 1
    completed = recovery.actions_completed >= recovery.actions_required
    if completed:
        recovery.recovery_status = RecoveryStatus.COMPLETED.value
        recovery.completed_at = now
    await db.flush()
    if completed:
        await _restore_broken_day(db, recovery, now)
    return completed, recovery


async def expire_stale_recoveries(db: AsyncSession, now: datetime | None = None) -> int:
    """Mark every pending recovery past its deadline as expired. Returns the count."""
    now = now or utc_now()
    result = await db.execute(
        update(StreakRecovery)
        .where(
            StreakRecovery.recovery_status == RecoveryStatus.PENDING.value,
            StreakRecovery.expires_at < now,
        )
        .values(recovery_status=RecoveryStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


# ---------------------------------------------------------------------------
# Daily break check
# ---------------------------------------------------------------------------


async def _check_and_break(
    db: AsyncSession, user_id: str, today: date, redis: object = None
) -> BreakOutcome:
    state = await get_engagement_state(db, user_id)
    if state is None or state.paused:
        return BreakOutcome.KEPT

    yesterday = today - timedelta(days=1)
    if await _get_claim(db, user_id, yesterday) is not None:
        return BreakOutcome.KEPT

    now = _start_of_day(today)
    status = await get_available_shields(db, user_id, now)
    if status.total > 0:
        await activate_freeze(db, user_id, yesterday, now)
        return BreakOutcome.SHIELDED

    previous = state.current_streak
    state.current_streak = 0
    state.updated_at = utc_now()
    await db.flush()
    if previous > 0:
        logger.info("Streak broken for user %s after %d days", user_id, previous)
        await publish_streak_event(redis, user_id, "streak_broken", streak_length=previous)
    return BreakOutcome.BROKEN


async def check_and_break_streak(
    db: AsyncSession, user_id: str, today: date | None = None, redis: object = None
) -> bool:
    """Daily check for yesterday. Returns True only if the streak was reset to zero."""
    today = today or utc_now().date()
    return await _check_and_break(db, user_id, today, redis) is BreakOutcome.BROKEN


# ---------------------------------------------------------------------------
# Batch jobs
# ---------------------------------------------------------------------------


async def reset_weekly_freezes(
    session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None
) -> BatchResult:
    """Grant every user one weekly freeze shield, capped. One transaction per user."""
    settings = get_settings()
    now = now or utc_now()
    async with session_factory() as db:
        rows = await db.execute(
            select(StreakShield.user_id).where(StreakShield.shield_type == ShieldType.FREEZE.value)
        )
        user_ids = list(rows.scalars().all())

    outcome = BatchResult()
    for user_id in user_ids:
        try:
            async with session_factory() as db:
                result = await db.execute(
                    select(StreakShield).where(
                        StreakShield.user_id == user_id,
                        StreakShield.shield_type == ShieldType.FREEZE.value,
                    )
                )
                row = result.scalar_one()
                row.available_count = min(
                    settings.max_total_shields, row.available_count + settings.weekly_free_freeze
                )
                row.last_reset_at = now
                row.updated_at = now
                await db.commit()
            outcome.processed += 1
        except Exception:
            logger.exception("Weekly freeze reset failed for user %s", user_id)
            outcome.errors.append(user_id)

    logger.info("Weekly freeze reset: %d users, %d errors", outcome.processed, len(outcome.errors))
    return outcome


async def run_daily_streak_check(
    session_factory: async_sessionmaker[AsyncSession],
    today: date | None = None,
    redis: object = None,
) -> BatchResult:
    """Run the break check for every active, unpaused streak."""
    today = today or utc_now().date()
    async with session_factory() as db:
        rows = await db.execute(
            select(EngagementStreak.user_id).where(
                EngagementStreak.current_streak > 0,
                EngagementStreak.paused.is_(False),
            )
        )
        user_ids = list(rows.scalars().all())

    outcome = BatchResult()
    for user_id in user_ids:
        try:
            async with session_factory() as db:
                result = await _check_and_break(db, user_id, today, redis)
                await db.commit()
            outcome.processed += 1
            if result is BreakOutcome.BROKEN:
                outcome.broken += 1
            elif result is BreakOutcome.SHIELDED:
                outcome.shields_applied += 1
        except Exception:
            logger.exception("Daily streak check failed for user %s", user_id)
            outcome.errors.append(user_id)

    logger.info(
        "Daily streak check for %s: %d processed, %d broken, %d shielded, %d errors",
        today, outcome.processed, outcome.broken, outcome.shields_applied, len(outcome.errors),
    )
    return outcome
