"""Streak constants, enums and per-metric cadence configuration.

Tunable numbers live in Settings; the values here are the defaults the
pure calculators fall back to when called without settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

MAX_STREAK_FREEZES = 5
DEFAULT_STREAK_FREEZES = 1
FREEZE_RESET_INTERVAL_DAYS = 7
FREEZE_EARN_STREAK_DAYS = 7
MAX_PAUSE_DURATION_DAYS = 90
STREAK_LOOKBACK_DAYS = 90
METRIC_LOG_LOOKBACK_DAYS = 365
WEEKLY_STREAK_LOOKBACK_WEEKS = 52

RETROACTIVE_WINDOW_DAYS = 7
GRACE_PERIOD_HOURS = 3
MAX_TOTAL_SHIELDS = 5
WEEKLY_FREE_FREEZE = 1
WEEKEND_WARRIOR_ACTIONS = 2
WEEKEND_WARRIOR_WINDOW_HOURS = 24

STREAK_EVENTS_CHANNEL = "pubsub:streak_update"


class ActivityType(str, Enum):
    WEIGHT_LOG = "weight_log"
    STEPS_LOG = "steps_log"
    MOOD_LOG = "mood_log"
    CIRCLE_CHECKIN = "circle_checkin"
    SOCIAL_INTERACTION = "social_interaction"
    STREAK_CLAIM = "streak_claim"
    STREAK_FREEZE = "streak_freeze"
    STREAK_RECOVERY = "streak_recovery"


class MetricType(str, Enum):
    WEIGHT = "weight"
    STEPS = "steps"
    MOOD = "mood"
    MEASUREMENTS = "measurements"
    PHOTOS = "photos"


class ClaimMethod(str, Enum):
    EXPLICIT = "explicit"
    MANUAL_ENTRY = "manual_entry"
    RETROACTIVE = "retroactive"
    FREEZE = "freeze"


class ShieldType(str, Enum):
    FREEZE = "freeze"
    MILESTONE_SHIELD = "milestone_shield"
    PURCHASED = "purchased"


# Consumption order when a shield protects a day.
SHIELD_PRIORITY: tuple[ShieldType, ...] = (
    ShieldType.FREEZE,
    ShieldType.MILESTONE_SHIELD,
    ShieldType.PURCHASED,
)


class RecoveryType(str, Enum):
    WEEKEND_WARRIOR = "weekend_warrior"
    PURCHASED = "purchased"


class RecoveryStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class Cadence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass(frozen=True)
class MetricConfig:
    """How a metric's streak is counted.

    For daily metrics ``grace_days`` is the allotment restored every
    calendar week. For weekly metrics ``allowed_weekdays`` restricts which
    days of the Sunday-Saturday week qualify (Python weekday numbers,
    Monday=0); ``None`` means any day.
    """

    cadence: Cadence
    grace_days: int = 0
    allowed_weekdays: frozenset[int] | None = None


METRIC_CONFIG: dict[MetricType, MetricConfig] = {
    MetricType.WEIGHT: MetricConfig(Cadence.DAILY, grace_days=1),
    MetricType.STEPS: MetricConfig(Cadence.DAILY, grace_days=1),
    MetricType.MOOD: MetricConfig(Cadence.DAILY, grace_days=2),
    MetricType.MEASUREMENTS: MetricConfig(Cadence.WEEKLY),
    # Friday, Saturday and the Sunday that opens the week
    MetricType.PHOTOS: MetricConfig(Cadence.WEEKLY, allowed_weekdays=frozenset({4, 5, 6})),
}
