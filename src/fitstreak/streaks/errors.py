"""Streak engine exceptions.

Every failure the engines raise carries a machine-readable ``StreakErrorCode``,
an HTTP status for the API layer and optional structured details. Callers
branch on the exception class or the code, never on the message text.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any


class StreakErrorCode(str, Enum):
    """Error codes for consistent API error responses."""

    # Claims
    NOT_CLAIMABLE = "NOT_CLAIMABLE"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"

    # Pause
    ALREADY_PAUSED = "ALREADY_PAUSED"
    NOT_PAUSED = "NOT_PAUSED"
    PAUSE_TOO_LONG = "PAUSE_TOO_LONG"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"

    # Shields and freezes
    NO_SHIELDS_AVAILABLE = "NO_SHIELDS_AVAILABLE"
    FREEZE_LIMIT_REACHED = "FREEZE_LIMIT_REACHED"

    # Recovery
    RECOVERY_IN_PROGRESS = "RECOVERY_IN_PROGRESS"
    RECOVERY_EXPIRED = "RECOVERY_EXPIRED"
    RECOVERY_NOT_FOUND = "RECOVERY_NOT_FOUND"
    INVALID_RECOVERY_TYPE = "INVALID_RECOVERY_TYPE"

    # Input
    INVALID_METRIC_TYPE = "INVALID_METRIC_TYPE"
    INVALID_ACTIVITY_TYPE = "INVALID_ACTIVITY_TYPE"


class StreakError(Exception):
    """Base exception for all streak engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code from StreakErrorCode
        status_code: HTTP status code for API responses
        details: Additional structured details
    """

    code: StreakErrorCode = StreakErrorCode.NOT_CLAIMABLE
    status_code: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result: dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------


class NotClaimableError(StreakError):
    """The date is outside the claim window or, for a claim, has no health data."""

    code = StreakErrorCode.NOT_CLAIMABLE
    status_code = 400

    def __init__(self, reason: str, claim_date: date | None = None) -> None:
        details = {"claim_date": claim_date.isoformat()} if claim_date else None
        super().__init__(reason, details)
        self.reason = reason


class AlreadyClaimedError(StreakError):
    code = StreakErrorCode.ALREADY_CLAIMED
    status_code = 409

    def __init__(self, claim_date: date) -> None:
        super().__init__("Already claimed for this date", {"claim_date": claim_date.isoformat()})
        self.claim_date = claim_date


# ---------------------------------------------------------------------------
# Pause
# ---------------------------------------------------------------------------


class AlreadyPausedError(StreakError):
    code = StreakErrorCode.ALREADY_PAUSED
    status_code = 409

    def __init__(self) -> None:
        super().__init__("Streak is already paused")


class NotPausedError(StreakError):
    code = StreakErrorCode.NOT_PAUSED
    status_code = 409

    def __init__(self) -> None:
        super().__init__("Streak is not paused")


class PauseTooLongError(StreakError):
    code = StreakErrorCode.PAUSE_TOO_LONG
    status_code = 400

    def __init__(self, max_days: int, requested_days: int) -> None:
        super().__init__(
            f"Pause cannot exceed {max_days} days",
            {"max_days": max_days, "requested_days": requested_days},
        )
        self.max_days = max_days
        self.requested_days = requested_days


class InvalidDateRangeError(StreakError):
    code = StreakErrorCode.INVALID_DATE_RANGE
    status_code = 400


# ---------------------------------------------------------------------------
# Shields and freezes
# ---------------------------------------------------------------------------


class NoShieldsAvailableError(StreakError):
    code = StreakErrorCode.NO_SHIELDS_AVAILABLE
    status_code = 409

    def __init__(self) -> None:
        super().__init__("No shields available")


class FreezeLimitReachedError(StreakError):
    code = StreakErrorCode.FREEZE_LIMIT_REACHED
    status_code = 409

    def __init__(self, max_freezes: int) -> None:
        super().__init__(
            f"Maximum of {max_freezes} streak freezes reached",
            {"max_freezes": max_freezes},
        )


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------


class RecoveryInProgressError(StreakError):
    code = StreakErrorCode.RECOVERY_IN_PROGRESS
    status_code = 409

    def __init__(self, recovery_id: int) -> None:
        super().__init__("A recovery is already in progress for this date", {"recovery_id": recovery_id})


class RecoveryExpiredError(StreakError):
    code = StreakErrorCode.RECOVERY_EXPIRED
    status_code = 410

    def __init__(self, recovery_id: int) -> None:
        super().__init__("Recovery is no longer active", {"recovery_id": recovery_id})


class RecoveryNotFoundError(StreakError):
    code = StreakErrorCode.RECOVERY_NOT_FOUND
    status_code = 404

    def __init__(self, recovery_id: int) -> None:
        super().__init__("Recovery not found", {"recovery_id": recovery_id})


class InvalidRecoveryTypeError(StreakError):
    code = StreakErrorCode.INVALID_RECOVERY_TYPE
    status_code = 400

    def __init__(self, recovery_type: str) -> None:
        super().__init__(f"Invalid recovery type: {recovery_type}", {"recovery_type": recovery_type})


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class InvalidMetricTypeError(StreakError):
    code = StreakErrorCode.INVALID_METRIC_TYPE
    status_code = 400

    def __init__(self, metric_type: str) -> None:
        super().__init__(f"Invalid metric type: {metric_type}", {"metric_type": metric_type})


class InvalidActivityTypeError(StreakError):
    code = StreakErrorCode.INVALID_ACTIVITY_TYPE
    status_code = 400

    def __init__(self, activity_type: str) -> None:
        super().__init__(f"Invalid activity type: {activity_type}", {"activity_type": activity_type})
