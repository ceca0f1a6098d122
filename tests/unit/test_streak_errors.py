"""Error taxonomy tests: codes, statuses and response payloads."""

from datetime import date

import pytest

from fitstreak.streaks.activity_log import has_health_data, parse_activity_type, parse_metric_type
from fitstreak.streaks.constants import ActivityType, MetricType
from fitstreak.streaks.errors import (
    AlreadyClaimedError,
    InvalidActivityTypeError,
    InvalidMetricTypeError,
    NotClaimableError,
    PauseTooLongError,
    RecoveryExpiredError,
    StreakError,
    StreakErrorCode,
)


class TestStreakErrors:
    def test_pause_too_long_carries_limits(self):
        exc = PauseTooLongError(max_days=90, requested_days=120)
        assert exc.code is StreakErrorCode.PAUSE_TOO_LONG
        assert exc.status_code == 400
        assert exc.to_dict() == {
            "error": {
                "code": "PAUSE_TOO_LONG",
                "message": "Pause cannot exceed 90 days",
                "details": {"max_days": 90, "requested_days": 120},
            }
        }

    def test_already_claimed_is_conflict(self):
        exc = AlreadyClaimedError(date(2026, 3, 14))
        assert exc.status_code == 409
        assert exc.details == {"claim_date": "2026-03-14"}

    def test_not_claimable_keeps_reason(self):
        exc = NotClaimableError("Cannot claim future dates")
        assert exc.reason == "Cannot claim future dates"
        assert "details" not in exc.to_dict()["error"]

    def test_recovery_expired_is_gone(self):
        assert RecoveryExpiredError(3).status_code == 410

    def test_all_errors_share_base(self):
        assert issubclass(InvalidMetricTypeError, StreakError)
        assert issubclass(InvalidActivityTypeError, StreakError)


class TestParsing:
    def test_activity_type(self):
        assert parse_activity_type("weight_log") is ActivityType.WEIGHT_LOG

    def test_unknown_activity_type(self):
        with pytest.raises(InvalidActivityTypeError):
            parse_activity_type("yoga")

    def test_metric_type(self):
        assert parse_metric_type("photos") is MetricType.PHOTOS

    def test_unknown_metric_type(self):
        with pytest.raises(InvalidMetricTypeError):
            parse_metric_type("calories")

    def test_no_row_has_no_health_data(self):
        assert has_health_data(None) is False
