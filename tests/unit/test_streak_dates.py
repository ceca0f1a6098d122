"""Calendar helper tests: local dates, Sunday weeks, Monday resets."""

from datetime import date, datetime, timezone

from fitstreak.streaks.dates import (
    advance_reset_date,
    as_utc,
    local_date,
    next_monday,
    week_start_sunday,
)


class TestLocalDate:
    def test_sao_paulo_is_still_previous_day(self):
        now = datetime(2025, 11, 19, 2, 0, tzinfo=timezone.utc)
        assert local_date(now, "America/Sao_Paulo") == date(2025, 11, 18)

    def test_tokyo_is_already_next_day(self):
        now = datetime(2026, 3, 14, 20, 0, tzinfo=timezone.utc)
        assert local_date(now, "Asia/Tokyo") == date(2026, 3, 15)

    def test_invalid_timezone_falls_back_to_utc(self):
        now = datetime(2026, 3, 14, 23, 30, tzinfo=timezone.utc)
        assert local_date(now, "Not/AZone") == date(2026, 3, 14)

    def test_naive_datetime_treated_as_utc(self):
        assert as_utc(datetime(2026, 3, 14, 12, 0)).tzinfo is timezone.utc


class TestWeekStartSunday:
    def test_saturday_belongs_to_preceding_sunday(self):
        assert week_start_sunday(date(2026, 3, 7)) == date(2026, 3, 1)

    def test_sunday_starts_its_own_week(self):
        assert week_start_sunday(date(2026, 3, 8)) == date(2026, 3, 8)

    def test_wednesday(self):
        assert week_start_sunday(date(2026, 3, 11)) == date(2026, 3, 8)


class TestNextMonday:
    def test_from_sunday_night(self):
        now = datetime(2026, 3, 8, 23, 0, tzinfo=timezone.utc)
        assert next_monday(now) == datetime(2026, 3, 9, tzinfo=timezone.utc)

    def test_monday_midnight_goes_to_following_week(self):
        now = datetime(2026, 3, 9, 0, 0, tzinfo=timezone.utc)
        assert next_monday(now) == datetime(2026, 3, 16, tzinfo=timezone.utc)


class TestAdvanceResetDate:
    def test_single_step(self):
        assert advance_reset_date(date(2026, 3, 10), date(2026, 3, 10), 7) == date(2026, 3, 17)

    def test_skips_missed_intervals(self):
        assert advance_reset_date(date(2026, 3, 1), date(2026, 3, 20), 7) == date(2026, 3, 22)

    def test_future_reset_unchanged(self):
        assert advance_reset_date(date(2026, 3, 17), date(2026, 3, 10), 7) == date(2026, 3, 17)
