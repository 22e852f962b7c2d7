"""Tests for RecurrenceExpander."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from cadence.core.errors import ScheduleConfigInvalid
from cadence.scheduling.expander import RecurrenceExpander


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


@pytest.fixture
def expander() -> RecurrenceExpander:
    return RecurrenceExpander()


class TestExpandAcrossDst:
    def test_daily_new_york_over_spring_forward(self, expander, make_cadence):
        """Each date uses the offset in force on that date."""
        cadence = make_cadence(timezone="America/New_York", start_date=date(2025, 3, 8))

        result = expander.expand(cadence, utc(2025, 3, 8), utc(2025, 3, 10))

        assert result == [utc(2025, 3, 8, 14), utc(2025, 3, 9, 13)]

    def test_results_are_utc_and_ascending(self, expander, make_cadence):
        cadence = make_cadence(timezone="Asia/Tokyo")

        result = expander.expand(cadence, utc(2025, 3, 1), utc(2025, 3, 15))

        assert result == sorted(result)
        assert len(set(result)) == len(result)
        assert all(r.utcoffset() == timedelta(0) for r in result)
        # 09:00 JST is 00:00 UTC
        assert all(r.hour == 0 for r in result)


class TestExpandWeekly:
    def test_mon_wed_fri_one_week(self, expander, make_cadence):
        cadence = make_cadence(pattern="weekly", days_of_week=[1, 3, 5])

        result = expander.expand(cadence, utc(2025, 3, 9), utc(2025, 3, 16))

        assert result == [utc(2025, 3, 10, 9), utc(2025, 3, 12, 9), utc(2025, 3, 14, 9)]

    def test_ten_day_window_includes_following_monday(self, expander, make_cadence):
        cadence = make_cadence(pattern="weekly", days_of_week=[1, 3, 5])

        result = expander.expand(cadence, utc(2025, 3, 9), utc(2025, 3, 19))

        assert [r.date() for r in result] == [
            date(2025, 3, 10),
            date(2025, 3, 12),
            date(2025, 3, 14),
            date(2025, 3, 17),
        ]
        assert all(r.isoweekday() in (1, 3, 5) for r in result)


class TestHorizonBounds:
    def test_start_inclusive_end_exclusive(self, expander, make_cadence):
        cadence = make_cadence()

        result = expander.expand(cadence, utc(2025, 3, 10, 9), utc(2025, 3, 11, 9))

        assert result == [utc(2025, 3, 10, 9)]

    def test_horizon_without_occurrence(self, expander, make_cadence):
        cadence = make_cadence()

        assert expander.expand(cadence, utc(2025, 3, 10, 10), utc(2025, 3, 10, 12)) == []

    def test_respects_start_and_end_dates(self, expander, make_cadence):
        cadence = make_cadence(start_date=date(2025, 3, 1), end_date=date(2025, 3, 3))

        result = expander.expand(cadence, utc(2025, 2, 1), utc(2025, 4, 1))

        assert result == [utc(2025, 3, 1, 9), utc(2025, 3, 2, 9), utc(2025, 3, 3, 9)]

    def test_non_utc_bounds_are_accepted(self, expander, make_cadence):
        from zoneinfo import ZoneInfo

        cadence = make_cadence()
        paris = ZoneInfo("Europe/Paris")
        start = datetime(2025, 3, 10, 0, tzinfo=paris)

        result = expander.expand(cadence, start, start + timedelta(days=1))

        assert result == [utc(2025, 3, 10, 9)]

    def test_naive_bounds_rejected(self, expander, make_cadence):
        with pytest.raises(ValueError, match="timezone-aware"):
            expander.expand(make_cadence(), datetime(2025, 3, 10), utc(2025, 3, 11))

    @pytest.mark.parametrize("hours", [0, -1])
    def test_empty_or_reversed_horizon_rejected(self, expander, make_cadence, hours):
        start = utc(2025, 3, 10)
        with pytest.raises(ValueError, match="must be after"):
            expander.expand(make_cadence(), start, start + timedelta(hours=hours))


class TestExpandCadenceState:
    def test_inactive_cadence_expands_to_nothing(self, expander, make_cadence):
        cadence = make_cadence(is_active=False)

        assert expander.expand(cadence, utc(2025, 3, 1), utc(2025, 4, 1)) == []

    def test_invalid_schedule_raises(self, expander, make_cadence):
        cadence = make_cadence(days_of_week=[])

        with pytest.raises(ScheduleConfigInvalid):
            expander.expand(cadence, utc(2025, 3, 1), utc(2025, 4, 1))

    def test_deterministic(self, expander, make_cadence):
        cadence = make_cadence(pattern="monthly", start_date=date(2025, 1, 31), days_of_week=[])
        start, end = utc(2025, 1, 1), utc(2026, 1, 1)

        assert expander.expand(cadence, start, end) == expander.expand(cadence, start, end)
        assert len(expander.expand(cadence, start, end)) == 12
