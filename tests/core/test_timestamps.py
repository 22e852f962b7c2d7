"""Tests for ``cadence.core.timestamps``."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from cadence.core.timestamps import (
    ensure_aware,
    from_iso8601,
    generate_id,
    resolve_now,
    to_iso8601,
)


class TestIso8601:
    def test_fixed_width_utc(self):
        """Output always carries microseconds and a UTC offset."""
        assert to_iso8601(datetime(2025, 3, 8, 14, tzinfo=UTC)) == "2025-03-08T14:00:00.000000+00:00"

    def test_converts_offsets_to_utc(self):
        """An aware value in another zone is written as UTC."""
        est = timezone(timedelta(hours=-5))
        assert to_iso8601(datetime(2025, 3, 8, 9, tzinfo=est)) == "2025-03-08T14:00:00.000000+00:00"

    def test_lexical_order_matches_time_order(self):
        """Stored strings sort chronologically."""
        a = to_iso8601(datetime(2025, 3, 8, 9, 0, 0, 5, tzinfo=UTC))
        b = to_iso8601(datetime(2025, 3, 8, 10, tzinfo=UTC))
        assert a < b

    def test_none_passthrough(self):
        assert to_iso8601(None) is None
        assert from_iso8601(None) is None

    def test_naive_rejected_on_write(self):
        """Naive datetimes cannot be serialized."""
        with pytest.raises(ValueError):
            to_iso8601(datetime(2025, 3, 8, 9))

    def test_parse_naive_assumes_utc(self):
        assert from_iso8601("2025-03-08T14:00:00") == datetime(2025, 3, 8, 14, tzinfo=UTC)

    def test_parse_z_suffix(self):
        assert from_iso8601("2025-03-08T14:00:00Z") == datetime(2025, 3, 8, 14, tzinfo=UTC)


class TestClockHelpers:
    def test_ensure_aware_names_the_argument(self):
        with pytest.raises(ValueError, match="horizon_start"):
            ensure_aware(datetime(2025, 1, 1), "horizon_start")

    def test_resolve_now(self):
        """None means the current time; explicit values are normalized to UTC."""
        fixed = datetime(2025, 3, 8, 9, tzinfo=timezone(timedelta(hours=1)))
        assert resolve_now(fixed) == datetime(2025, 3, 8, 8, tzinfo=UTC)
        assert resolve_now(None).tzinfo is not None


class TestGenerateId:
    def test_shape_and_uniqueness(self):
        ids = {generate_id() for _ in range(200)}
        assert len(ids) == 200
        assert all(len(i) == 26 for i in ids)
