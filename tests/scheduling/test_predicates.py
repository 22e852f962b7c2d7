"""Tests for display predicates and the My Work grouping."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cadence.scheduling.models import InstanceStatus
from cadence.scheduling.predicates import (
    Urgency,
    group_my_work,
    is_due,
    is_overdue,
    is_up_next,
    time_remaining,
    time_until,
    urgency,
)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


class TestPredicates:
    def test_is_due_inside_window(self, make_instance):
        instance = make_instance()
        assert is_due(instance, utc(2025, 3, 10, 9))
        assert is_due(instance, utc(2025, 3, 10, 10, 59))
        assert not is_due(instance, utc(2025, 3, 10, 11))
        assert not is_due(instance, utc(2025, 3, 10, 8, 59))

    def test_is_overdue_ignores_terminal(self, make_instance):
        now = utc(2025, 3, 10, 12)
        assert is_overdue(make_instance(status=InstanceStatus.READY), now)
        assert not is_overdue(make_instance(status=InstanceStatus.COMPLETED), now)

    def test_is_up_next(self, make_instance):
        instance = make_instance()
        assert is_up_next(instance, utc(2025, 3, 10, 8))
        assert not is_up_next(instance, utc(2025, 3, 10, 7, 59))
        assert is_up_next(instance, utc(2025, 3, 10, 7), window=timedelta(hours=2))
        assert not is_up_next(instance, utc(2025, 3, 10, 9))


class TestLabels:
    @pytest.mark.parametrize(
        ("due", "now", "expected"),
        [
            (utc(2025, 1, 3, 3), utc(2025, 1, 1), "2d 3h"),
            (utc(2025, 1, 1, 1, 30), utc(2025, 1, 1), "1h 30m"),
            (utc(2025, 1, 1), utc(2025, 1, 1), "0m"),
            (utc(2025, 1, 1), utc(2025, 1, 1, 0, 45), "45m overdue"),
        ],
    )
    def test_time_remaining(self, due, now, expected):
        assert time_remaining(due, now) == expected

    def test_time_until(self):
        assert time_until(utc(2025, 1, 1, 1, 5), utc(2025, 1, 1)) == "in 1h 5m"
        assert time_until(utc(2025, 1, 1, 0, 20), utc(2025, 1, 1)) == "in 20m"
        assert time_until(utc(2025, 1, 1), utc(2025, 1, 1, 0, 1)) == "now"

    def test_urgency(self):
        due = utc(2025, 1, 1, 12)
        assert urgency(due, utc(2025, 1, 1, 9)) == Urgency.OK
        assert urgency(due, utc(2025, 1, 1, 11, 30)) == Urgency.SOON
        assert urgency(due, utc(2025, 1, 1, 12, 1)) == Urgency.OVERDUE


class TestGroupMyWork:
    def test_buckets(self, make_instance):
        now = utc(2025, 3, 10, 10)
        overdue = make_instance(scheduled_for=utc(2025, 3, 10, 7), status=InstanceStatus.READY)
        working = make_instance(scheduled_for=utc(2025, 3, 10, 9, 30), status=InstanceStatus.IN_PROGRESS)
        due = make_instance(scheduled_for=utc(2025, 3, 10, 9), status=InstanceStatus.READY)
        upcoming = make_instance(scheduled_for=utc(2025, 3, 10, 10, 30))
        later = make_instance(scheduled_for=utc(2025, 3, 10, 15))
        done = make_instance(scheduled_for=utc(2025, 3, 10, 8), status=InstanceStatus.COMPLETED)

        work = group_my_work([later, upcoming, due, working, overdue, done], now)

        assert work.overdue == [overdue]
        assert work.incomplete == [working]
        assert work.due == [due]
        assert work.up_next == [upcoming]
        assert work.total_open == 3

    def test_overdue_in_progress_counts_as_overdue(self, make_instance):
        instance = make_instance(status=InstanceStatus.IN_PROGRESS)

        work = group_my_work([instance], utc(2025, 3, 10, 12))

        assert work.overdue == [instance]
        assert work.incomplete == []

    def test_sorted_by_due_at(self, make_instance):
        now = utc(2025, 3, 10, 9, 30)
        a = make_instance(scheduled_for=utc(2025, 3, 10, 9), due_at=utc(2025, 3, 10, 12))
        b = make_instance(scheduled_for=utc(2025, 3, 10, 9, 15), due_at=utc(2025, 3, 10, 10))

        work = group_my_work([a, b], now)

        assert work.due == [b, a]
        assert work.to_dict()["due"][0]["id"] == b.id
