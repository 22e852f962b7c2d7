"""Display predicates over instances.

Read-only helpers for calendar and "My Work" views. They compare ``now``
against ``scheduled_for``/``due_at`` and never change an instance; the
lifecycle state machine does not consult them.

Tags:
    predicates, display, time-remaining, my-work
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from cadence.scheduling.models import Instance, InstanceStatus

UP_NEXT_WINDOW = timedelta(minutes=60)
SOON_THRESHOLD = timedelta(minutes=60)


class Urgency(str, Enum):
    OVERDUE = "overdue"
    SOON = "soon"
    OK = "ok"


def is_overdue(instance: Instance, now: datetime) -> bool:
    """Past ``due_at`` and not yet terminal."""
    return not instance.is_terminal and now > instance.due_at


def is_due(instance: Instance, now: datetime) -> bool:
    """Inside the completion window: ``scheduled_for <= now < due_at``."""
    return instance.scheduled_for <= now < instance.due_at


def is_up_next(instance: Instance, now: datetime, window: timedelta = UP_NEXT_WINDOW) -> bool:
    """Scheduled within the next *window* and not yet started."""
    return now < instance.scheduled_for <= now + window


def _split_minutes(total: int) -> tuple[int, int, int]:
    return total // 1440, (total // 60) % 24, total % 60


def time_remaining(due_at: datetime, now: datetime) -> str:
    """Compact countdown label.

    >>> from datetime import UTC, datetime
    >>> time_remaining(datetime(2025, 1, 3, 3, tzinfo=UTC), datetime(2025, 1, 1, tzinfo=UTC))
    '2d 3h'
    >>> time_remaining(datetime(2025, 1, 1, tzinfo=UTC), datetime(2025, 1, 1, 0, 45, tzinfo=UTC))
    '45m overdue'
    """
    delta = due_at - now
    overdue = delta < timedelta(0)
    total = int(abs(delta).total_seconds() // 60)
    days, hours, minutes = _split_minutes(total)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes or not parts:
        parts.append(f"{minutes}m")
    label = " ".join(parts)
    return f"{label} overdue" if overdue else label


def time_until(scheduled_for: datetime, now: datetime) -> str:
    """``"in 1h 5m"`` / ``"in 20m"`` / ``"now"`` for up-next items."""
    delta = scheduled_for - now
    if delta < timedelta(0):
        return "now"
    minutes = int(delta.total_seconds() // 60)
    hours = minutes // 60
    if hours:
        return f"in {hours}h {minutes % 60}m"
    return f"in {minutes}m"


def urgency(due_at: datetime, now: datetime) -> Urgency:
    if now > due_at:
        return Urgency.OVERDUE
    if due_at - now < SOON_THRESHOLD:
        return Urgency.SOON
    return Urgency.OK


@dataclass
class MyWork:
    """Instances grouped the way the "My Work" view lists them.

    Groups may overlap only between ``overdue`` and ``up_next``, which
    cannot happen for a positive completion window.
    """

    overdue: list[Instance] = field(default_factory=list)
    incomplete: list[Instance] = field(default_factory=list)
    due: list[Instance] = field(default_factory=list)
    up_next: list[Instance] = field(default_factory=list)

    @property
    def total_open(self) -> int:
        return len(self.overdue) + len(self.incomplete) + len(self.due)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overdue": [i.to_dict() for i in self.overdue],
            "incomplete": [i.to_dict() for i in self.incomplete],
            "due": [i.to_dict() for i in self.due],
            "up_next": [i.to_dict() for i in self.up_next],
            "total_open": self.total_open,
        }


def group_my_work(
    instances: Iterable[Instance],
    now: datetime,
    window: timedelta = UP_NEXT_WINDOW,
) -> MyWork:
    """Bucket open instances into overdue / in progress / due / up next."""
    work = MyWork()
    for instance in instances:
        if instance.is_terminal:
            continue
        if is_overdue(instance, now):
            work.overdue.append(instance)
        elif instance.status == InstanceStatus.IN_PROGRESS:
            work.incomplete.append(instance)
        elif is_due(instance, now):
            work.due.append(instance)
        elif is_up_next(instance, now, window):
            work.up_next.append(instance)

    for bucket in (work.overdue, work.incomplete, work.due):
        bucket.sort(key=lambda i: (i.due_at, i.id))
    work.up_next.sort(key=lambda i: (i.scheduled_for, i.id))
    return work


__all__ = [
    "MyWork",
    "Urgency",
    "group_my_work",
    "is_due",
    "is_overdue",
    "is_up_next",
    "time_remaining",
    "time_until",
    "urgency",
]
