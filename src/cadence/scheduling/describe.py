"""Human-readable schedule labels.

>>> from datetime import date
>>> describe_schedule(Schedule(
...     SchedulePattern.WEEKLY, "09:00", "America/New_York", date(2025, 1, 1), 2,
...     days_of_week=frozenset({1, 2, 3, 4, 5}),
... ))
'at 9:00 AM on weekdays (America/New_York)'
"""

from __future__ import annotations

from cadence.scheduling.models import Schedule, SchedulePattern
from cadence.scheduling.recurrence import parse_time_of_day

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}

WEEKDAYS = frozenset({1, 2, 3, 4, 5})
WEEKEND = frozenset({6, 7})
EVERY_DAY = frozenset(range(1, 8))


def format_time_of_day(value: str) -> str:
    """``"18:30"`` → ``"6:30 PM"``."""
    t = parse_time_of_day(value)
    period = "PM" if t.hour >= 12 else "AM"
    hour = t.hour % 12 or 12
    return f"{hour}:{t.minute:02d} {period}"


def describe_days(days: frozenset[int]) -> str:
    if days == EVERY_DAY:
        return "every day"
    if days == WEEKDAYS:
        return "on weekdays"
    if days == WEEKEND:
        return "on weekends"
    return "on " + ", ".join(DAY_NAMES[d] for d in sorted(days))


def describe_schedule(schedule: Schedule) -> str:
    """Render *schedule* as e.g. ``"at 6:30 PM every day (UTC)"``."""
    at = f"at {format_time_of_day(schedule.time)}"
    day = schedule.start_date.day

    if schedule.pattern.uses_days_of_week:
        when = describe_days(schedule.days_of_week)
    elif schedule.pattern == SchedulePattern.MONTHLY:
        when = f"on day {day} of the month"
    else:
        when = f"on day {day} of every third month"

    label = f"{at} {when} ({schedule.timezone})"
    if schedule.end_date is not None:
        label += f" until {schedule.end_date.isoformat()}"
    return label


__all__ = ["describe_days", "describe_schedule", "format_time_of_day"]
