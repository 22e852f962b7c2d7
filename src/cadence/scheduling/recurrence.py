"""Time and recurrence math for cadence schedules.

Manifesto:
    Pure functions, no I/O, no clock. Given a schedule and a calendar
    date *in the schedule's own timezone*, decide whether the date is an
    occurrence and, if so, which UTC instant it denotes.

    The UTC conversion is done per date through ``zoneinfo`` so the
    offset is the one in force *on that date*. A 09:00 America/New_York
    cadence fires at 14:00 UTC on 2025-03-08 and 13:00 UTC on
    2025-03-09; a cached offset would get one of them wrong.

Pattern rules::

    DAILY      every date whose ISO weekday is in days_of_week
    WEEKLY     same test (one run per matching weekday, each week)
    MONTHLY    day-of-month of start_date, clamped to the month length
    QUARTERLY  MONTHLY, every third month counted from start_date

    Dates before start_date or after end_date never occur.

DST edge cases::

    Gap (02:30 on spring-forward day)   → fold=0, lands 1h later in wall time
    Overlap (01:30 on fall-back day)    → fold=0, the first (daylight) instant

Tags:
    recurrence, timezone, dst, zoneinfo, pure-functions, cadence

Doc-Types:
    api-reference
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Iterator
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cadence.core.errors import ScheduleConfigInvalid
from cadence.scheduling.models import Schedule, SchedulePattern

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time_of_day(value: str) -> time:
    """Parse ``"HH:MM"`` (24h) into a :class:`datetime.time`.

    >>> parse_time_of_day("09:00")
    datetime.time(9, 0)
    """
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ScheduleConfigInvalid(
            f"time must be 'HH:MM', got {value!r}", field="time", value=value
        )
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ScheduleConfigInvalid(
            f"time out of range: {value!r}", field="time", value=value
        )
    return time(hour, minute)


def resolve_zone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name, raising :class:`ScheduleConfigInvalid` if unknown."""
    if not name:
        raise ScheduleConfigInvalid("timezone is required", field="timezone", value=name)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ScheduleConfigInvalid(
            f"Unknown timezone: {name!r}", field="timezone", value=name, cause=e
        ) from e


def validate_schedule(schedule: Schedule) -> None:
    """Check every invariant of *schedule*.

    Raises:
        ScheduleConfigInvalid: On the first violated invariant.
    """
    if not isinstance(schedule.pattern, SchedulePattern):
        raise ScheduleConfigInvalid(
            f"Unsupported pattern: {schedule.pattern!r}",
            field="pattern",
            value=schedule.pattern,
        )
    parse_time_of_day(schedule.time)
    resolve_zone(schedule.timezone)

    if (
        isinstance(schedule.completion_window_hours, bool)
        or not isinstance(schedule.completion_window_hours, int)
        or schedule.completion_window_hours <= 0
    ):
        raise ScheduleConfigInvalid(
            "completion_window_hours must be a positive integer",
            field="completion_window_hours",
            value=schedule.completion_window_hours,
        )

    if schedule.pattern.uses_days_of_week:
        if not schedule.days_of_week:
            raise ScheduleConfigInvalid(
                f"days_of_week must not be empty for a {schedule.pattern.value} schedule",
                field="days_of_week",
                value=sorted(schedule.days_of_week),
            )
        bad = sorted(d for d in schedule.days_of_week if d not in range(1, 8))
        if bad:
            raise ScheduleConfigInvalid(
                f"days_of_week entries must be 1..7, got {bad}",
                field="days_of_week",
                value=bad,
            )

    if schedule.end_date is not None and schedule.end_date < schedule.start_date:
        raise ScheduleConfigInvalid(
            "end_date must not be before start_date",
            field="end_date",
            value=schedule.end_date.isoformat(),
        )


def anchor_day(schedule: Schedule, year: int, month: int) -> int:
    """Day-of-month a monthly/quarterly schedule fires in *year*/*month*.

    >>> from datetime import date
    >>> s = Schedule(SchedulePattern.MONTHLY, "09:00", "UTC", date(2025, 1, 31), 2)
    >>> anchor_day(s, 2025, 2)
    28
    """
    return min(schedule.start_date.day, calendar.monthrange(year, month)[1])


def _months_since_start(schedule: Schedule, day: date) -> int:
    start = schedule.start_date
    return (day.year - start.year) * 12 + (day.month - start.month)


def in_active_range(schedule: Schedule, day: date) -> bool:
    """True when *day* lies within ``[start_date, end_date]``."""
    if day < schedule.start_date:
        return False
    return schedule.end_date is None or day <= schedule.end_date


def is_occurrence_date(schedule: Schedule, day: date) -> bool:
    """Whether the local calendar date *day* produces an occurrence."""
    if not in_active_range(schedule, day):
        return False

    pattern = schedule.pattern
    if pattern in (SchedulePattern.DAILY, SchedulePattern.WEEKLY):
        return day.isoweekday() in schedule.days_of_week
    if pattern == SchedulePattern.MONTHLY:
        return day.day == anchor_day(schedule, day.year, day.month)
    if pattern == SchedulePattern.QUARTERLY:
        return (
            _months_since_start(schedule, day) % 3 == 0
            and day.day == anchor_day(schedule, day.year, day.month)
        )
    raise ScheduleConfigInvalid(
        f"Unsupported pattern: {pattern!r}", field="pattern", value=pattern
    )


def occurrence_instant(schedule: Schedule, day: date) -> datetime:
    """UTC instant of the occurrence on local date *day*.

    The wall-clock ``schedule.time`` is attached to *day* in the
    schedule's zone and converted with the offset valid for that date.
    """
    zone = resolve_zone(schedule.timezone)
    local = datetime.combine(day, parse_time_of_day(schedule.time), tzinfo=zone)
    return local.astimezone(UTC)


def iter_occurrence_dates(schedule: Schedule, first: date, last: date) -> Iterator[date]:
    """Yield occurrence dates in ``[first, last]`` (inclusive), in order."""
    day = max(first, schedule.start_date)
    if schedule.end_date is not None:
        last = min(last, schedule.end_date)
    one_day = timedelta(days=1)
    while day <= last:
        if is_occurrence_date(schedule, day):
            yield day
        day += one_day


__all__ = [
    "anchor_day",
    "in_active_range",
    "is_occurrence_date",
    "iter_occurrence_dates",
    "occurrence_instant",
    "parse_time_of_day",
    "resolve_zone",
    "validate_schedule",
]
