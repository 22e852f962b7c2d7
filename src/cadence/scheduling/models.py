"""Cadence and instance models.

Manifesto:
    A *cadence* is a declarative recurring schedule bound to one form.
    An *instance* is one concrete, time-bound work item materialized from
    one occurrence of that schedule. The engine reads cadences and owns
    instances; instance status only ever moves forward through the graph
    in ``INSTANCE_VALID_TRANSITIONS``.

Valid transition graph::

    PENDING     → READY | IN_PROGRESS | COMPLETED | MISSED | SKIPPED
    READY       → IN_PROGRESS | COMPLETED | MISSED | SKIPPED
    IN_PROGRESS → COMPLETED | MISSED
    COMPLETED   → (terminal)
    MISSED      → (terminal)
    SKIPPED     → (terminal)

Tags:
    cadence, models, dataclasses, state-machine, scheduling

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from cadence.core.errors import InvalidTransition, ScheduleConfigInvalid
from cadence.core.timestamps import to_iso8601


class SchedulePattern(str, Enum):
    """Recurrence pattern of a cadence."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"

    @property
    def uses_days_of_week(self) -> bool:
        return self in (SchedulePattern.DAILY, SchedulePattern.WEEKLY)


@dataclass(frozen=True)
class Schedule:
    """Recurring schedule definition.

    Attributes:
        pattern: Daily, weekly, monthly, or quarterly recurrence.
        time: Local wall-clock time of day, ``"HH:MM"`` (24h).
        timezone: IANA zone name the ``time`` is expressed in.
        start_date: First calendar date (in ``timezone``) that may produce an occurrence.
        completion_window_hours: Hours after ``scheduled_for`` until ``due_at``.
        days_of_week: ISO weekdays 1=Mon … 7=Sun; required for daily/weekly.
        end_date: Last calendar date that may produce an occurrence.
    """

    pattern: SchedulePattern
    time: str
    timezone: str
    start_date: date
    completion_window_hours: int
    days_of_week: frozenset[int] = frozenset()
    end_date: date | None = None

    @property
    def completion_window(self) -> timedelta:
        return timedelta(hours=self.completion_window_hours)

    def validate(self) -> None:
        """Raise :class:`ScheduleConfigInvalid` if the schedule breaks its invariants."""
        from cadence.scheduling.recurrence import validate_schedule

        validate_schedule(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern.value,
            "time": self.time,
            "timezone": self.timezone,
            "days_of_week": sorted(self.days_of_week),
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "completion_window_hours": self.completion_window_hours,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Schedule:
        """Build a schedule from its JSON form.

        Structural problems (unknown pattern, unparseable dates) raise
        :class:`ScheduleConfigInvalid`; semantic checks are left to
        :meth:`validate`.
        """
        try:
            pattern = SchedulePattern(data.get("pattern"))
        except ValueError as e:
            raise ScheduleConfigInvalid(
                f"Unsupported pattern: {data.get('pattern')!r}",
                field="pattern",
                value=data.get("pattern"),
                cause=e,
            ) from e

        try:
            start_date = _as_date(data["start_date"])
            end_date = _as_date(data["end_date"]) if data.get("end_date") else None
        except (KeyError, TypeError, ValueError) as e:
            raise ScheduleConfigInvalid(
                f"Invalid schedule dates: {e}", field="start_date", cause=e
            ) from e

        window = _as_int(data.get("completion_window_hours", 0), "completion_window_hours")
        days = frozenset(_as_int(d, "days_of_week") for d in data.get("days_of_week") or [])

        return cls(
            pattern=pattern,
            time=str(data.get("time", "")),
            timezone=str(data.get("timezone", "")),
            start_date=start_date,
            completion_window_hours=window,
            days_of_week=days,
            end_date=end_date,
        )


def _as_int(value: Any, field_name: str) -> int:
    """Whole numbers only; ``2.5`` and ``True`` are rejected, not truncated."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    error = ScheduleConfigInvalid(
        f"{field_name} must be a whole number, got {value!r}", field=field_name, value=value
    )
    if not isinstance(value, str):
        raise error
    try:
        return int(value)
    except ValueError as e:
        raise error from e


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass
class Cadence:
    """Recurring schedule bound to a form (``cadences`` row)."""

    id: str
    workspace_id: str
    form_id: str
    name: str
    schedule: Schedule
    is_active: bool = True
    assigned_to: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "form_id": self.form_id,
            "name": self.name,
            "schedule": self.schedule.to_dict(),
            "is_active": self.is_active,
            "assigned_to": list(self.assigned_to),
            "created_at": to_iso8601(self.created_at),
            "updated_at": to_iso8601(self.updated_at),
        }


# ---------------------------------------------------------------------------
# Instance status state machine
# ---------------------------------------------------------------------------


class InstanceStatus(str, Enum):
    """Lifecycle status of an instance.

    State transitions are enforced via ``INSTANCE_VALID_TRANSITIONS``.
    Use :func:`validate_instance_transition` before changing status.
    """

    PENDING = "pending"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[InstanceStatus] = frozenset({
    InstanceStatus.COMPLETED,
    InstanceStatus.MISSED,
    InstanceStatus.SKIPPED,
})

INSTANCE_VALID_TRANSITIONS: dict[InstanceStatus, frozenset[InstanceStatus]] = {
    InstanceStatus.PENDING: frozenset({
        InstanceStatus.READY,
        InstanceStatus.IN_PROGRESS,
        InstanceStatus.COMPLETED,
        InstanceStatus.MISSED,
        InstanceStatus.SKIPPED,
    }),
    InstanceStatus.READY: frozenset({
        InstanceStatus.IN_PROGRESS,
        InstanceStatus.COMPLETED,
        InstanceStatus.MISSED,
        InstanceStatus.SKIPPED,
    }),
    InstanceStatus.IN_PROGRESS: frozenset({
        InstanceStatus.COMPLETED,
        InstanceStatus.MISSED,
    }),
    InstanceStatus.COMPLETED: frozenset(),
    InstanceStatus.MISSED: frozenset(),
    InstanceStatus.SKIPPED: frozenset(),
}


def validate_instance_transition(
    current: InstanceStatus,
    target: InstanceStatus,
    *,
    instance_id: str | None = None,
) -> None:
    """Raise :class:`InvalidTransition` if *current → target* is illegal.

    Example:
        >>> validate_instance_transition(InstanceStatus.READY, InstanceStatus.COMPLETED)
        >>> validate_instance_transition(InstanceStatus.MISSED, InstanceStatus.READY)
        Traceback (most recent call last):
        ...
        cadence.core.errors.InvalidTransition: Invalid InstanceStatus transition: missed → ready
    """
    if target not in INSTANCE_VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(current.value, target.value, instance_id=instance_id)


# ---------------------------------------------------------------------------
# instances
# ---------------------------------------------------------------------------


@dataclass
class Instance:
    """One materialized occurrence of a cadence (``instances`` row)."""

    id: str
    workspace_id: str
    cadence_id: str
    form_id: str
    instance_name: str
    scheduled_for: datetime
    due_at: datetime
    status: InstanceStatus = InstanceStatus.PENDING
    assigned_to: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    completed_by: str | None = None
    submission_id: str | None = None
    skip_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_late(self) -> bool:
        """Completed after ``due_at``. Derived, never stored."""
        return self.completed_at is not None and self.completed_at > self.due_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "cadence_id": self.cadence_id,
            "form_id": self.form_id,
            "instance_name": self.instance_name,
            "scheduled_for": to_iso8601(self.scheduled_for),
            "due_at": to_iso8601(self.due_at),
            "status": self.status.value,
            "assigned_to": list(self.assigned_to),
            "started_at": to_iso8601(self.started_at),
            "completed_at": to_iso8601(self.completed_at),
            "completed_by": self.completed_by,
            "submission_id": self.submission_id,
            "skip_reason": self.skip_reason,
            "is_late": self.is_late,
            "metadata": dict(self.metadata),
        }


__all__ = [
    "Cadence",
    "Instance",
    "InstanceStatus",
    "INSTANCE_VALID_TRANSITIONS",
    "Schedule",
    "SchedulePattern",
    "TERMINAL_STATUSES",
    "validate_instance_transition",
]
