"""
Typed request objects for operations.

Each dataclass represents the *input* contract for a single operation
function.  Requests carry only transport-agnostic data: no raw HTTP
bodies, no typer params.  ``now`` fields default to the wall clock when
left as ``None``; tests and replays pass an explicit instant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# ------------------------------------------------------------------ #
# Database operations
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class DatabaseInitRequest:
    """Request for :func:`cadence.ops.database.initialize_database`."""

    tables: list[str] | None = None  # ``None`` → every table


# ------------------------------------------------------------------ #
# Cadence operations
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class CreateCadenceRequest:
    """Request for :func:`cadence.ops.cadences.create_cadence`.

    Attributes:
        schedule: Schedule in its JSON form (``pattern``, ``time``,
            ``timezone``, ``days_of_week``, ``start_date``, ``end_date``,
            ``completion_window_hours``).
        materialize: Create the first two weeks of instances right away.
    """

    workspace_id: str = ""
    form_id: str = ""
    name: str = ""
    schedule: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    assigned_to: list[str] = field(default_factory=list)
    materialize: bool = True
    now: datetime | None = None


@dataclass(frozen=True, slots=True)
class GetCadenceRequest:
    cadence_id: str = ""


@dataclass(frozen=True, slots=True)
class ListCadencesRequest:
    workspace_id: str | None = None
    active_only: bool = False
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True, slots=True)
class UpdateCadenceRequest:
    """Partial update; ``None`` fields are left unchanged."""

    cadence_id: str = ""
    name: str | None = None
    schedule: dict[str, Any] | None = None
    is_active: bool | None = None
    assigned_to: list[str] | None = None


@dataclass(frozen=True, slots=True)
class SetCadenceActiveRequest:
    cadence_id: str = ""
    active: bool = True


@dataclass(frozen=True, slots=True)
class PreviewCadenceRequest:
    """Preview occurrences of a stored cadence or an unsaved schedule.

    Exactly one of ``cadence_id`` and ``schedule`` must be given.
    """

    cadence_id: str | None = None
    schedule: dict[str, Any] | None = None
    hours: int = 336
    now: datetime | None = None


# ------------------------------------------------------------------ #
# Instance operations
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class ListInstancesRequest:
    """Filters mirror :meth:`SqlInstanceStore.list_instances`."""

    workspace_id: str | None = None
    cadence_id: str | None = None
    form_ids: list[str] | None = None
    statuses: list[str] | None = None
    scheduled_from: datetime | None = None
    scheduled_to: datetime | None = None
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True, slots=True)
class GetInstanceRequest:
    instance_id: str = ""


@dataclass(frozen=True, slots=True)
class StartInstanceRequest:
    instance_id: str = ""
    now: datetime | None = None


@dataclass(frozen=True, slots=True)
class CompleteInstanceRequest:
    instance_id: str = ""
    submission_id: str = ""
    now: datetime | None = None


@dataclass(frozen=True, slots=True)
class SkipInstanceRequest:
    instance_id: str = ""
    reason: str = ""


@dataclass(frozen=True, slots=True)
class MyWorkRequest:
    """Request for :func:`cadence.ops.instances.get_my_work`.

    Attributes:
        assignee: Only instances assigned to this user; ``None`` for all.
        up_next_minutes: Look-ahead for the "up next" bucket.
    """

    workspace_id: str | None = None
    assignee: str | None = None
    up_next_minutes: int = 60
    now: datetime | None = None


# ------------------------------------------------------------------ #
# Scheduler operations
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class GenerateInstancesRequest:
    now: datetime | None = None
    lookahead_hours: int | None = None  # ``None`` → settings default


@dataclass(frozen=True, slots=True)
class UpdateStatusesRequest:
    now: datetime | None = None


@dataclass(frozen=True, slots=True)
class TickRequest:
    now: datetime | None = None
    lookahead_hours: int | None = None


# ------------------------------------------------------------------ #
# Metrics operations
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class AdHocSubmission:
    """A submission made outside any cadence, supplied by the caller."""

    submission_id: str
    form_id: str
    submitted_at: datetime
    cadence_id: str | None = None


@dataclass(frozen=True, slots=True)
class ComputeMetricsRequest:
    """Request for :func:`cadence.ops.metrics.compute_metrics`.

    Instances are selected by ``scheduled_for`` within
    ``[range_start, range_end)``; ad-hoc submissions are taken as given.
    """

    range_start: datetime | None = None
    range_end: datetime | None = None
    workspace_id: str | None = None
    cadence_ids: list[str] | None = None
    statuses: list[str] | None = None
    adhoc: list[AdHocSubmission] = field(default_factory=list)
