"""
Typed response objects for operations.

Each dataclass represents the *output* of a single operation beyond the
generic :class:`OperationResult` envelope.  Timestamps are ISO-8601 UTC
strings so ``dataclasses.asdict`` output is JSON-ready for both the API
and ``--json`` CLI output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cadence.core.timestamps import to_iso8601
from cadence.scheduling.describe import describe_schedule
from cadence.scheduling.driver import TickResult
from cadence.scheduling.lifecycle import MaterializeReport
from cadence.scheduling.models import Cadence, Instance

# ------------------------------------------------------------------ #
# Database responses
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class DatabaseInitResult:
    """Result payload for :func:`cadence.ops.database.initialize_database`."""

    tables_created: list[str]
    dry_run: bool = False


# ------------------------------------------------------------------ #
# Cadence responses
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class MaterializeSummary:
    cadence_id: str
    occurrences: int = 0
    created: int = 0
    existing: int = 0
    statuses: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_report(cls, report: MaterializeReport) -> MaterializeSummary:
        return cls(
            cadence_id=report.cadence_id,
            occurrences=report.occurrences,
            created=report.created_count,
            existing=report.existing,
            statuses=dict(report.statuses),
        )


@dataclass(frozen=True, slots=True)
class CadenceSummary:
    """Condensed cadence view for list endpoints."""

    cadence_id: str
    workspace_id: str
    form_id: str
    name: str
    pattern: str
    description: str
    is_active: bool

    @classmethod
    def from_cadence(cls, cadence: Cadence) -> CadenceSummary:
        return cls(
            cadence_id=cadence.id,
            workspace_id=cadence.workspace_id,
            form_id=cadence.form_id,
            name=cadence.name,
            pattern=cadence.schedule.pattern.value,
            description=describe_schedule(cadence.schedule),
            is_active=cadence.is_active,
        )


@dataclass(frozen=True, slots=True)
class CadenceDetail:
    """Full cadence view."""

    cadence_id: str
    workspace_id: str
    form_id: str
    name: str
    schedule: dict[str, Any]
    description: str
    is_active: bool
    assigned_to: list[str] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    materialized: MaterializeSummary | None = None

    @classmethod
    def from_cadence(
        cls,
        cadence: Cadence,
        materialized: MaterializeSummary | None = None,
    ) -> CadenceDetail:
        return cls(
            cadence_id=cadence.id,
            workspace_id=cadence.workspace_id,
            form_id=cadence.form_id,
            name=cadence.name,
            schedule=cadence.schedule.to_dict(),
            description=describe_schedule(cadence.schedule),
            is_active=cadence.is_active,
            assigned_to=list(cadence.assigned_to),
            created_at=to_iso8601(cadence.created_at),
            updated_at=to_iso8601(cadence.updated_at),
            materialized=materialized,
        )


@dataclass(frozen=True, slots=True)
class OccurrencePreview:
    scheduled_for: str
    due_at: str
    local_time: str


@dataclass(frozen=True, slots=True)
class PreviewResult:
    """Occurrences a cadence would produce, without persisting anything."""

    cadence_id: str | None
    description: str
    horizon_start: str
    horizon_end: str
    occurrences: list[OccurrencePreview] = field(default_factory=list)


# ------------------------------------------------------------------ #
# Instance responses
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class InstanceSummary:
    """Condensed instance view for list endpoints."""

    instance_id: str
    cadence_id: str
    form_id: str
    instance_name: str
    scheduled_for: str
    due_at: str
    status: str
    is_late: bool = False

    @classmethod
    def from_instance(cls, instance: Instance) -> InstanceSummary:
        return cls(
            instance_id=instance.id,
            cadence_id=instance.cadence_id,
            form_id=instance.form_id,
            instance_name=instance.instance_name,
            scheduled_for=to_iso8601(instance.scheduled_for),
            due_at=to_iso8601(instance.due_at),
            status=instance.status.value,
            is_late=instance.is_late,
        )


@dataclass(frozen=True, slots=True)
class InstanceDetail:
    """Full instance view."""

    instance_id: str
    workspace_id: str
    cadence_id: str
    form_id: str
    instance_name: str
    scheduled_for: str
    due_at: str
    status: str
    is_late: bool = False
    assigned_to: list[str] = field(default_factory=list)
    started_at: str | None = None
    completed_at: str | None = None
    completed_by: str | None = None
    submission_id: str | None = None
    skip_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_instance(cls, instance: Instance) -> InstanceDetail:
        return cls(
            instance_id=instance.id,
            workspace_id=instance.workspace_id,
            cadence_id=instance.cadence_id,
            form_id=instance.form_id,
            instance_name=instance.instance_name,
            scheduled_for=to_iso8601(instance.scheduled_for),
            due_at=to_iso8601(instance.due_at),
            status=instance.status.value,
            is_late=instance.is_late,
            assigned_to=list(instance.assigned_to),
            started_at=to_iso8601(instance.started_at),
            completed_at=to_iso8601(instance.completed_at),
            completed_by=instance.completed_by,
            submission_id=instance.submission_id,
            skip_reason=instance.skip_reason,
            metadata=dict(instance.metadata),
        )


@dataclass(frozen=True, slots=True)
class MyWorkResult:
    overdue: list[InstanceSummary] = field(default_factory=list)
    incomplete: list[InstanceSummary] = field(default_factory=list)
    due: list[InstanceSummary] = field(default_factory=list)
    up_next: list[InstanceSummary] = field(default_factory=list)
    total_open: int = 0


# ------------------------------------------------------------------ #
# Scheduler responses
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class SchedulerRunResult:
    """Result payload for the scheduler operations."""

    now: str
    cadences: int = 0
    created: int = 0
    existing: int = 0
    invalid_cadences: dict[str, str] = field(default_factory=dict)
    failed_cadences: dict[str, str] = field(default_factory=dict)
    examined: int = 0
    advanced: int = 0
    to_ready: int = 0
    to_missed: int = 0
    failed_instances: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @classmethod
    def from_tick(cls, tick: TickResult) -> SchedulerRunResult:
        advance = tick.advance
        return cls(
            now=to_iso8601(tick.now),
            cadences=tick.cadences,
            created=tick.created,
            existing=tick.existing,
            invalid_cadences=dict(tick.invalid_cadences),
            failed_cadences=dict(tick.failed_cadences),
            examined=advance.examined if advance else 0,
            advanced=advance.advanced if advance else 0,
            to_ready=advance.to_ready if advance else 0,
            to_missed=advance.to_missed if advance else 0,
            failed_instances=list(advance.failed) if advance else [],
            duration_ms=round(tick.duration_ms, 2),
        )


# ------------------------------------------------------------------ #
# Metrics responses
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class MetricsReport:
    """Metrics plus the range they were computed over."""

    range_start: str | None
    range_end: str | None
    metrics: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DatabaseHealth:
    """Database health for :func:`cadence.ops.database.check_database_health`."""

    connected: bool
    backend: str = "unknown"
    tables_present: list[str] = field(default_factory=list)
    tables_missing: list[str] = field(default_factory=list)
    latency_ms: float = 0.0
