"""Completion metrics over recurring instances and ad-hoc submissions.

Manifesto:
    Reports mix two sources: instances materialized from cadences and
    submissions made without any schedule. Branching on loosely-typed
    records inside the counting code is how rates end up wrong. Every
    input is first normalized through one adapter, ``normalize()``, into
    a single shape; the aggregation itself never looks at where an item
    came from.

┌──────────────────────────────────────────────────────────────────────────────┐
│  AGGREGATION FLOW                                                             │
│                                                                               │
│   RecurringItem(Instance) ─┐                                                  │
│   Instance ────────────────┼──► normalize() ──► NormalizedItem               │
│   AdHocItem(submission) ───┘                        │                         │
│                                                     ▼                         │
│                                      _Tally (counts, late, durations)        │
│                                                     │                         │
│                        ┌────────────────────────────┴───────────┐            │
│                        ▼                                        ▼            │
│                 Metrics (overall)                  CadenceMetrics per key     │
│                                                                               │
│   completion_rate = completed / total * 100, 0.0 when total == 0             │
│   avg_completion_time_minutes = None when nothing to average                 │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    metrics, aggregation, tagged-union, reporting

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from cadence.scheduling.models import Cadence, Instance, InstanceStatus


class ItemKind(str, Enum):
    RECURRING = "recurring"
    ADHOC = "adhoc"


@dataclass(frozen=True)
class RecurringItem:
    """Work item backed by a materialized instance."""

    instance: Instance


@dataclass(frozen=True)
class AdHocItem:
    """Work item backed by a submission made outside any cadence.

    It has no schedule of its own: the submission time stands in for
    ``scheduled_for``, the item always counts as completed, and it never
    contributes to the average completion time.
    """

    submission_id: str
    form_id: str
    submitted_at: datetime
    cadence_id: str | None = None


AggregatedWorkItem = RecurringItem | AdHocItem


@dataclass(frozen=True)
class NormalizedItem:
    """The single shape the aggregator counts."""

    kind: ItemKind
    item_id: str
    cadence_id: str | None
    form_id: str
    status: InstanceStatus
    scheduled_for: datetime | None
    due_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_late(self) -> bool:
        return (
            self.completed_at is not None
            and self.due_at is not None
            and self.completed_at > self.due_at
        )

    @property
    def completion_minutes(self) -> float | None:
        # Ad-hoc submissions have no schedule to measure from.
        if self.kind == ItemKind.ADHOC or self.status != InstanceStatus.COMPLETED:
            return None
        if self.completed_at is None or self.scheduled_for is None:
            return None
        return (self.completed_at - self.scheduled_for).total_seconds() / 60


def normalize(item: AggregatedWorkItem | Instance) -> NormalizedItem:
    """Adapt any supported work item to :class:`NormalizedItem`.

    Raises:
        TypeError: For anything that is not a recurring or ad-hoc item.
    """
    if isinstance(item, Instance):
        item = RecurringItem(item)
    if isinstance(item, RecurringItem):
        inst = item.instance
        return NormalizedItem(
            kind=ItemKind.RECURRING,
            item_id=inst.id,
            cadence_id=inst.cadence_id,
            form_id=inst.form_id,
            status=inst.status,
            scheduled_for=inst.scheduled_for,
            due_at=inst.due_at,
            completed_at=inst.completed_at,
        )
    if isinstance(item, AdHocItem):
        return NormalizedItem(
            kind=ItemKind.ADHOC,
            item_id=item.submission_id,
            cadence_id=item.cadence_id,
            form_id=item.form_id,
            status=InstanceStatus.COMPLETED,
            scheduled_for=item.submitted_at,
            completed_at=item.submitted_at,
        )
    raise TypeError(f"Unsupported work item type: {type(item).__name__}")


def _rate(completed: int, total: int) -> float:
    return completed / total * 100 if total else 0.0


@dataclass
class _Tally:
    total: int = 0
    counts: dict[InstanceStatus, int] = field(default_factory=dict)
    late: int = 0
    minutes: list[float] = field(default_factory=list)

    def add(self, item: NormalizedItem) -> None:
        self.total += 1
        self.counts[item.status] = self.counts.get(item.status, 0) + 1
        if item.is_late:
            self.late += 1
        minutes = item.completion_minutes
        if minutes is not None:
            self.minutes.append(minutes)

    def count(self, status: InstanceStatus) -> int:
        return self.counts.get(status, 0)

    @property
    def average_minutes(self) -> float | None:
        if not self.minutes:
            return None
        return sum(self.minutes) / len(self.minutes)


@dataclass
class CadenceMetrics:
    """Breakdown for one cadence (or, for unscheduled submissions, one form)."""

    cadence_id: str | None
    form_id: str | None
    cadence_name: str | None = None
    total: int = 0
    completed: int = 0
    missed: int = 0
    in_progress: int = 0
    pending: int = 0
    late: int = 0
    completion_rate: float = 0.0
    avg_completion_time_minutes: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "cadence_id": self.cadence_id,
            "cadence_name": self.cadence_name,
            "form_id": self.form_id,
            "total": self.total,
            "completed": self.completed,
            "missed": self.missed,
            "in_progress": self.in_progress,
            "pending": self.pending,
            "late": self.late,
            "completion_rate": self.completion_rate,
        }
        if self.avg_completion_time_minutes is not None:
            data["avg_completion_time_minutes"] = self.avg_completion_time_minutes
        return data


@dataclass
class Metrics:
    """Aggregate completion metrics."""

    total: int = 0
    completed: int = 0
    missed: int = 0
    in_progress: int = 0
    pending: int = 0
    ready: int = 0
    skipped: int = 0
    late: int = 0
    completion_rate: float = 0.0
    by_cadence: list[CadenceMetrics] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_instances": self.total,
            "completed": self.completed,
            "missed": self.missed,
            "in_progress": self.in_progress,
            "pending": self.pending,
            "ready": self.ready,
            "skipped": self.skipped,
            "late": self.late,
            "completion_rate": self.completion_rate,
            "by_cadence": [c.to_dict() for c in self.by_cadence],
        }


class MetricsAggregator:
    """Pure aggregation over work items.

    Reads no clock and mutates nothing; callers choose the item set.

    Example:
        >>> metrics = MetricsAggregator().compute(instances + adhoc, cadences)
        >>> metrics.completion_rate
        75.0
    """

    def compute(
        self,
        work_items: Iterable[AggregatedWorkItem | Instance],
        cadences: Iterable[Cadence] = (),
    ) -> Metrics:
        items = [normalize(item) for item in work_items]
        cadence_list = list(cadences)

        overall = _Tally()
        groups: dict[tuple[str | None, str | None], _Tally] = {}
        for item in items:
            overall.add(item)
            # Items without a cadence are broken down by form.
            key = (item.cadence_id, None) if item.cadence_id else (None, item.form_id)
            groups.setdefault(key, _Tally()).add(item)

        by_cadence: list[CadenceMetrics] = []
        known: set[str] = set()
        for cadence in cadence_list:
            known.add(cadence.id)
            by_cadence.append(
                self._breakdown(
                    groups.get((cadence.id, None), _Tally()),
                    cadence_id=cadence.id,
                    form_id=cadence.form_id,
                    cadence_name=cadence.name,
                )
            )

        form_of: dict[str, str] = {}
        for item in items:
            if item.cadence_id:
                form_of.setdefault(item.cadence_id, item.form_id)
        for (cadence_id, form_id), tally in sorted(
            groups.items(), key=lambda kv: (kv[0][0] is None, kv[0][0] or "", kv[0][1] or "")
        ):
            if cadence_id is not None and cadence_id in known:
                continue
            by_cadence.append(
                self._breakdown(
                    tally,
                    cadence_id=cadence_id,
                    form_id=form_id if cadence_id is None else form_of.get(cadence_id),
                )
            )

        return Metrics(
            total=overall.total,
            completed=overall.count(InstanceStatus.COMPLETED),
            missed=overall.count(InstanceStatus.MISSED),
            in_progress=overall.count(InstanceStatus.IN_PROGRESS),
            pending=overall.count(InstanceStatus.PENDING),
            ready=overall.count(InstanceStatus.READY),
            skipped=overall.count(InstanceStatus.SKIPPED),
            late=overall.late,
            completion_rate=_rate(overall.count(InstanceStatus.COMPLETED), overall.total),
            by_cadence=by_cadence,
        )

    @staticmethod
    def _breakdown(
        tally: _Tally,
        *,
        cadence_id: str | None,
        form_id: str | None,
        cadence_name: str | None = None,
    ) -> CadenceMetrics:
        completed = tally.count(InstanceStatus.COMPLETED)
        return CadenceMetrics(
            cadence_id=cadence_id,
            form_id=form_id,
            cadence_name=cadence_name,
            total=tally.total,
            completed=completed,
            missed=tally.count(InstanceStatus.MISSED),
            in_progress=tally.count(InstanceStatus.IN_PROGRESS),
            pending=tally.count(InstanceStatus.PENDING),
            late=tally.late,
            completion_rate=_rate(completed, tally.total),
            avg_completion_time_minutes=tally.average_minutes,
        )


def compute_metrics(
    work_items: Iterable[AggregatedWorkItem | Instance],
    cadences: Iterable[Cadence] = (),
) -> Metrics:
    """Shorthand for ``MetricsAggregator().compute(...)``."""
    return MetricsAggregator().compute(work_items, cadences)


__all__ = [
    "AdHocItem",
    "AggregatedWorkItem",
    "CadenceMetrics",
    "ItemKind",
    "Metrics",
    "MetricsAggregator",
    "NormalizedItem",
    "RecurringItem",
    "compute_metrics",
    "normalize",
]
