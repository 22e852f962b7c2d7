"""Instance lifecycle manager - materialization and status transitions.

Manifesto:
    The manager is stateless between calls. Every decision is derived
    from the ``now`` it is handed and the rows currently in the store, so
    a periodic trigger can fire it twice, late, or concurrently without
    harm:

    - **materialize** relies on the store's atomic insert-if-absent; a
      conflict is the expected outcome of a re-run, not an error.
    - **advance_clock** re-checks each row under compare-and-swap; a row
      a user already completed is left alone.
    - **start / complete / skip** are single-row compare-and-swaps; the
      loser of a race gets ``InvalidTransition``.

┌──────────────────────────────────────────────────────────────────────────────┐
│  STATE MACHINE                                                                │
│                                                                               │
│   pending ──clock: now >= scheduled_for──► ready                              │
│   pending ──start() [now < due_at]──────► in_progress                         │
│   pending ──complete()──────────────────► completed                           │
│   pending ──clock: now > due_at─────────► missed                              │
│   pending ──skip()──────────────────────► skipped                             │
│   ready   ──start() [now < due_at]──────► in_progress                         │
│   ready   ──complete() (late allowed)───► completed                           │
│   ready   ──clock: now > due_at─────────► missed                              │
│   ready   ──skip()──────────────────────► skipped                             │
│   in_progress ──complete()──────────────► completed                           │
│   in_progress ──clock: now > due_at─────► missed                              │
│                                                                               │
│   completed / missed / skipped: terminal                                      │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    lifecycle, state-machine, idempotency, compare-and-swap, scheduling

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from cadence.core.errors import InstanceNotFound, InvalidTransition
from cadence.core.timestamps import ensure_aware, generate_id, to_iso8601
from cadence.scheduling.expander import RecurrenceExpander
from cadence.scheduling.models import (
    Cadence,
    Instance,
    InstanceStatus,
    validate_instance_transition,
)
from cadence.scheduling.recurrence import resolve_zone
from cadence.scheduling.store import InstanceStore

logger = logging.getLogger(__name__)

# A row can be moved by the clock at most twice (pending → ready → missed),
# so a few CAS retries always reach a fixed point.
_MAX_CAS_ATTEMPTS = 3


@dataclass
class MaterializeReport:
    """Outcome of one :meth:`InstanceLifecycleManager.materialize` call."""

    cadence_id: str
    occurrences: int = 0
    created: list[str] = field(default_factory=list)
    existing: int = 0
    statuses: dict[str, int] = field(default_factory=dict)

    @property
    def created_count(self) -> int:
        return len(self.created)


@dataclass
class AdvanceReport:
    """Outcome of one :meth:`InstanceLifecycleManager.advance_clock` pass.

    ``failed`` holds ids whose transition raised; the caller may retry
    them. Rows that lost a race to a concurrent actor and no longer need
    a clock transition are counted in neither list.
    """

    examined: int = 0
    advanced: int = 0
    to_ready: int = 0
    to_missed: int = 0
    failed: list[str] = field(default_factory=list)


def initial_status(scheduled_for: datetime, due_at: datetime, now: datetime) -> InstanceStatus:
    """Status an occurrence is born with when materialized at *now*."""
    if scheduled_for > now:
        return InstanceStatus.PENDING
    if now < due_at:
        return InstanceStatus.READY
    # Lapsed before it could be created; never actionable.
    return InstanceStatus.MISSED


def clock_target(instance: Instance, now: datetime) -> InstanceStatus | None:
    """Transition the clock alone would apply to *instance*, if any."""
    if instance.status not in (
        InstanceStatus.PENDING,
        InstanceStatus.READY,
        InstanceStatus.IN_PROGRESS,
    ):
        return None
    if now > instance.due_at:
        return InstanceStatus.MISSED
    if instance.status == InstanceStatus.PENDING and now >= instance.scheduled_for:
        return InstanceStatus.READY
    return None


class InstanceLifecycleManager:
    """Materializes occurrences and drives instances through their lifecycle.

    Example:
        >>> manager = InstanceLifecycleManager(SqlInstanceStore(conn))
        >>> manager.materialize(cadence, now, now + timedelta(hours=48), now)
        MaterializeReport(cadence_id='cad-1', occurrences=2, created=[...], ...)
        >>> manager.advance_clock(now + timedelta(hours=3))
        AdvanceReport(examined=2, advanced=1, ...)
    """

    def __init__(
        self,
        store: InstanceStore,
        expander: RecurrenceExpander | None = None,
    ) -> None:
        self.store = store
        self.expander = expander or RecurrenceExpander()

    # === Materialization ===

    def build_instance(self, cadence: Cadence, scheduled_for: datetime, now: datetime) -> Instance:
        """Instance record for one occurrence, not yet persisted."""
        due_at = scheduled_for + cadence.schedule.completion_window
        local_date = scheduled_for.astimezone(resolve_zone(cadence.schedule.timezone)).date()
        return Instance(
            id=generate_id(),
            workspace_id=cadence.workspace_id,
            cadence_id=cadence.id,
            form_id=cadence.form_id,
            instance_name=f"{cadence.name} - {local_date.isoformat()}",
            scheduled_for=scheduled_for,
            due_at=due_at,
            status=initial_status(scheduled_for, due_at, now),
            assigned_to=list(cadence.assigned_to),
            metadata={
                "generated_at": to_iso8601(now),
                "timezone": cadence.schedule.timezone,
            },
            created_at=now,
            updated_at=now,
        )

    def materialize(
        self,
        cadence: Cadence,
        horizon_start: datetime,
        horizon_end: datetime,
        now: datetime,
    ) -> MaterializeReport:
        """Create an instance for every occurrence in the horizon.

        Safe under duplicate and concurrent invocation: existing
        occurrences are counted, never duplicated, never reported as errors.

        Raises:
            ScheduleConfigInvalid: If the cadence's schedule is invalid.
            StoreError: If the store fails outright.
        """
        now = ensure_aware(now, "now")
        occurrences = self.expander.expand(cadence, horizon_start, horizon_end)
        report = MaterializeReport(cadence_id=cadence.id, occurrences=len(occurrences))

        for scheduled_for in occurrences:
            instance = self.build_instance(cadence, scheduled_for, now)
            if self.store.insert_if_absent(instance):
                report.created.append(instance.id)
                key = instance.status.value
                report.statuses[key] = report.statuses.get(key, 0) + 1
            else:
                report.existing += 1

        if report.created:
            logger.info(
                f"Cadence {cadence.id} ({cadence.name}): created {report.created_count} "
                f"of {report.occurrences} occurrences"
            )
        return report

    # === Clock ===

    def advance_clock(self, now: datetime) -> AdvanceReport:
        """Apply clock-driven transitions to every non-terminal instance.

        A failure on one row is recorded in ``failed`` and the pass
        continues with the next row.
        """
        now = ensure_aware(now, "now")
        report = AdvanceReport()

        for instance in self.store.list_non_terminal():
            report.examined += 1
            try:
                target = self._advance_one(instance, now)
            except Exception as e:
                logger.warning(f"Clock transition failed for instance {instance.id}: {e}")
                report.failed.append(instance.id)
                continue
            if target is None:
                continue
            report.advanced += 1
            if target == InstanceStatus.READY:
                report.to_ready += 1
            else:
                report.to_missed += 1

        if report.advanced or report.failed:
            logger.info(
                f"advance_clock at {now.isoformat()}: advanced={report.advanced} "
                f"(ready={report.to_ready}, missed={report.to_missed}) failed={len(report.failed)}"
            )
        return report

    def _advance_one(self, instance: Instance, now: datetime) -> InstanceStatus | None:
        """CAS one row to its clock target, re-reading if it moved underneath us."""
        current: Instance | None = instance
        applied: InstanceStatus | None = None
        for _ in range(_MAX_CAS_ATTEMPTS):
            if current is None:
                return applied
            target = clock_target(current, now)
            if target is None:
                return applied
            validate_instance_transition(current.status, target, instance_id=current.id)
            if self.store.compare_and_swap(current.id, current.status, {"status": target}):
                # pending → ready may still need → missed in the same pass
                current.status = target
                applied = target
                continue
            current = self.store.get(current.id)
        return applied

    # === User actions ===

    def _require(self, instance_id: str) -> Instance:
        instance = self.store.get(instance_id)
        if instance is None:
            raise InstanceNotFound(instance_id)
        return instance

    def _swap(
        self,
        instance: Instance,
        target: InstanceStatus,
        updates: dict,
    ) -> Instance:
        if not self.store.compare_and_swap(
            instance.id, instance.status, {"status": target, **updates}
        ):
            latest = self.store.get(instance.id)
            current = latest.status.value if latest else instance.status.value
            raise InvalidTransition(
                current,
                target.value,
                instance_id=instance.id,
                reason="instance was modified concurrently",
            )
        logger.debug(f"Instance {instance.id}: {instance.status.value} → {target.value}")
        return self._require(instance.id)

    def start(self, instance_id: str, now: datetime) -> Instance:
        """Begin work on an instance (``pending``/``ready`` → ``in_progress``).

        Raises:
            InstanceNotFound: Unknown id.
            InvalidTransition: Wrong status, window already closed, or lost race.
        """
        now = ensure_aware(now, "now")
        instance = self._require(instance_id)
        validate_instance_transition(
            instance.status, InstanceStatus.IN_PROGRESS, instance_id=instance_id
        )
        if not now < instance.due_at:
            raise InvalidTransition(
                instance.status.value,
                InstanceStatus.IN_PROGRESS.value,
                instance_id=instance_id,
                reason=f"completion window closed at {instance.due_at.isoformat()}",
            )
        return self._swap(instance, InstanceStatus.IN_PROGRESS, {"started_at": now})

    def complete(
        self,
        instance_id: str,
        submission_id: str,
        now: datetime,
        user: str | None = None,
    ) -> Instance:
        """Record a submission against an instance.

        Accepted after ``due_at`` as long as the instance is not yet
        terminal; such an instance reports ``is_late``.

        Raises:
            InstanceNotFound: Unknown id.
            InvalidTransition: Instance already completed, missed or skipped, or lost race.
        """
        now = ensure_aware(now, "now")
        instance = self._require(instance_id)
        validate_instance_transition(
            instance.status, InstanceStatus.COMPLETED, instance_id=instance_id
        )
        return self._swap(
            instance,
            InstanceStatus.COMPLETED,
            {"completed_at": now, "submission_id": submission_id, "completed_by": user},
        )

    def skip(self, instance_id: str, reason: str) -> Instance:
        """Skip an instance that has not been started. Terminal.

        Raises:
            InstanceNotFound: Unknown id.
            InvalidTransition: Instance not in ``pending``/``ready``, or lost race.
        """
        instance = self._require(instance_id)
        validate_instance_transition(
            instance.status, InstanceStatus.SKIPPED, instance_id=instance_id
        )
        return self._swap(instance, InstanceStatus.SKIPPED, {"skip_reason": reason})


__all__ = [
    "AdvanceReport",
    "InstanceLifecycleManager",
    "MaterializeReport",
    "clock_target",
    "initial_status",
]
