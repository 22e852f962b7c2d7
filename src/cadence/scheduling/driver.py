"""Scheduler driver - the periodic trigger that keeps instances current.

Manifesto:
    The driver holds no scheduling state of its own. Each tick reads the
    active cadences, materializes their lookahead horizon and advances
    the clock. Running a tick twice, or from two processes at once, gives
    the same rows as running it once.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER DRIVER                                                             │
│                                                                               │
│   run_once(now)                                                               │
│   ├── materialize_all(now)                                                    │
│   │     for each active cadence:                                              │
│   │       manager.materialize(cadence, now, now + lookahead, now)             │
│   │       ScheduleConfigInvalid ──► invalid_cadences (tick continues)        │
│   │       StoreError            ──► failed_cadences  (tick continues)        │
│   └── advance(now)                                                            │
│         manager.advance_clock(now)                                            │
│                                                                               │
│   run_forever(interval)   blocking loop for `cadence scheduler run`           │
│   start(interval) / stop()  same loop on a daemon thread                      │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    scheduler, driver, cron, tick, idempotency

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from cadence.core.errors import CadenceError, ScheduleConfigInvalid
from cadence.core.timestamps import ensure_aware, to_iso8601, utc_now
from cadence.scheduling.lifecycle import (
    AdvanceReport,
    InstanceLifecycleManager,
    MaterializeReport,
)
from cadence.scheduling.store import CadenceRepository

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD_HOURS = 48
CREATION_LOOKAHEAD_HOURS = 336


@dataclass
class TickResult:
    """Outcome of one driver pass."""

    now: datetime
    cadences: int = 0
    created: int = 0
    existing: int = 0
    reports: list[MaterializeReport] = field(default_factory=list)
    invalid_cadences: dict[str, str] = field(default_factory=dict)
    failed_cadences: dict[str, str] = field(default_factory=dict)
    advance: AdvanceReport | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "now": to_iso8601(self.now),
            "cadences": self.cadences,
            "created": self.created,
            "existing": self.existing,
            "invalid_cadences": dict(self.invalid_cadences),
            "failed_cadences": dict(self.failed_cadences),
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.advance is not None:
            data["advance"] = {
                "examined": self.advance.examined,
                "advanced": self.advance.advanced,
                "to_ready": self.advance.to_ready,
                "to_missed": self.advance.to_missed,
                "failed": list(self.advance.failed),
            }
        return data


@dataclass
class DriverStats:
    """Counters kept across ticks of a long-running driver."""

    tick_count: int = 0
    ticks_failed: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None


class SchedulerDriver:
    """Invokes expansion and lifecycle passes for every active cadence.

    Example:
        >>> driver = SchedulerDriver(CadenceRepository(conn), manager)
        >>> result = driver.run_once(utc_now())
        >>> result.created, result.advance.advanced
        (12, 3)
    """

    def __init__(
        self,
        cadences: CadenceRepository,
        manager: InstanceLifecycleManager,
        lookahead_hours: int = DEFAULT_LOOKAHEAD_HOURS,
    ) -> None:
        if lookahead_hours <= 0:
            raise ValueError(f"lookahead_hours must be positive, got {lookahead_hours}")
        self.cadences = cadences
        self.manager = manager
        self.lookahead = timedelta(hours=lookahead_hours)

        self.stats = DriverStats()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # === Passes ===

    def materialize_all(self, now: datetime, result: TickResult | None = None) -> TickResult:
        """Materialize ``[now, now + lookahead)`` for every active cadence."""
        now = ensure_aware(now, "now")
        result = result or TickResult(now=now)

        def _record_invalid(cadence_id: str, error: ScheduleConfigInvalid) -> None:
            logger.warning(f"Cadence {cadence_id} has an unreadable schedule: {error.message}")
            result.invalid_cadences[cadence_id] = error.message

        for cadence in self.cadences.list_active(on_invalid=_record_invalid):
            result.cadences += 1
            try:
                report = self.manager.materialize(cadence, now, now + self.lookahead, now)
            except ScheduleConfigInvalid as e:
                logger.warning(f"Cadence {cadence.id} skipped: {e.message}")
                result.invalid_cadences[cadence.id] = e.message
                continue
            except CadenceError as e:
                logger.error(f"Materialization failed for cadence {cadence.id}: {e.message}")
                result.failed_cadences[cadence.id] = e.message
                continue
            result.reports.append(report)
            result.created += report.created_count
            result.existing += report.existing
        return result

    def advance(self, now: datetime, result: TickResult | None = None) -> TickResult:
        """Apply clock transitions to every non-terminal instance."""
        now = ensure_aware(now, "now")
        result = result or TickResult(now=now)
        result.advance = self.manager.advance_clock(now)
        return result

    def run_once(self, now: datetime) -> TickResult:
        """One full tick: materialize every active cadence, then advance the clock."""
        started = time.perf_counter()
        now = ensure_aware(now, "now")
        result = self.materialize_all(now)
        self.advance(now, result)
        result.duration_ms = (time.perf_counter() - started) * 1000

        logger.info(
            f"Tick at {now.isoformat()}: cadences={result.cadences} created={result.created} "
            f"existing={result.existing} advanced={result.advance.advanced} "
            f"invalid={len(result.invalid_cadences)}"
        )
        return result

    # === Loop ===

    def _tick_safely(self, clock: Callable[[], datetime]) -> TickResult | None:
        self.stats.tick_count += 1
        self.stats.last_tick = clock()
        try:
            return self.run_once(self.stats.last_tick)
        except Exception as e:
            self.stats.ticks_failed += 1
            self.stats.last_error = str(e)
            logger.exception(f"Tick failed: {e}")
            return None

    def run_forever(
        self,
        interval_seconds: float,
        *,
        max_ticks: int | None = None,
        clock: Callable[[], datetime] = utc_now,
        on_tick: Callable[[TickResult], None] | None = None,
    ) -> None:
        """Tick immediately, then every *interval_seconds* until stopped.

        A failing tick is logged and counted; the loop keeps going.
        """
        self._stop_event.clear()
        self._loop(interval_seconds, max_ticks=max_ticks, clock=clock, on_tick=on_tick)

    def _loop(
        self,
        interval_seconds: float,
        *,
        max_ticks: int | None = None,
        clock: Callable[[], datetime] = utc_now,
        on_tick: Callable[[TickResult], None] | None = None,
    ) -> None:
        ticks = 0
        while True:
            result = self._tick_safely(clock)
            if result is not None and on_tick is not None:
                on_tick(result)
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                return
            if self._stop_event.wait(interval_seconds):
                return

    def start(self, interval_seconds: float) -> None:
        """Run :meth:`run_forever` on a daemon thread."""
        if self.is_running:
            logger.warning("SchedulerDriver already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            args=(interval_seconds,),
            daemon=True,
            name="cadence-scheduler",
        )
        self._thread.start()
        logger.info(f"SchedulerDriver started (interval={interval_seconds}s)")

    def stop(self) -> None:
        """Stop the background loop, waiting up to 5 seconds for the current tick."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("Scheduler thread did not stop cleanly")
            self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


__all__ = [
    "CREATION_LOOKAHEAD_HOURS",
    "DEFAULT_LOOKAHEAD_HOURS",
    "DriverStats",
    "SchedulerDriver",
    "TickResult",
]
