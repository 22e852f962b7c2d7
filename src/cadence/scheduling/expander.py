"""Recurrence expander - cadence + horizon → occurrence timestamps.

Manifesto:
    Expansion is a pure calculation. It takes the horizon bounds as
    arguments instead of reading the clock, so the same cadence and the
    same horizon always produce the same list. That determinism is what
    lets the lifecycle manager re-run materialization safely.

┌──────────────────────────────────────────────────────────────────────────────┐
│  expand(cadence, horizon_start, horizon_end)                                  │
│                                                                               │
│   inactive cadence ──────────────────────────────────────► []                │
│   schedule.validate() ── violation ──────────────────────► ScheduleConfigInvalid
│                                                                               │
│   local dates  (horizon_start - 1d … horizon_end + 1d, in schedule tz)       │
│        │  is_occurrence_date                                                  │
│        ▼                                                                      │
│   occurrence_instant (UTC, offset of that date)                              │
│        │  keep if horizon_start <= instant < horizon_end                      │
│        ▼                                                                      │
│   sorted, de-duplicated list[datetime]                                       │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    recurrence, expander, pure-functions, scheduling, cadence

Doc-Types:
    api-reference
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from cadence.core.timestamps import ensure_aware
from cadence.scheduling.models import Cadence
from cadence.scheduling.recurrence import (
    iter_occurrence_dates,
    occurrence_instant,
    resolve_zone,
)

logger = logging.getLogger(__name__)


class RecurrenceExpander:
    """Expand a cadence into the occurrence instants inside a horizon.

    Stateless; one shared instance is fine.

    Example:
        >>> expander = RecurrenceExpander()
        >>> expander.expand(cadence, now, now + timedelta(hours=48))
        [datetime(2025, 3, 8, 14, 0, tzinfo=UTC), ...]
    """

    def expand(
        self,
        cadence: Cadence,
        horizon_start: datetime,
        horizon_end: datetime,
    ) -> list[datetime]:
        """Occurrence UTC timestamps within ``[horizon_start, horizon_end)``.

        Args:
            cadence: Cadence to expand.
            horizon_start: Inclusive lower bound (timezone-aware).
            horizon_end: Exclusive upper bound (timezone-aware).

        Returns:
            Ascending list of distinct UTC datetimes. Empty for an
            inactive cadence.

        Raises:
            ValueError: If the bounds are naive or ``horizon_end <= horizon_start``.
            ScheduleConfigInvalid: If the cadence's schedule is invalid.
        """
        start = ensure_aware(horizon_start, "horizon_start")
        end = ensure_aware(horizon_end, "horizon_end")
        if end <= start:
            raise ValueError(
                f"horizon_end ({end.isoformat()}) must be after horizon_start ({start.isoformat()})"
            )

        if not cadence.is_active:
            return []

        schedule = cadence.schedule
        schedule.validate()

        zone = resolve_zone(schedule.timezone)
        first = start.astimezone(zone).date() - timedelta(days=1)
        last = end.astimezone(zone).date() + timedelta(days=1)

        occurrences = {
            instant
            for day in iter_occurrence_dates(schedule, first, last)
            if start <= (instant := occurrence_instant(schedule, day)) < end
        }
        result = sorted(occurrences)
        logger.debug(
            f"Cadence {cadence.id}: {len(result)} occurrences in "
            f"[{start.isoformat()}, {end.isoformat()})"
        )
        return result


__all__ = ["RecurrenceExpander"]
