"""
Metrics operations.

Selects the instances of a date range from the store, merges in the
ad-hoc submissions the caller supplies, and aggregates both through
:class:`cadence.metrics.MetricsAggregator`. The result is the value a
report generator consumes; turning it into prose is not done here.
"""

from __future__ import annotations

from cadence.core.errors import CadenceError
from cadence.core.logging import get_logger
from cadence.core.timestamps import ensure_aware, to_iso8601
from cadence.metrics.aggregator import AdHocItem, MetricsAggregator, RecurringItem
from cadence.ops.context import OperationContext
from cadence.ops.requests import ComputeMetricsRequest
from cadence.ops.responses import MetricsReport
from cadence.ops.result import OperationResult, start_timer
from cadence.scheduling.models import InstanceStatus
from cadence.scheduling.store import CadenceRepository, SqlInstanceStore

logger = get_logger(__name__)


def compute_metrics(
    ctx: OperationContext,
    request: ComputeMetricsRequest,
) -> OperationResult[MetricsReport]:
    """Completion metrics over ``[range_start, range_end)`` plus ad-hoc items."""
    timer = start_timer()

    valid = {s.value for s in InstanceStatus}
    bad = [s for s in request.statuses or [] if s not in valid]
    if bad:
        return OperationResult.fail(
            "VALIDATION_FAILED",
            f"Unknown status: {', '.join(bad)}",
            details={"field": "statuses"},
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        start = ensure_aware(request.range_start, "range_start") if request.range_start else None
        end = ensure_aware(request.range_end, "range_end") if request.range_end else None
        if start is not None and end is not None and end <= start:
            return OperationResult.fail(
                "VALIDATION_FAILED",
                "range_end must be after range_start",
                elapsed_ms=timer.elapsed_ms,
            )

        instances = SqlInstanceStore(ctx.conn, ctx.dialect).list_instances(
            workspace_id=request.workspace_id,
            cadence_ids=request.cadence_ids,
            statuses=request.statuses,
            scheduled_from=start,
            scheduled_to=end,
        )

        repo = CadenceRepository(ctx.conn, ctx.dialect)
        warnings: list[str] = []
        if request.cadence_ids is not None:
            wanted = list(dict.fromkeys(request.cadence_ids))
        else:
            wanted = list(dict.fromkeys(i.cadence_id for i in instances))
        cadences = []
        for cadence_id in wanted:
            cadence = repo.get(cadence_id)
            if cadence is None:
                warnings.append(f"Cadence {cadence_id} not found")
                continue
            cadences.append(cadence)

        items = [RecurringItem(i) for i in instances] + [
            AdHocItem(
                submission_id=s.submission_id,
                form_id=s.form_id,
                submitted_at=ensure_aware(s.submitted_at, "submitted_at"),
                cadence_id=s.cadence_id,
            )
            for s in request.adhoc
        ]
        metrics = MetricsAggregator().compute(items, cadences)

        logger.info(
            "metrics_computed",
            instances=len(instances),
            adhoc=len(request.adhoc),
            completion_rate=round(metrics.completion_rate, 1),
        )
        return OperationResult.ok(
            MetricsReport(
                range_start=to_iso8601(start),
                range_end=to_iso8601(end),
                metrics=metrics.to_dict(),
            ),
            warnings=warnings,
            elapsed_ms=timer.elapsed_ms,
        )
    except CadenceError as exc:
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except ValueError as exc:
        return OperationResult.fail("VALIDATION_FAILED", str(exc), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to compute metrics: {exc}", elapsed_ms=timer.elapsed_ms
        )
