"""
Scheduler operations.

The two passes the periodic trigger runs, separately or together:

- :func:`generate_instances` materializes the lookahead horizon of every
  active cadence.
- :func:`update_instance_statuses` applies clock transitions.
- :func:`run_tick` does both, materialize first.

All three are idempotent; running them again for the same ``now``
changes nothing.
"""

from __future__ import annotations

from cadence.core.errors import CadenceError
from cadence.core.logging import get_logger
from cadence.core.settings import get_settings
from cadence.core.timestamps import resolve_now
from cadence.ops.context import OperationContext
from cadence.ops.requests import GenerateInstancesRequest, TickRequest, UpdateStatusesRequest
from cadence.ops.responses import SchedulerRunResult
from cadence.ops.result import OperationResult, start_timer
from cadence.scheduling.driver import SchedulerDriver, TickResult
from cadence.scheduling.lifecycle import InstanceLifecycleManager
from cadence.scheduling.store import CadenceRepository, SqlInstanceStore

logger = get_logger(__name__)


def _driver(ctx: OperationContext, lookahead_hours: int | None) -> SchedulerDriver:
    return SchedulerDriver(
        CadenceRepository(ctx.conn, ctx.dialect),
        InstanceLifecycleManager(SqlInstanceStore(ctx.conn, ctx.dialect)),
        lookahead_hours=(
            lookahead_hours if lookahead_hours is not None else get_settings().lookahead_hours
        ),
    )


def _warnings(tick: TickResult) -> list[str]:
    warnings = [f"Invalid schedule on cadence {cid}: {msg}" for cid, msg in tick.invalid_cadences.items()]
    warnings += [f"Materialization failed for cadence {cid}: {msg}" for cid, msg in tick.failed_cadences.items()]
    if tick.advance is not None and tick.advance.failed:
        warnings.append(f"{len(tick.advance.failed)} instance(s) failed to advance; retry later")
    return warnings


def _run(ctx: OperationContext, action: str, fn) -> OperationResult[SchedulerRunResult]:
    timer = start_timer()
    try:
        tick = fn()
        payload = SchedulerRunResult.from_tick(tick)
        logger.info(
            f"{action}_completed",
            caller=ctx.caller,
            cadences=payload.cadences,
            created=payload.created,
            advanced=payload.advanced,
            invalid=len(payload.invalid_cadences),
        )
        return OperationResult.ok(payload, warnings=_warnings(tick), elapsed_ms=timer.elapsed_ms)
    except CadenceError as exc:
        logger.warning(f"{action}_failed", error=exc.message, retryable=exc.retryable)
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except ValueError as exc:
        return OperationResult.fail("VALIDATION_FAILED", str(exc), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Scheduler {action} failed: {exc}", elapsed_ms=timer.elapsed_ms
        )


def generate_instances(
    ctx: OperationContext,
    request: GenerateInstancesRequest | None = None,
) -> OperationResult[SchedulerRunResult]:
    """Materialize ``[now, now + lookahead)`` for every active cadence."""
    request = request or GenerateInstancesRequest()

    def _go() -> TickResult:
        return _driver(ctx, request.lookahead_hours).materialize_all(resolve_now(request.now))

    return _run(ctx, "generate", _go)


def update_instance_statuses(
    ctx: OperationContext,
    request: UpdateStatusesRequest | None = None,
) -> OperationResult[SchedulerRunResult]:
    """Apply ``pending → ready`` and ``→ missed`` transitions due at ``now``."""
    request = request or UpdateStatusesRequest()

    def _go() -> TickResult:
        return _driver(ctx, None).advance(resolve_now(request.now))

    return _run(ctx, "advance", _go)


def run_tick(
    ctx: OperationContext,
    request: TickRequest | None = None,
) -> OperationResult[SchedulerRunResult]:
    """Materialize, then advance."""
    request = request or TickRequest()

    def _go() -> TickResult:
        return _driver(ctx, request.lookahead_hours).run_once(resolve_now(request.now))

    return _run(ctx, "tick", _go)
