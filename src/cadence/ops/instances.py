"""
Instance operations.

Listing and the three user actions of the instance state machine. The
actions surface ``InvalidTransition`` as ``INVALID_TRANSITION`` so the
caller can tell the user the item "can no longer be started" instead of
failing silently.
"""

from __future__ import annotations

from datetime import timedelta

from cadence.core.errors import CadenceError, InstanceNotFound
from cadence.core.logging import get_logger
from cadence.core.timestamps import resolve_now
from cadence.ops.context import OperationContext
from cadence.ops.requests import (
    CompleteInstanceRequest,
    GetInstanceRequest,
    ListInstancesRequest,
    MyWorkRequest,
    SkipInstanceRequest,
    StartInstanceRequest,
)
from cadence.ops.responses import InstanceDetail, InstanceSummary, MyWorkResult
from cadence.ops.result import OperationResult, PagedResult, start_timer
from cadence.scheduling.lifecycle import InstanceLifecycleManager
from cadence.scheduling.models import TERMINAL_STATUSES, InstanceStatus
from cadence.scheduling.predicates import group_my_work
from cadence.scheduling.store import SqlInstanceStore

logger = get_logger(__name__)

_OPEN_STATUSES = [s for s in InstanceStatus if s not in TERMINAL_STATUSES]


def _store(ctx: OperationContext) -> SqlInstanceStore:
    return SqlInstanceStore(ctx.conn, ctx.dialect)


def _manager(ctx: OperationContext) -> InstanceLifecycleManager:
    return InstanceLifecycleManager(_store(ctx))


def _invalid_statuses(statuses: list[str] | None) -> list[str]:
    valid = {s.value for s in InstanceStatus}
    return [s for s in statuses or [] if s not in valid]


def list_instances(
    ctx: OperationContext,
    request: ListInstancesRequest | None = None,
) -> PagedResult[InstanceSummary]:
    """List instances ordered by ``scheduled_for``."""
    request = request or ListInstancesRequest()
    timer = start_timer()

    bad = _invalid_statuses(request.statuses)
    if bad:
        return PagedResult.fail(
            "VALIDATION_FAILED",
            f"Unknown status: {', '.join(bad)}",
            details={"field": "statuses"},
            elapsed_ms=timer.elapsed_ms,
        )

    filters = {
        "workspace_id": request.workspace_id,
        "cadence_id": request.cadence_id,
        "form_ids": request.form_ids,
        "statuses": request.statuses,
        "scheduled_from": request.scheduled_from,
        "scheduled_to": request.scheduled_to,
    }
    try:
        store = _store(ctx)
        total = store.count_instances(**filters)
        rows = store.list_instances(limit=request.limit, offset=request.offset, **filters)
        return PagedResult.from_items(
            [InstanceSummary.from_instance(i) for i in rows],
            total=total,
            limit=request.limit,
            offset=request.offset,
            elapsed_ms=timer.elapsed_ms,
        )
    except CadenceError as exc:
        return PagedResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return PagedResult.fail(
            "INTERNAL", f"Failed to list instances: {exc}", elapsed_ms=timer.elapsed_ms
        )


def get_instance(
    ctx: OperationContext,
    request: GetInstanceRequest,
) -> OperationResult[InstanceDetail]:
    timer = start_timer()

    if not request.instance_id:
        return OperationResult.fail(
            "VALIDATION_FAILED", "instance_id is required", elapsed_ms=timer.elapsed_ms
        )

    try:
        instance = _store(ctx).get(request.instance_id)
        if instance is None:
            raise InstanceNotFound(request.instance_id)
        return OperationResult.ok(
            InstanceDetail.from_instance(instance), elapsed_ms=timer.elapsed_ms
        )
    except CadenceError as exc:
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to get instance: {exc}", elapsed_ms=timer.elapsed_ms
        )


def start_instance(
    ctx: OperationContext,
    request: StartInstanceRequest,
) -> OperationResult[InstanceDetail]:
    """Move an instance to ``in_progress`` while its window is open."""
    timer = start_timer()

    if not request.instance_id:
        return OperationResult.fail(
            "VALIDATION_FAILED", "instance_id is required", elapsed_ms=timer.elapsed_ms
        )

    try:
        instance = _manager(ctx).start(request.instance_id, resolve_now(request.now))
        logger.info("instance_started", instance_id=instance.id, user=ctx.user)
        return OperationResult.ok(
            InstanceDetail.from_instance(instance), elapsed_ms=timer.elapsed_ms
        )
    except CadenceError as exc:
        logger.info("instance_action_rejected", action="start", error=exc.message)
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except ValueError as exc:
        return OperationResult.fail("VALIDATION_FAILED", str(exc), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to start instance: {exc}", elapsed_ms=timer.elapsed_ms
        )


def complete_instance(
    ctx: OperationContext,
    request: CompleteInstanceRequest,
) -> OperationResult[InstanceDetail]:
    """Record a submission; late completions are accepted and flagged."""
    timer = start_timer()

    for name in ("instance_id", "submission_id"):
        if not getattr(request, name):
            return OperationResult.fail(
                "VALIDATION_FAILED",
                f"{name} is required",
                details={"field": name},
                elapsed_ms=timer.elapsed_ms,
            )

    try:
        instance = _manager(ctx).complete(
            request.instance_id,
            request.submission_id,
            resolve_now(request.now),
            user=ctx.user,
        )
        logger.info(
            "instance_completed",
            instance_id=instance.id,
            submission_id=instance.submission_id,
            late=instance.is_late,
        )
        warnings = ["Completed after the due time"] if instance.is_late else []
        return OperationResult.ok(
            InstanceDetail.from_instance(instance),
            warnings=warnings,
            elapsed_ms=timer.elapsed_ms,
        )
    except CadenceError as exc:
        logger.info("instance_action_rejected", action="complete", error=exc.message)
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except ValueError as exc:
        return OperationResult.fail("VALIDATION_FAILED", str(exc), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to complete instance: {exc}", elapsed_ms=timer.elapsed_ms
        )


def skip_instance(
    ctx: OperationContext,
    request: SkipInstanceRequest,
) -> OperationResult[InstanceDetail]:
    timer = start_timer()

    if not request.instance_id:
        return OperationResult.fail(
            "VALIDATION_FAILED", "instance_id is required", elapsed_ms=timer.elapsed_ms
        )
    if not request.reason.strip():
        return OperationResult.fail(
            "VALIDATION_FAILED",
            "A reason is required to skip an instance",
            details={"field": "reason"},
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        instance = _manager(ctx).skip(request.instance_id, request.reason)
        logger.info("instance_skipped", instance_id=instance.id, reason=request.reason)
        return OperationResult.ok(
            InstanceDetail.from_instance(instance), elapsed_ms=timer.elapsed_ms
        )
    except CadenceError as exc:
        logger.info("instance_action_rejected", action="skip", error=exc.message)
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to skip instance: {exc}", elapsed_ms=timer.elapsed_ms
        )


def get_my_work(
    ctx: OperationContext,
    request: MyWorkRequest | None = None,
) -> OperationResult[MyWorkResult]:
    """Open instances grouped into overdue, in progress, due and up next."""
    request = request or MyWorkRequest()
    timer = start_timer()

    try:
        now = resolve_now(request.now)
        window = timedelta(minutes=request.up_next_minutes)
        open_instances = _store(ctx).list_instances(
            workspace_id=request.workspace_id,
            statuses=_OPEN_STATUSES,
            scheduled_to=now + window + timedelta(seconds=1),
        )
        if request.assignee is not None:
            open_instances = [i for i in open_instances if request.assignee in i.assigned_to]

        work = group_my_work(open_instances, now, window)
        return OperationResult.ok(
            MyWorkResult(
                overdue=[InstanceSummary.from_instance(i) for i in work.overdue],
                incomplete=[InstanceSummary.from_instance(i) for i in work.incomplete],
                due=[InstanceSummary.from_instance(i) for i in work.due],
                up_next=[InstanceSummary.from_instance(i) for i in work.up_next],
                total_open=work.total_open,
            ),
            elapsed_ms=timer.elapsed_ms,
        )
    except CadenceError as exc:
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except ValueError as exc:
        return OperationResult.fail("VALIDATION_FAILED", str(exc), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to load work: {exc}", elapsed_ms=timer.elapsed_ms
        )
