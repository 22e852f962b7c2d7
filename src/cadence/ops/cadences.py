"""
Cadence operations.

CRUD for cadence definitions plus occurrence preview. Creating an active
cadence immediately materializes its first two weeks of instances so the
calendar is populated before the next scheduler tick.
"""

from __future__ import annotations

import dataclasses
from datetime import timedelta

from cadence.core.errors import CadenceError, CadenceNotFound
from cadence.core.logging import get_logger
from cadence.core.settings import get_settings
from cadence.core.timestamps import generate_id, resolve_now, to_iso8601
from cadence.ops.context import OperationContext
from cadence.ops.requests import (
    CreateCadenceRequest,
    GetCadenceRequest,
    ListCadencesRequest,
    PreviewCadenceRequest,
    SetCadenceActiveRequest,
    UpdateCadenceRequest,
)
from cadence.ops.responses import (
    CadenceDetail,
    CadenceSummary,
    MaterializeSummary,
    OccurrencePreview,
    PreviewResult,
)
from cadence.ops.result import OperationResult, PagedResult, start_timer
from cadence.scheduling.describe import describe_schedule
from cadence.scheduling.expander import RecurrenceExpander
from cadence.scheduling.lifecycle import InstanceLifecycleManager
from cadence.scheduling.models import Cadence, Schedule
from cadence.scheduling.recurrence import resolve_zone
from cadence.scheduling.store import CadenceRepository, SqlInstanceStore

logger = get_logger(__name__)


def _repo(ctx: OperationContext) -> CadenceRepository:
    return CadenceRepository(ctx.conn, ctx.dialect)


def _manager(ctx: OperationContext) -> InstanceLifecycleManager:
    return InstanceLifecycleManager(SqlInstanceStore(ctx.conn, ctx.dialect))


def _parse_schedule(data: dict) -> Schedule:
    schedule = Schedule.from_dict(data)
    schedule.validate()
    return schedule


def _require(ctx: OperationContext, cadence_id: str) -> Cadence:
    cadence = _repo(ctx).get(cadence_id)
    if cadence is None:
        raise CadenceNotFound(cadence_id)
    return cadence


def create_cadence(
    ctx: OperationContext,
    request: CreateCadenceRequest,
) -> OperationResult[CadenceDetail]:
    """Validate, persist, and (optionally) materialize a new cadence."""
    timer = start_timer()

    for name in ("workspace_id", "form_id", "name"):
        if not getattr(request, name):
            return OperationResult.fail(
                "VALIDATION_FAILED",
                f"{name} is required",
                details={"field": name},
                elapsed_ms=timer.elapsed_ms,
            )

    try:
        now = resolve_now(request.now)
        cadence = Cadence(
            id=generate_id(),
            workspace_id=request.workspace_id,
            form_id=request.form_id,
            name=request.name,
            schedule=_parse_schedule(request.schedule),
            is_active=request.is_active,
            assigned_to=list(request.assigned_to),
            created_at=now,
            updated_at=now,
        )

        if ctx.dry_run:
            return OperationResult.ok(
                CadenceDetail.from_cadence(cadence), elapsed_ms=timer.elapsed_ms
            )

        stored = _repo(ctx).create(cadence)
        materialized = None
        if request.materialize and stored.is_active:
            horizon = timedelta(hours=get_settings().creation_lookahead_hours)
            report = _manager(ctx).materialize(stored, now, now + horizon, now)
            materialized = MaterializeSummary.from_report(report)

        logger.info(
            "cadence_created",
            cadence_id=stored.id,
            workspace_id=stored.workspace_id,
            instances_created=materialized.created if materialized else 0,
        )
        return OperationResult.ok(
            CadenceDetail.from_cadence(stored, materialized),
            elapsed_ms=timer.elapsed_ms,
        )
    except CadenceError as exc:
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except ValueError as exc:
        return OperationResult.fail("VALIDATION_FAILED", str(exc), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to create cadence: {exc}", elapsed_ms=timer.elapsed_ms
        )


def get_cadence(
    ctx: OperationContext,
    request: GetCadenceRequest,
) -> OperationResult[CadenceDetail]:
    timer = start_timer()

    if not request.cadence_id:
        return OperationResult.fail(
            "VALIDATION_FAILED", "cadence_id is required", elapsed_ms=timer.elapsed_ms
        )

    try:
        cadence = _require(ctx, request.cadence_id)
        return OperationResult.ok(CadenceDetail.from_cadence(cadence), elapsed_ms=timer.elapsed_ms)
    except CadenceError as exc:
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to get cadence: {exc}", elapsed_ms=timer.elapsed_ms
        )


def list_cadences(
    ctx: OperationContext,
    request: ListCadencesRequest | None = None,
) -> PagedResult[CadenceSummary]:
    """List cadences, optionally only the active ones of one workspace."""
    request = request or ListCadencesRequest()
    timer = start_timer()

    try:
        cadences = _repo(ctx).list_all(request.workspace_id)
        if request.active_only:
            cadences = [c for c in cadences if c.is_active]
        page = cadences[request.offset : request.offset + request.limit]
        return PagedResult.from_items(
            [CadenceSummary.from_cadence(c) for c in page],
            total=len(cadences),
            limit=request.limit,
            offset=request.offset,
            elapsed_ms=timer.elapsed_ms,
        )
    except CadenceError as exc:
        return PagedResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return PagedResult.fail(
            "INTERNAL", f"Failed to list cadences: {exc}", elapsed_ms=timer.elapsed_ms
        )


def update_cadence(
    ctx: OperationContext,
    request: UpdateCadenceRequest,
) -> OperationResult[CadenceDetail]:
    """Edit a cadence.

    Instances already materialized are history and stay as they are; a
    new schedule only shapes occurrences materialized from now on.
    """
    timer = start_timer()

    if not request.cadence_id:
        return OperationResult.fail(
            "VALIDATION_FAILED", "cadence_id is required", elapsed_ms=timer.elapsed_ms
        )
    if request.name is not None and not request.name.strip():
        return OperationResult.fail(
            "VALIDATION_FAILED", "name must not be empty", elapsed_ms=timer.elapsed_ms
        )

    try:
        cadence = _require(ctx, request.cadence_id)
        changes: dict = {}
        if request.name is not None:
            changes["name"] = request.name
        if request.schedule is not None:
            changes["schedule"] = _parse_schedule(request.schedule)
        if request.is_active is not None:
            changes["is_active"] = request.is_active
        if request.assigned_to is not None:
            changes["assigned_to"] = list(request.assigned_to)
        updated = dataclasses.replace(cadence, **changes)

        if ctx.dry_run:
            return OperationResult.ok(
                CadenceDetail.from_cadence(updated), elapsed_ms=timer.elapsed_ms
            )

        stored = _repo(ctx).update(updated)
        if stored is None:
            raise CadenceNotFound(request.cadence_id)
        logger.info("cadence_updated", cadence_id=stored.id, fields=sorted(changes))
        return OperationResult.ok(CadenceDetail.from_cadence(stored), elapsed_ms=timer.elapsed_ms)
    except CadenceError as exc:
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to update cadence: {exc}", elapsed_ms=timer.elapsed_ms
        )


def set_cadence_active(
    ctx: OperationContext,
    request: SetCadenceActiveRequest,
) -> OperationResult[CadenceDetail]:
    """Activate or deactivate a cadence. Existing instances are not touched."""
    timer = start_timer()

    try:
        if not _repo(ctx).set_active(request.cadence_id, request.active):
            raise CadenceNotFound(request.cadence_id)
        cadence = _require(ctx, request.cadence_id)
        logger.info("cadence_active_changed", cadence_id=cadence.id, active=request.active)
        return OperationResult.ok(CadenceDetail.from_cadence(cadence), elapsed_ms=timer.elapsed_ms)
    except CadenceError as exc:
        return OperationResult.from_exception(exc, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL", f"Failed to change cadence state: {exc}", elapsed_ms=timer.elapsed_ms
        )


def preview_cadence(
    ctx: OperationContext,
    request: PreviewCadenceRequest,
) -> OperationResult[PreviewResult]:
    """Occurrences in ``[now, now + hours)``. Nothing is written."""
    timer = start_timer()

    if (request.cadence_id is None) == (request.schedule is None):
        return OperationResult.fail(
            "VALIDATION_FAILED",
            "Exactly one of cadence_id or schedule is required",
            elapsed_ms=timer.elapsed_ms,
        )
    if request.hours <= 0:
        return OperationResult.fail(
            "VALIDATION_FAILED", "hours must be positive", elapsed_ms=timer.elapsed_ms
        )

    try:
        now = resolve_now(request.now)
        warnings: list[str] = []
        if request.cadence_id is not None:
            cadence = _require(ctx, request.cadence_id)
            if not cadence.is_active:
                warnings.append("Cadence is inactive; no instances will be materialized")
        else:
            cadence = Cadence(
                id="preview",
                workspace_id="",
                form_id="",
                name="preview",
                schedule=_parse_schedule(request.schedule or {}),
            )

        schedule = cadence.schedule
        zone = resolve_zone(schedule.timezone)
        end = now + timedelta(hours=request.hours)
        instants = RecurrenceExpander().expand(
            dataclasses.replace(cadence, is_active=True), now, end
        )
        occurrences = [
            OccurrencePreview(
                scheduled_for=to_iso8601(at),
                due_at=to_iso8601(at + schedule.completion_window),
                local_time=at.astimezone(zone).isoformat(),
            )
            for at in instants
        ]
        return OperationResult.ok(
            PreviewResult(
                cadence_id=request.cadence_id,
                description=describe_schedule(schedule),
                horizon_start=to_iso8601(now),
                horizon_end=to_iso8601(end),
                occurrences=occurrences,
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
            "INTERNAL", f"Failed to preview cadence: {exc}", elapsed_ms=timer.elapsed_ms
        )
