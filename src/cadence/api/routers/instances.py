"""
Instance router — listing, my-work view, and user actions.

GET    /instances
GET    /instances/my-work
GET    /instances/{instance_id}
PATCH  /instances/{instance_id}     {"action": "start" | "complete" | "skip"}
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Path, Query
from pydantic import BaseModel

from cadence.api.deps import OpContext, Settings
from cadence.api.middleware.errors import problem_response
from cadence.api.schemas.common import PagedResponse, PageMeta, SuccessResponse
from cadence.api.utils import _dc, _handle_error

router = APIRouter(prefix="/instances")


class InstanceActionBody(BaseModel):
    action: Literal["start", "complete", "skip"]
    submission_id: str | None = None
    reason: str | None = None
    now: datetime | None = None


@router.get("", response_model=PagedResponse[dict[str, Any]])
def list_instances(
    ctx: OpContext,
    workspace_id: str | None = Query(None),
    cadence_id: str | None = Query(None),
    form_id: list[str] | None = Query(None),
    status: list[str] | None = Query(None),
    scheduled_from: datetime | None = Query(None),
    scheduled_to: datetime | None = Query(None),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """Instances ordered by ``scheduled_for``; this is the calendar feed."""
    from cadence.ops.instances import list_instances as _list
    from cadence.ops.requests import ListInstancesRequest

    result = _list(
        ctx,
        ListInstancesRequest(
            workspace_id=workspace_id,
            cadence_id=cadence_id,
            form_ids=form_id,
            statuses=status,
            scheduled_from=scheduled_from,
            scheduled_to=scheduled_to,
            limit=limit,
            offset=offset,
        ),
    )
    if not result.success:
        return _handle_error(result)
    return PagedResponse(
        data=[_dc(i) for i in result.data or []],
        page=PageMeta.from_result(result),
        elapsed_ms=result.elapsed_ms,
    )


@router.get("/my-work", response_model=SuccessResponse[dict[str, Any]])
def my_work(
    ctx: OpContext,
    settings: Settings,
    workspace_id: str | None = Query(None),
    assignee: str | None = Query(None),
    up_next_minutes: int | None = Query(None, ge=1),
    now: datetime | None = Query(None),
):
    from cadence.ops.instances import get_my_work
    from cadence.ops.requests import MyWorkRequest

    result = get_my_work(
        ctx,
        MyWorkRequest(
            workspace_id=workspace_id,
            assignee=assignee or ctx.user,
            up_next_minutes=up_next_minutes or settings.up_next_minutes,
            now=now,
        ),
    )
    if not result.success:
        return _handle_error(result)
    return SuccessResponse(data=_dc(result.data), elapsed_ms=result.elapsed_ms)


@router.get("/{instance_id}", response_model=SuccessResponse[dict[str, Any]])
def get_instance(ctx: OpContext, instance_id: str = Path(..., description="Instance ID")):
    from cadence.ops.instances import get_instance as _get
    from cadence.ops.requests import GetInstanceRequest

    result = _get(ctx, GetInstanceRequest(instance_id=instance_id))
    if not result.success:
        return _handle_error(result)
    return SuccessResponse(data=_dc(result.data), elapsed_ms=result.elapsed_ms)


@router.patch("/{instance_id}", response_model=SuccessResponse[dict[str, Any]])
def act_on_instance(
    ctx: OpContext,
    body: InstanceActionBody,
    instance_id: str = Path(..., description="Instance ID"),
):
    """Apply a user action.

    A transition the current status does not allow (starting a missed
    instance, completing a skipped one) answers 409 with the current and
    requested status in the problem body.

    Example:
        PATCH /api/v1/instances/01J...
        {"action": "complete", "submission_id": "sub-42"}
    """
    from cadence.ops import instances as ops
    from cadence.ops.requests import (
        CompleteInstanceRequest,
        SkipInstanceRequest,
        StartInstanceRequest,
    )

    if body.action == "start":
        result = ops.start_instance(ctx, StartInstanceRequest(instance_id=instance_id, now=body.now))
    elif body.action == "complete":
        if not body.submission_id:
            return problem_response(
                status=400,
                title="submission_id is required to complete an instance",
                code="VALIDATION_FAILED",
                errors=[
                    {"code": "VALIDATION_FAILED", "message": "required", "field": "submission_id"}
                ],
            )
        result = ops.complete_instance(
            ctx,
            CompleteInstanceRequest(
                instance_id=instance_id, submission_id=body.submission_id, now=body.now
            ),
        )
    else:
        result = ops.skip_instance(
            ctx, SkipInstanceRequest(instance_id=instance_id, reason=body.reason or "")
        )

    if not result.success:
        return _handle_error(result)
    return SuccessResponse(data=_dc(result.data), elapsed_ms=result.elapsed_ms, warnings=result.warnings)
