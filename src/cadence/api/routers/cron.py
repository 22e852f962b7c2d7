"""
Cron router — entry points for the external periodic trigger.

POST   /cron/generate-instances
POST   /cron/update-instance-status
POST   /cron/tick

Each route is idempotent: the trigger may fire twice for the same window
(retries, overlapping schedules) without creating duplicates. When
``CADENCE_CRON_SECRET`` is set, callers must send it as a Bearer token.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from cadence.api.deps import CronAuth, OpContext, Settings
from cadence.api.schemas.common import SuccessResponse
from cadence.api.utils import _dc, _handle_error

router = APIRouter(prefix="/cron", dependencies=[CronAuth])


class CronBody(BaseModel):
    now: datetime | None = None
    lookahead_hours: int | None = Field(default=None, gt=0)


def _respond(result):
    if not result.success:
        return _handle_error(result)
    return SuccessResponse(data=_dc(result.data), elapsed_ms=result.elapsed_ms, warnings=result.warnings)


@router.post("/generate-instances", response_model=SuccessResponse[dict[str, Any]])
def generate_instances(ctx: OpContext, settings: Settings, body: CronBody | None = None):
    """Materialize the lookahead horizon for every active cadence."""
    from cadence.ops.requests import GenerateInstancesRequest
    from cadence.ops.scheduler import generate_instances as _generate

    body = body or CronBody()
    request = GenerateInstancesRequest(
        now=body.now, lookahead_hours=body.lookahead_hours or settings.lookahead_hours
    )
    return _respond(_generate(ctx, request))


@router.post("/update-instance-status", response_model=SuccessResponse[dict[str, Any]])
def update_instance_status(ctx: OpContext, body: CronBody | None = None):
    """Apply ``pending → ready`` and ``→ missed`` transitions."""
    from cadence.ops.requests import UpdateStatusesRequest
    from cadence.ops.scheduler import update_instance_statuses

    body = body or CronBody()
    return _respond(update_instance_statuses(ctx, UpdateStatusesRequest(now=body.now)))


@router.post("/tick", response_model=SuccessResponse[dict[str, Any]])
def tick(ctx: OpContext, settings: Settings, body: CronBody | None = None):
    """Both passes in one call, materialize first."""
    from cadence.ops.requests import TickRequest
    from cadence.ops.scheduler import run_tick

    body = body or CronBody()
    request = TickRequest(
        now=body.now, lookahead_hours=body.lookahead_hours or settings.lookahead_hours
    )
    return _respond(run_tick(ctx, request))
