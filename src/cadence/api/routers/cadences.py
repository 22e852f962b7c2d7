"""
Cadence router — definitions and occurrence preview.

GET    /cadences
POST   /cadences
GET    /cadences/{cadence_id}
PATCH  /cadences/{cadence_id}
GET    /cadences/{cadence_id}/preview
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Path, Query
from pydantic import BaseModel, Field

from cadence.api.deps import OpContext
from cadence.api.schemas.common import PagedResponse, PageMeta, SuccessResponse
from cadence.api.utils import _dc, _handle_error

router = APIRouter(prefix="/cadences")


class CreateCadenceBody(BaseModel):
    workspace_id: str
    form_id: str
    name: str
    schedule: dict[str, Any]
    is_active: bool = True
    assigned_to: list[str] = Field(default_factory=list)
    materialize: bool = True


class UpdateCadenceBody(BaseModel):
    name: str | None = None
    schedule: dict[str, Any] | None = None
    is_active: bool | None = None
    assigned_to: list[str] | None = None


@router.get("", response_model=PagedResponse[dict[str, Any]])
def list_cadences(
    ctx: OpContext,
    workspace_id: str | None = Query(None),
    active_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """List cadences, optionally only the active ones of one workspace."""
    from cadence.ops.cadences import list_cadences as _list
    from cadence.ops.requests import ListCadencesRequest

    result = _list(
        ctx,
        ListCadencesRequest(
            workspace_id=workspace_id, active_only=active_only, limit=limit, offset=offset
        ),
    )
    if not result.success:
        return _handle_error(result)
    return PagedResponse(
        data=[_dc(c) for c in result.data or []],
        page=PageMeta.from_result(result),
        elapsed_ms=result.elapsed_ms,
        warnings=result.warnings,
    )


@router.post("", response_model=SuccessResponse[dict[str, Any]], status_code=201)
def create_cadence(ctx: OpContext, body: CreateCadenceBody):
    """Create a cadence.

    An active cadence gets its first two weeks of instances right away,
    so the calendar is populated before the next cron tick.

    Example:
        POST /api/v1/cadences
        {
            "workspace_id": "ws-1",
            "form_id": "form-temp-log",
            "name": "Fridge temperature",
            "schedule": {
                "pattern": "weekly",
                "time": "09:00",
                "timezone": "America/New_York",
                "days_of_week": [1, 3, 5],
                "start_date": "2025-03-01",
                "completion_window_hours": 2
            }
        }
    """
    from cadence.ops.cadences import create_cadence as _create
    from cadence.ops.requests import CreateCadenceRequest

    result = _create(ctx, CreateCadenceRequest(**body.model_dump()))
    if not result.success:
        return _handle_error(result)
    return SuccessResponse(data=_dc(result.data), elapsed_ms=result.elapsed_ms, warnings=result.warnings)


@router.get("/{cadence_id}", response_model=SuccessResponse[dict[str, Any]])
def get_cadence(ctx: OpContext, cadence_id: str = Path(..., description="Cadence ID")):
    from cadence.ops.cadences import get_cadence as _get
    from cadence.ops.requests import GetCadenceRequest

    result = _get(ctx, GetCadenceRequest(cadence_id=cadence_id))
    if not result.success:
        return _handle_error(result)
    return SuccessResponse(data=_dc(result.data), elapsed_ms=result.elapsed_ms)


@router.patch("/{cadence_id}", response_model=SuccessResponse[dict[str, Any]])
def update_cadence(
    ctx: OpContext,
    body: UpdateCadenceBody,
    cadence_id: str = Path(..., description="Cadence ID"),
):
    """Partial update. Instances already materialized are left as they are."""
    from cadence.ops.cadences import update_cadence as _update
    from cadence.ops.requests import UpdateCadenceRequest

    result = _update(ctx, UpdateCadenceRequest(cadence_id=cadence_id, **body.model_dump()))
    if not result.success:
        return _handle_error(result)
    return SuccessResponse(data=_dc(result.data), elapsed_ms=result.elapsed_ms)


@router.get("/{cadence_id}/preview", response_model=SuccessResponse[dict[str, Any]])
def preview_cadence(
    ctx: OpContext,
    cadence_id: str = Path(..., description="Cadence ID"),
    hours: int = Query(336, ge=1, le=24 * 366),
    now: datetime | None = Query(None, description="Horizon start; defaults to the current time"),
):
    """Occurrences the cadence would produce. Nothing is written."""
    from cadence.ops.cadences import preview_cadence as _preview
    from cadence.ops.requests import PreviewCadenceRequest

    result = _preview(ctx, PreviewCadenceRequest(cadence_id=cadence_id, hours=hours, now=now))
    if not result.success:
        return _handle_error(result)
    return SuccessResponse(data=_dc(result.data), elapsed_ms=result.elapsed_ms, warnings=result.warnings)
