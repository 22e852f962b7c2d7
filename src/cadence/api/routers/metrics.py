"""
Metrics router.

POST   /metrics
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from cadence.api.deps import OpContext
from cadence.api.schemas.common import SuccessResponse
from cadence.api.utils import _dc, _handle_error

router = APIRouter(prefix="/metrics")


class AdHocBody(BaseModel):
    submission_id: str
    form_id: str
    submitted_at: datetime
    cadence_id: str | None = None


class MetricsBody(BaseModel):
    range_start: datetime | None = None
    range_end: datetime | None = None
    workspace_id: str | None = None
    cadence_ids: list[str] | None = None
    statuses: list[str] | None = None
    adhoc: list[AdHocBody] = Field(default_factory=list)


@router.post("", response_model=SuccessResponse[dict[str, Any]])
def compute_metrics(ctx: OpContext, body: MetricsBody):
    """Completion metrics for a date range.

    Ad-hoc submissions live outside this service, so the caller passes
    them in; they count as completed work next to the scheduled instances.

    Example:
        POST /api/v1/metrics
        {"range_start": "2025-03-01T00:00:00Z", "range_end": "2025-04-01T00:00:00Z"}

        Response:
        {"data": {"metrics": {"total_instances": 31, "completed": 28, ...}}}
    """
    from cadence.ops.metrics import compute_metrics as _compute
    from cadence.ops.requests import AdHocSubmission, ComputeMetricsRequest

    request = ComputeMetricsRequest(
        range_start=body.range_start,
        range_end=body.range_end,
        workspace_id=body.workspace_id,
        cadence_ids=body.cadence_ids,
        statuses=body.statuses,
        adhoc=[AdHocSubmission(**a.model_dump()) for a in body.adhoc],
    )
    result = _compute(ctx, request)
    if not result.success:
        return _handle_error(result)
    return SuccessResponse(data=_dc(result.data), elapsed_ms=result.elapsed_ms, warnings=result.warnings)
