"""Tests for the metrics operation."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from cadence.ops.context import OperationContext
from cadence.ops.metrics import compute_metrics
from cadence.ops.requests import AdHocSubmission, ComputeMetricsRequest
from cadence.scheduling.models import InstanceStatus


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


@pytest.fixture
def ctx(conn) -> OperationContext:
    return OperationContext(conn=conn)


@pytest.fixture
def seeded(repo, store, make_cadence, make_instance):
    cadence = repo.create(make_cadence(id="cad-1", name="Opening"))
    done = make_instance(
        cadence_id="cad-1", scheduled_for=utc(2025, 3, 10, 9), status=InstanceStatus.COMPLETED
    )
    done.completed_at = utc(2025, 3, 10, 9, 30)
    for row in (
        done,
        make_instance(cadence_id="cad-1", scheduled_for=utc(2025, 3, 11, 9),
                      status=InstanceStatus.MISSED),
        make_instance(cadence_id="cad-1", scheduled_for=utc(2025, 3, 20, 9)),
    ):
        store.insert_if_absent(row)
    return cadence


def test_range_selects_by_scheduled_for(ctx, seeded):
    result = compute_metrics(
        ctx, ComputeMetricsRequest(range_start=utc(2025, 3, 10), range_end=utc(2025, 3, 12))
    )

    assert result.success
    metrics = result.data.metrics
    assert metrics["total_instances"] == 2
    assert metrics["completion_rate"] == 50.0
    breakdown = metrics["by_cadence"][0]
    assert breakdown["cadence_name"] == "Opening"
    assert breakdown["avg_completion_time_minutes"] == 30.0
    assert result.data.range_start == "2025-03-10T00:00:00.000000+00:00"


def test_adhoc_submissions_are_merged(ctx, seeded):
    result = compute_metrics(
        ctx,
        ComputeMetricsRequest(
            range_start=utc(2025, 3, 10),
            range_end=utc(2025, 3, 12),
            adhoc=[AdHocSubmission("sub-9", "form-9", utc(2025, 3, 10, 14))],
        ),
    )

    metrics = result.data.metrics
    assert metrics["total_instances"] == 3
    assert metrics["completed"] == 2
    assert metrics["by_cadence"][-1]["form_id"] == "form-9"


def test_empty_range(ctx):
    result = compute_metrics(
        ctx, ComputeMetricsRequest(range_start=utc(2025, 1, 1), range_end=utc(2025, 1, 2))
    )

    assert result.success
    assert result.data.metrics["total_instances"] == 0
    assert result.data.metrics["completion_rate"] == 0.0


def test_unknown_cadence_id_warns(ctx, seeded):
    result = compute_metrics(ctx, ComputeMetricsRequest(cadence_ids=["cad-1", "ghost"]))

    assert result.success
    assert result.warnings == ["Cadence ghost not found"]
    assert result.data.metrics["total_instances"] == 3


def test_status_filter(ctx, seeded):
    result = compute_metrics(ctx, ComputeMetricsRequest(statuses=["missed"]))

    assert result.data.metrics["total_instances"] == 1


@pytest.mark.parametrize(
    "request_kwargs",
    [
        {"statuses": ["finished"]},
        {"range_start": utc(2025, 3, 12), "range_end": utc(2025, 3, 10)},
        {"range_start": datetime(2025, 3, 10)},
        {"adhoc": [AdHocSubmission("s", "f", datetime(2025, 3, 10))]},
    ],
)
def test_invalid_requests(ctx, request_kwargs):
    result = compute_metrics(ctx, ComputeMetricsRequest(**request_kwargs))

    assert result.error.code == "VALIDATION_FAILED"

