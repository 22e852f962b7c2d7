"""Tests for cadence operations."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime

import pytest

from cadence.core.errors import ErrorCategory
from cadence.ops.cadences import (
    create_cadence,
    get_cadence,
    list_cadences,
    preview_cadence,
    set_cadence_active,
    update_cadence,
)
from cadence.ops.context import OperationContext
from cadence.ops.requests import (
    CreateCadenceRequest,
    GetCadenceRequest,
    ListCadencesRequest,
    PreviewCadenceRequest,
    SetCadenceActiveRequest,
    UpdateCadenceRequest,
)
from cadence.scheduling.store import SqlInstanceStore

NOW = datetime(2025, 3, 10, 8, 0, tzinfo=UTC)

SCHEDULE = {
    "pattern": "weekly",
    "time": "09:00",
    "timezone": "UTC",
    "days_of_week": [1, 3, 5],
    "start_date": "2025-03-01",
    "completion_window_hours": 4,
}


@pytest.fixture
def ctx(conn) -> OperationContext:
    return OperationContext(conn=conn, caller="test")


def _create(ctx, **overrides):
    values = {
        "workspace_id": "ws-1",
        "form_id": "form-1",
        "name": "Safety walk",
        "schedule": dict(SCHEDULE),
        "assigned_to": ["alice"],
        "now": NOW,
    }
    values.update(overrides)
    return create_cadence(ctx, CreateCadenceRequest(**values))


class TestCreateCadence:
    def test_creates_and_materializes_two_weeks(self, ctx, conn):
        result = _create(ctx)

        assert result.success, result.error
        detail = result.data
        assert detail.name == "Safety walk"
        assert detail.description == "at 9:00 AM on Monday, Wednesday, Friday (UTC)"
        # Mon/Wed/Fri over [03-10 08:00, 03-24 08:00)
        assert detail.materialized.created == 6
        assert SqlInstanceStore(conn).count_instances(cadence_id=detail.cadence_id) == 6

    def test_inactive_cadence_is_not_materialized(self, ctx, conn):
        result = _create(ctx, is_active=False)

        assert result.success
        assert result.data.materialized is None
        assert SqlInstanceStore(conn).count_instances() == 0

    def test_materialize_can_be_disabled(self, ctx, conn):
        result = _create(ctx, materialize=False)

        assert result.success
        assert SqlInstanceStore(conn).count_instances() == 0

    def test_dry_run_writes_nothing(self, conn):
        ctx = OperationContext(conn=conn, dry_run=True)

        result = _create(ctx)

        assert result.success
        assert list_cadences(ctx).total == 0

    @pytest.mark.parametrize("missing", ["workspace_id", "form_id", "name"])
    def test_required_fields(self, ctx, missing):
        result = _create(ctx, **{missing: ""})

        assert not result.success
        assert result.error.code == "VALIDATION_FAILED"
        assert result.error.details["field"] == missing

    @pytest.mark.parametrize(
        ("change", "field"),
        [
            ({"days_of_week": []}, "days_of_week"),
            ({"timezone": "Nowhere/Land"}, "timezone"),
            ({"time": "25:00"}, "time"),
            ({"completion_window_hours": 0}, "completion_window_hours"),
            ({"completion_window_hours": 2.5}, "completion_window_hours"),
            ({"completion_window_hours": True}, "completion_window_hours"),
            ({"end_date": "2025-01-01"}, "end_date"),
            ({"pattern": "hourly"}, "pattern"),
        ],
    )
    def test_invalid_schedule(self, ctx, change, field):
        result = _create(ctx, schedule={**SCHEDULE, **change})

        assert not result.success
        assert result.error.code == "VALIDATION_FAILED"
        assert result.error.details["field"] == field
        assert list_cadences(ctx).total == 0


class TestReadAndUpdate:
    def test_get(self, ctx):
        created = _create(ctx).data

        result = get_cadence(ctx, GetCadenceRequest(cadence_id=created.cadence_id))

        assert result.success
        assert result.data.schedule["days_of_week"] == [1, 3, 5]

    def test_get_missing(self, ctx):
        result = get_cadence(ctx, GetCadenceRequest(cadence_id="nope"))

        assert result.error.code == "NOT_FOUND"

    def test_locked_database_is_retryable(self):
        class LockedConnection:
            def execute(self, sql, params=()):
                raise sqlite3.OperationalError("database is locked")

        ctx = OperationContext(conn=LockedConnection())

        result = get_cadence(ctx, GetCadenceRequest(cadence_id="cad-1"))

        assert result.error.code == "UNAVAILABLE"
        assert result.error.retryable is True
        assert result.error.category == ErrorCategory.STORAGE

    def test_list_filters_and_pages(self, ctx):
        _create(ctx, name="A")
        _create(ctx, name="B", is_active=False)
        _create(ctx, name="C", workspace_id="ws-2")

        assert list_cadences(ctx).total == 3
        assert list_cadences(ctx, ListCadencesRequest(workspace_id="ws-1")).total == 2
        active = list_cadences(ctx, ListCadencesRequest(active_only=True))
        assert [c.name for c in active.data] == ["A", "C"]
        page = list_cadences(ctx, ListCadencesRequest(limit=1, offset=1))
        assert [c.name for c in page.data] == ["B"]
        assert page.has_more is True

    def test_update_leaves_existing_instances(self, ctx, conn):
        created = _create(ctx).data

        result = update_cadence(
            ctx,
            UpdateCadenceRequest(
                cadence_id=created.cadence_id,
                name="Evening walk",
                schedule={**SCHEDULE, "time": "18:00"},
            ),
        )

        assert result.success
        assert result.data.name == "Evening walk"
        assert result.data.schedule["time"] == "18:00"
        rows = SqlInstanceStore(conn).list_instances(cadence_id=created.cadence_id)
        assert len(rows) == 6
        assert all(r.scheduled_for.hour == 9 for r in rows)

    def test_update_rejects_invalid_schedule(self, ctx):
        created = _create(ctx).data

        result = update_cadence(
            ctx,
            UpdateCadenceRequest(cadence_id=created.cadence_id, schedule={**SCHEDULE, "days_of_week": []}),
        )

        assert result.error.code == "VALIDATION_FAILED"

    def test_update_blank_name(self, ctx):
        created = _create(ctx).data

        result = update_cadence(ctx, UpdateCadenceRequest(cadence_id=created.cadence_id, name="  "))

        assert result.error.code == "VALIDATION_FAILED"

    def test_set_active(self, ctx):
        created = _create(ctx).data

        result = set_cadence_active(
            ctx, SetCadenceActiveRequest(cadence_id=created.cadence_id, active=False)
        )

        assert result.success
        assert result.data.is_active is False
        missing = set_cadence_active(ctx, SetCadenceActiveRequest(cadence_id="nope"))
        assert missing.error.code == "NOT_FOUND"


class TestPreview:
    def test_preview_unsaved_schedule(self, ctx, conn):
        result = preview_cadence(
            ctx, PreviewCadenceRequest(schedule=dict(SCHEDULE), hours=168, now=NOW)
        )

        assert result.success
        assert [o.scheduled_for[:10] for o in result.data.occurrences] == [
            "2025-03-10",
            "2025-03-12",
            "2025-03-14",
        ]
        assert result.data.occurrences[0].due_at.startswith("2025-03-10T13:00")
        assert SqlInstanceStore(conn).count_instances() == 0

    def test_preview_inactive_cadence_warns(self, ctx):
        created = _create(ctx, is_active=False).data

        result = preview_cadence(
            ctx, PreviewCadenceRequest(cadence_id=created.cadence_id, hours=48, now=NOW)
        )

        assert result.success
        assert len(result.data.occurrences) == 1
        assert any("inactive" in w for w in result.warnings)

    def test_preview_local_time_in_schedule_zone(self, ctx):
        schedule = {**SCHEDULE, "timezone": "America/New_York", "days_of_week": [1]}

        result = preview_cadence(ctx, PreviewCadenceRequest(schedule=schedule, hours=168, now=NOW))

        occurrence = result.data.occurrences[0]
        assert occurrence.scheduled_for.startswith("2025-03-10T13:00")
        assert occurrence.local_time.startswith("2025-03-10T09:00:00-04:00")

    @pytest.mark.parametrize(
        "request_kwargs",
        [{}, {"cadence_id": "x", "schedule": SCHEDULE}, {"schedule": SCHEDULE, "hours": 0}],
    )
    def test_preview_argument_errors(self, ctx, request_kwargs):
        result = preview_cadence(ctx, PreviewCadenceRequest(now=NOW, **request_kwargs))

        assert result.error.code == "VALIDATION_FAILED"
