"""Tests for instance operations and their error codes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cadence.ops.context import OperationContext
from cadence.ops.instances import (
    complete_instance,
    get_instance,
    get_my_work,
    list_instances,
    skip_instance,
    start_instance,
)
from cadence.ops.requests import (
    CompleteInstanceRequest,
    GetInstanceRequest,
    ListInstancesRequest,
    MyWorkRequest,
    SkipInstanceRequest,
    StartInstanceRequest,
)
from cadence.scheduling.models import InstanceStatus


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


@pytest.fixture
def ctx(conn) -> OperationContext:
    return OperationContext(conn=conn, caller="test", user="alice")


@pytest.fixture
def instance(store, make_instance):
    instance = make_instance(assigned_to=["alice"])
    store.insert_if_absent(instance)
    return instance


class TestQueries:
    def test_list_and_filter(self, ctx, store, make_instance, instance):
        store.insert_if_absent(
            make_instance(scheduled_for=utc(2025, 3, 11, 9), status=InstanceStatus.MISSED)
        )

        everything = list_instances(ctx)
        missed = list_instances(ctx, ListInstancesRequest(statuses=["missed"]))

        assert everything.total == 2
        assert [i.status for i in everything.data] == ["pending", "missed"]
        assert missed.total == 1

    def test_list_unknown_status(self, ctx):
        result = list_instances(ctx, ListInstancesRequest(statuses=["done"]))

        assert result.error.code == "VALIDATION_FAILED"
        assert "done" in result.error.message

    def test_get(self, ctx, instance):
        result = get_instance(ctx, GetInstanceRequest(instance_id=instance.id))

        assert result.success
        assert result.data.instance_id == instance.id
        assert result.data.scheduled_for == "2025-03-10T09:00:00.000000+00:00"

    def test_get_missing(self, ctx):
        assert get_instance(ctx, GetInstanceRequest(instance_id="nope")).error.code == "NOT_FOUND"


class TestActions:
    def test_start(self, ctx, instance):
        result = start_instance(
            ctx, StartInstanceRequest(instance_id=instance.id, now=utc(2025, 3, 10, 9, 5))
        )

        assert result.success
        assert result.data.status == "in_progress"
        assert result.data.started_at.startswith("2025-03-10T09:05")

    def test_start_after_due_is_invalid_transition(self, ctx, instance):
        result = start_instance(
            ctx, StartInstanceRequest(instance_id=instance.id, now=utc(2025, 3, 10, 12))
        )

        assert not result.success
        assert result.error.code == "INVALID_TRANSITION"
        assert result.error.details["current"] == "pending"
        assert result.error.details["target"] == "in_progress"
        assert result.error.details["instance_id"] == instance.id

    def test_complete_records_user(self, ctx, instance):
        result = complete_instance(
            ctx,
            CompleteInstanceRequest(
                instance_id=instance.id, submission_id="sub-1", now=utc(2025, 3, 10, 10)
            ),
        )

        assert result.success
        assert result.data.completed_by == "alice"
        assert result.data.is_late is False
        assert result.warnings == []

    def test_late_complete_warns(self, ctx, instance):
        result = complete_instance(
            ctx,
            CompleteInstanceRequest(
                instance_id=instance.id, submission_id="sub-1", now=utc(2025, 3, 10, 11, 30)
            ),
        )

        assert result.success
        assert result.data.is_late is True
        assert result.warnings

    def test_complete_requires_submission(self, ctx, instance):
        result = complete_instance(ctx, CompleteInstanceRequest(instance_id=instance.id))

        assert result.error.code == "VALIDATION_FAILED"
        assert result.error.details["field"] == "submission_id"

    def test_second_completion_conflicts(self, ctx, instance):
        request = CompleteInstanceRequest(
            instance_id=instance.id, submission_id="sub-1", now=utc(2025, 3, 10, 10)
        )
        complete_instance(ctx, request)

        again = complete_instance(ctx, request)

        assert again.error.code == "INVALID_TRANSITION"
        assert again.error.details["current"] == "completed"

    def test_skip(self, ctx, instance):
        result = skip_instance(ctx, SkipInstanceRequest(instance_id=instance.id, reason="Closed"))

        assert result.success
        assert result.data.skip_reason == "Closed"

    def test_skip_requires_reason(self, ctx, instance):
        result = skip_instance(ctx, SkipInstanceRequest(instance_id=instance.id, reason=" "))

        assert result.error.code == "VALIDATION_FAILED"

    def test_naive_now_is_validation_error(self, ctx, instance):
        result = start_instance(
            ctx, StartInstanceRequest(instance_id=instance.id, now=datetime(2025, 3, 10, 9))
        )

        assert result.error.code == "VALIDATION_FAILED"

    def test_unknown_instance(self, ctx):
        result = skip_instance(ctx, SkipInstanceRequest(instance_id="nope", reason="x"))

        assert result.error.code == "NOT_FOUND"


class TestMyWork:
    def test_groups_for_assignee(self, ctx, store, make_instance):
        now = utc(2025, 3, 10, 10)
        rows = {
            "overdue": make_instance(scheduled_for=utc(2025, 3, 10, 6), assigned_to=["alice"],
                                     status=InstanceStatus.READY),
            "due": make_instance(scheduled_for=utc(2025, 3, 10, 9), assigned_to=["alice"],
                                 status=InstanceStatus.READY),
            "up_next": make_instance(scheduled_for=utc(2025, 3, 10, 10, 45), assigned_to=["alice"]),
            "later": make_instance(scheduled_for=now + timedelta(hours=5), assigned_to=["alice"]),
            "other": make_instance(scheduled_for=utc(2025, 3, 10, 9, 30), assigned_to=["bob"],
                                   cadence_id="cad-2", status=InstanceStatus.READY),
        }
        for row in rows.values():
            store.insert_if_absent(row)

        result = get_my_work(ctx, MyWorkRequest(assignee="alice", now=now))

        assert result.success
        work = result.data
        assert [i.instance_id for i in work.overdue] == [rows["overdue"].id]
        assert [i.instance_id for i in work.due] == [rows["due"].id]
        assert [i.instance_id for i in work.up_next] == [rows["up_next"].id]
        assert work.incomplete == []
        assert work.total_open == 2

    def test_everyone(self, ctx, store, make_instance):
        store.insert_if_absent(
            make_instance(assigned_to=["bob"], status=InstanceStatus.READY)
        )

        result = get_my_work(ctx, MyWorkRequest(now=utc(2025, 3, 10, 9, 30)))

        assert len(result.data.due) == 1
