"""HTTP API tests via FastAPI's TestClient."""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from cadence.api import create_app
from cadence.api.settings import CadenceAPISettings

PREFIX = "/api/v1"
SECRET = "s3cret"
CRON_HEADERS = {"Authorization": f"Bearer {SECRET}"}

SCHEDULE = {
    "pattern": "daily",
    "time": "09:00",
    "timezone": "UTC",
    "days_of_week": [1, 2, 3, 4, 5, 6, 7],
    "start_date": "2025-03-01",
    "completion_window_hours": 2,
}


@pytest.fixture
def client(db_url) -> Generator[TestClient, None, None]:
    settings = CadenceAPISettings(database_url=db_url, cron_secret=SECRET)
    with TestClient(create_app(settings=settings)) as test_client:
        yield test_client


def _create(client: TestClient, **overrides) -> dict:
    body = {
        "workspace_id": "ws-1",
        "form_id": "form-1",
        "name": "Daily check",
        "schedule": dict(SCHEDULE),
        "assigned_to": ["alice"],
        "materialize": False,
    }
    body.update(overrides)
    response = client.post(f"{PREFIX}/cadences", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _tick(client: TestClient, now: str) -> dict:
    response = client.post(
        f"{PREFIX}/cron/tick", json={"now": now, "lookahead_hours": 48}, headers=CRON_HEADERS
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]


def _instances(client: TestClient, **params) -> list[dict]:
    response = client.get(f"{PREFIX}/instances", params=params)
    assert response.status_code == 200, response.text
    return response.json()["data"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestCadences:
    def test_create_materializes_two_weeks(self, client):
        data = _create(client, materialize=True)

        assert data["description"] == "at 9:00 AM every day (UTC)"
        assert data["materialized"]["created"] == 14
        assert len(_instances(client, cadence_id=data["cadence_id"], limit=100)) == 14

    def test_create_invalid_schedule(self, client):
        body = {
            "workspace_id": "ws-1",
            "form_id": "form-1",
            "name": "Broken",
            "schedule": {**SCHEDULE, "timezone": "Mars/Base"},
        }

        response = client.post(f"{PREFIX}/cadences", json=body)

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/problem+json")
        problem = response.json()
        assert problem["code"] == "VALIDATION_FAILED"
        assert problem["errors"][0]["field"] == "timezone"

    def test_get_list_update(self, client):
        created = _create(client)
        cadence_id = created["cadence_id"]

        assert client.get(f"{PREFIX}/cadences/{cadence_id}").json()["data"]["name"] == "Daily check"
        listing = client.get(f"{PREFIX}/cadences", params={"workspace_id": "ws-1"}).json()
        assert listing["page"]["total"] == 1

        patched = client.patch(f"{PREFIX}/cadences/{cadence_id}", json={"is_active": False})
        assert patched.status_code == 200
        assert patched.json()["data"]["is_active"] is False

    def test_missing_cadence_is_404(self, client):
        response = client.get(f"{PREFIX}/cadences/nope")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_preview(self, client):
        cadence_id = _create(client)["cadence_id"]

        response = client.get(
            f"{PREFIX}/cadences/{cadence_id}/preview",
            params={"hours": 72, "now": "2025-03-10T08:00:00Z"},
        )

        assert response.status_code == 200
        occurrences = response.json()["data"]["occurrences"]
        assert [o["scheduled_for"][:10] for o in occurrences] == ["2025-03-10", "2025-03-11", "2025-03-12"]


class TestCron:
    def test_requires_secret(self, client):
        response = client.post(f"{PREFIX}/cron/tick")

        assert response.status_code == 401
        assert response.json()["status"] == 401

    def test_wrong_secret(self, client):
        response = client.post(f"{PREFIX}/cron/tick", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_tick_is_idempotent(self, client):
        _create(client)

        first = _tick(client, "2025-03-10T08:00:00Z")
        second = _tick(client, "2025-03-10T08:00:00Z")

        assert first["created"] == 2
        assert second["created"] == 0
        assert second["existing"] == 2

    def test_generate_and_update_status(self, client):
        _create(client)

        generated = client.post(
            f"{PREFIX}/cron/generate-instances",
            json={"now": "2025-03-10T08:00:00Z", "lookahead_hours": 24},
            headers=CRON_HEADERS,
        )
        updated = client.post(
            f"{PREFIX}/cron/update-instance-status",
            json={"now": "2025-03-10T11:30:00Z"},
            headers=CRON_HEADERS,
        )

        assert generated.json()["data"]["created"] == 1
        assert updated.json()["data"]["to_missed"] == 1

    def test_open_without_configured_secret(self, db_url):
        settings = CadenceAPISettings(database_url=db_url, cron_secret=None)
        with TestClient(create_app(settings=settings)) as open_client:
            response = open_client.post(
                f"{PREFIX}/cron/update-instance-status", json={"now": "2025-03-10T08:00:00Z"}
            )

        assert response.status_code == 200


class TestInstanceActions:
    @pytest.fixture
    def instance_id(self, client) -> str:
        _create(client)
        _tick(client, "2025-03-10T08:00:00Z")
        return _instances(client, limit=1)[0]["instance_id"]

    def test_start_then_complete(self, client, instance_id):
        started = client.patch(
            f"{PREFIX}/instances/{instance_id}",
            json={"action": "start", "now": "2025-03-10T09:05:00Z"},
        )
        completed = client.patch(
            f"{PREFIX}/instances/{instance_id}",
            json={"action": "complete", "submission_id": "sub-1", "now": "2025-03-10T10:00:00Z"},
            headers={"X-User-Id": "alice"},
        )

        assert started.json()["data"]["status"] == "in_progress"
        body = completed.json()["data"]
        assert body["status"] == "completed"
        assert body["completed_by"] == "alice"

    def test_start_missed_instance_conflicts(self, client, instance_id):
        _tick(client, "2025-03-10T12:00:00Z")

        response = client.patch(
            f"{PREFIX}/instances/{instance_id}",
            json={"action": "start", "now": "2025-03-10T12:05:00Z"},
        )

        assert response.status_code == 409
        problem = response.json()
        assert problem["code"] == "INVALID_TRANSITION"
        assert "missed" in problem["detail"]

    def test_late_completion_is_accepted_with_warning(self, client, instance_id):
        _tick(client, "2025-03-10T09:30:00Z")

        response = client.patch(
            f"{PREFIX}/instances/{instance_id}",
            json={"action": "complete", "submission_id": "sub-1", "now": "2025-03-10T11:30:00Z"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["is_late"] is True
        assert response.json()["warnings"]

    def test_complete_without_submission(self, client, instance_id):
        response = client.patch(f"{PREFIX}/instances/{instance_id}", json={"action": "complete"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "submission_id"

    def test_skip(self, client, instance_id):
        response = client.patch(
            f"{PREFIX}/instances/{instance_id}", json={"action": "skip", "reason": "Closed"}
        )

        assert response.json()["data"]["status"] == "skipped"

    def test_unknown_action_rejected(self, client, instance_id):
        response = client.patch(f"{PREFIX}/instances/{instance_id}", json={"action": "reset"})

        assert response.status_code == 422

    def test_unknown_instance(self, client):
        response = client.patch(f"{PREFIX}/instances/nope", json={"action": "skip", "reason": "x"})

        assert response.status_code == 404

    def test_my_work_uses_user_header(self, client, instance_id):
        response = client.get(
            f"{PREFIX}/instances/my-work",
            params={"now": "2025-03-10T09:30:00Z"},
            headers={"X-User-Id": "alice"},
        )

        assert response.status_code == 200
        assert [i["instance_id"] for i in response.json()["data"]["due"]] == [instance_id]

        other = client.get(
            f"{PREFIX}/instances/my-work",
            params={"now": "2025-03-10T09:30:00Z"},
            headers={"X-User-Id": "bob"},
        )
        assert other.json()["data"]["total_open"] == 0

    def test_list_by_status(self, client, instance_id):
        assert len(_instances(client, status="pending")) == 2
        assert _instances(client, status="missed") == []

        response = client.get(f"{PREFIX}/instances", params={"status": "bogus"})
        assert response.status_code == 400


class TestMetrics:
    def test_metrics_with_adhoc(self, client):
        _create(client)
        _tick(client, "2025-03-10T08:00:00Z")
        _tick(client, "2025-03-11T12:00:00Z")

        response = client.post(
            f"{PREFIX}/metrics",
            json={
                "range_start": "2025-03-10T00:00:00Z",
                "range_end": "2025-03-12T00:00:00Z",
                "adhoc": [
                    {"submission_id": "s-1", "form_id": "form-x", "submitted_at": "2025-03-10T15:00:00Z"}
                ],
            },
        )

        assert response.status_code == 200
        metrics = response.json()["data"]["metrics"]
        assert metrics["total_instances"] == 3
        assert metrics["missed"] == 2
        assert metrics["completed"] == 1

    def test_metrics_bad_range(self, client):
        response = client.post(
            f"{PREFIX}/metrics",
            json={"range_start": "2025-03-12T00:00:00Z", "range_end": "2025-03-10T00:00:00Z"},
        )

        assert response.status_code == 400
