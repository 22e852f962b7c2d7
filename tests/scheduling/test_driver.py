"""Tests for SchedulerDriver ticks and the run loop."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from cadence.core.errors import StoreError
from cadence.scheduling.driver import SchedulerDriver, TickResult
from cadence.scheduling.lifecycle import InstanceLifecycleManager
from cadence.scheduling.models import InstanceStatus

NOW = datetime(2025, 3, 10, 8, 0, tzinfo=UTC)


def _insert_raw_cadence(conn, cadence_id: str, schedule: str) -> None:
    conn.execute(
        "INSERT INTO cadences (id, workspace_id, form_id, name, schedule, is_active, "
        "assigned_to, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (cadence_id, "ws-1", "form-1", cadence_id, schedule, 1, "[]",
         "2025-03-01T00:00:00.000000+00:00", "2025-03-01T00:00:00.000000+00:00"),
    )
    conn.commit()


class ExplodingManager(InstanceLifecycleManager):
    """Materialization fails for one cadence id."""

    def __init__(self, store, bad_id: str) -> None:
        super().__init__(store)
        self.bad_id = bad_id

    def materialize(self, cadence, horizon_start, horizon_end, now):
        if cadence.id == self.bad_id:
            raise StoreError("disk full")
        return super().materialize(cadence, horizon_start, horizon_end, now)


class TestRunOnce:
    def test_materializes_and_advances(self, repo, manager, store, make_cadence):
        repo.create(make_cadence(id="cad-1"))
        repo.create(make_cadence(id="cad-2", days_of_week=[2]))  # Tuesdays
        driver = SchedulerDriver(repo, manager, lookahead_hours=48)

        result = driver.run_once(NOW)

        assert result.cadences == 2
        assert result.created == 3
        assert result.existing == 0
        assert result.advance is not None and result.advance.examined == 3
        assert store.count_instances() == 3

    def test_tick_is_idempotent(self, repo, manager, store, make_cadence):
        repo.create(make_cadence())
        driver = SchedulerDriver(repo, manager)

        driver.run_once(NOW)
        second = driver.run_once(NOW)

        assert second.created == 0
        assert second.existing == 2
        assert second.advance.advanced == 0
        assert store.count_instances() == 2

    def test_inactive_cadences_are_skipped(self, repo, manager, store, make_cadence):
        repo.create(make_cadence(is_active=False))

        result = SchedulerDriver(repo, manager).run_once(NOW)

        assert result.cadences == 0
        assert store.count_instances() == 0

    def test_later_tick_advances_existing_rows(self, repo, manager, store, make_cadence):
        repo.create(make_cadence())
        driver = SchedulerDriver(repo, manager)
        driver.run_once(NOW)

        result = driver.run_once(NOW + timedelta(hours=4))

        assert result.advance.to_missed == 1
        assert store.list_instances()[0].status == InstanceStatus.MISSED

    def test_invalid_schedule_does_not_stop_the_tick(self, conn, repo, manager, store, make_cadence):
        repo.create(make_cadence(id="good"))
        schedule = make_cadence().schedule.to_dict()
        schedule["days_of_week"] = []
        _insert_raw_cadence(conn, "empty-days", json.dumps(schedule))
        _insert_raw_cadence(conn, "garbage", "not json")

        result = SchedulerDriver(repo, manager).run_once(NOW)

        assert set(result.invalid_cadences) == {"empty-days", "garbage"}
        assert result.created == 2
        assert store.count_instances(cadence_id="good") == 2

    def test_store_failure_is_recorded_per_cadence(self, repo, store, make_cadence):
        repo.create(make_cadence(id="ok"))
        repo.create(make_cadence(id="broken"))
        driver = SchedulerDriver(repo, ExplodingManager(store, "broken"))

        result = driver.run_once(NOW)

        assert result.failed_cadences == {"broken": "disk full"}
        assert store.count_instances(cadence_id="ok") == 2

    def test_to_dict(self, repo, manager, make_cadence):
        repo.create(make_cadence())

        data = SchedulerDriver(repo, manager).run_once(NOW).to_dict()

        assert data["now"] == "2025-03-10T08:00:00.000000+00:00"
        assert data["created"] == 2
        assert data["advance"]["examined"] == 2

    def test_naive_now_rejected(self, repo, manager):
        with pytest.raises(ValueError):
            SchedulerDriver(repo, manager).run_once(datetime(2025, 3, 10, 8))

    @pytest.mark.parametrize("hours", [0, -5])
    def test_lookahead_must_be_positive(self, repo, manager, hours):
        with pytest.raises(ValueError, match="lookahead_hours"):
            SchedulerDriver(repo, manager, lookahead_hours=hours)


class TestRunLoop:
    def test_run_forever_honours_max_ticks(self, repo, manager, make_cadence):
        repo.create(make_cadence())
        driver = SchedulerDriver(repo, manager)
        clock_values = iter([NOW, NOW + timedelta(hours=2), NOW + timedelta(hours=4)])
        ticks: list[TickResult] = []

        driver.run_forever(0, max_ticks=3, clock=lambda: next(clock_values), on_tick=ticks.append)

        assert len(ticks) == 3
        assert driver.stats.tick_count == 3
        assert driver.stats.ticks_failed == 0
        assert ticks[1].advance.to_ready == 1
        assert ticks[2].advance.to_missed == 1

    def test_failing_tick_is_counted_and_loop_continues(self, repo, manager):
        driver = SchedulerDriver(repo, manager)
        clock_values = iter([datetime(2025, 3, 10), NOW])
        ticks: list[TickResult] = []

        driver.run_forever(0, max_ticks=2, clock=lambda: next(clock_values), on_tick=ticks.append)

        assert driver.stats.tick_count == 2
        assert driver.stats.ticks_failed == 1
        assert "timezone-aware" in driver.stats.last_error
        assert len(ticks) == 1

    def test_start_and_stop(self, repo, manager):
        driver = SchedulerDriver(repo, manager)

        driver.start(3600)
        try:
            assert driver.is_running
        finally:
            driver.stop()

        assert not driver.is_running
        assert driver.stats.tick_count >= 1
