"""
Shared pytest fixtures for cadence-core tests.

This module provides:
- An in-memory database with the schema applied
- Store, repository and lifecycle-manager fixtures bound to it
- ``make_cadence`` / ``make_instance`` factories with sensible defaults
- A fixed reference clock (``NOW``)

Usage:
    def test_something(manager, make_cadence):
        cadence = make_cadence(days_of_week=[1, 3, 5])
        ...
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Generator
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

# Ensure cadence package is importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cadence.core.connection import create_connection
from cadence.core.logging import configure_logging
from cadence.core.timestamps import generate_id
from cadence.scheduling.lifecycle import InstanceLifecycleManager
from cadence.scheduling.models import (
    Cadence,
    Instance,
    InstanceStatus,
    Schedule,
    SchedulePattern,
)
from cadence.scheduling.store import CadenceRepository, SqlInstanceStore

# Quiet, plain logs for the whole session; the CLI keeps this configuration.
configure_logging(level="WARNING", json_format=False, add_timestamp=False)

#: Monday 2025-03-10 08:00 UTC
NOW = datetime(2025, 3, 10, 8, 0, tzinfo=UTC)


def utc(*args: int) -> datetime:
    """``utc(2025, 3, 10, 9)`` → aware UTC datetime."""
    return datetime(*args, tzinfo=UTC)


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark CLI and API tests as integration, the rest as unit."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if test_path.parts and test_path.parts[0] in ("cli", "api"):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def conn() -> Generator[Any, None, None]:
    """In-memory SQLite connection with the cadence schema."""
    connection, _info = create_connection("memory", init_schema=True)
    yield connection
    connection.close()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """URL of a file database with the schema applied.

    Use this when several connections (threads, CLI invocations, API
    requests) must see the same data.
    """
    url = f"sqlite:///{tmp_path / 'cadence.db'}"
    connection, _info = create_connection(url, init_schema=True)
    connection.close()
    return url


@pytest.fixture
def store(conn) -> SqlInstanceStore:
    return SqlInstanceStore(conn)


@pytest.fixture
def repo(conn) -> CadenceRepository:
    return CadenceRepository(conn)


@pytest.fixture
def manager(store) -> InstanceLifecycleManager:
    return InstanceLifecycleManager(store)


# =============================================================================
# Factories
# =============================================================================


def build_schedule(**overrides: Any) -> Schedule:
    """Daily 09:00 UTC, every day, two-hour window, from 2025-03-01."""
    values: dict[str, Any] = {
        "pattern": SchedulePattern.DAILY,
        "time": "09:00",
        "timezone": "UTC",
        "start_date": date(2025, 3, 1),
        "completion_window_hours": 2,
        "days_of_week": frozenset(range(1, 8)),
        "end_date": None,
    }
    values.update(overrides)
    if isinstance(values["pattern"], str):
        values["pattern"] = SchedulePattern(values["pattern"])
    values["days_of_week"] = frozenset(values["days_of_week"])
    return Schedule(**values)


@pytest.fixture
def make_cadence() -> Callable[..., Cadence]:
    """Factory for cadences; schedule fields may be passed directly."""
    schedule_fields = set(Schedule.__dataclass_fields__)

    def _make(**overrides: Any) -> Cadence:
        schedule_overrides = {k: overrides.pop(k) for k in list(overrides) if k in schedule_fields}
        values: dict[str, Any] = {
            "id": generate_id(),
            "workspace_id": "ws-1",
            "form_id": "form-1",
            "name": "Daily check",
            "schedule": build_schedule(**schedule_overrides),
            "is_active": True,
            "assigned_to": ["alice"],
        }
        values.update(overrides)
        return Cadence(**values)

    return _make


@pytest.fixture
def make_instance() -> Callable[..., Instance]:
    """Factory for unsaved instances scheduled at 09:00 UTC on 2025-03-10."""

    def _make(**overrides: Any) -> Instance:
        scheduled_for = overrides.pop("scheduled_for", utc(2025, 3, 10, 9))
        values: dict[str, Any] = {
            "id": generate_id(),
            "workspace_id": "ws-1",
            "cadence_id": "cad-1",
            "form_id": "form-1",
            "instance_name": "Daily check - 2025-03-10",
            "scheduled_for": scheduled_for,
            "due_at": scheduled_for + timedelta(hours=2),
            "status": InstanceStatus.PENDING,
        }
        values.update(overrides)
        return Instance(**values)

    return _make
