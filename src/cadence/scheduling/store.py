"""Instance store and cadence repository.

Manifesto:
    Idempotent materialization and race-free user actions both depend on
    the database doing one thing atomically. Query-then-insert and
    read-modify-write are not atomic; the store never uses them.

    - ``insert_if_absent`` → ``INSERT OR IGNORE`` / ``ON CONFLICT DO NOTHING``
      against ``UNIQUE(cadence_id, scheduled_for)``; ``rowcount`` tells
      the caller whether it won.
    - ``compare_and_swap`` → ``UPDATE … WHERE id = ? AND status = ?``;
      ``rowcount`` 0 means someone else moved the row first.

┌──────────────────────────────────────────────────────────────────────────────┐
│  InstanceStore (Protocol)                                                     │
│  ├── insert_if_absent(instance) → bool                                        │
│  ├── compare_and_swap(instance_id, expected, updates) → bool                  │
│  ├── get(instance_id) → Instance | None                                       │
│  ├── get_by_occurrence(cadence_id, scheduled_for) → Instance | None           │
│  ├── list_non_terminal() → list[Instance]                                     │
│  ├── list_instances(**filters) → list[Instance]                               │
│  └── count_instances(**filters) → int                                         │
│                                                                               │
│  SqlInstanceStore   Connection + Dialect implementation                      │
│  CadenceRepository  cadence definitions (read by the engine)                 │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    repository, store, atomic-insert, compare-and-swap, idempotency, cadence

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from cadence.core.dialect import Dialect, SQLiteDialect
from cadence.core.errors import ScheduleConfigInvalid, StoreError, StoreUnavailable
from cadence.core.protocols import Connection
from cadence.core.timestamps import from_iso8601, to_iso8601, utc_now
from cadence.scheduling.models import (
    TERMINAL_STATUSES,
    Cadence,
    Instance,
    InstanceStatus,
    Schedule,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class InstanceStore(Protocol):
    """Persistence contract required by the lifecycle manager."""

    def insert_if_absent(self, instance: Instance) -> bool:
        """Atomically insert unless ``(cadence_id, scheduled_for)`` exists."""
        ...

    def compare_and_swap(
        self,
        instance_id: str,
        expected: InstanceStatus,
        updates: dict[str, Any],
    ) -> bool:
        """Apply *updates* only while the row is still in *expected* status."""
        ...

    def get(self, instance_id: str) -> Instance | None: ...

    def get_by_occurrence(self, cadence_id: str, scheduled_for: datetime) -> Instance | None: ...

    def list_non_terminal(self) -> list[Instance]: ...

    def list_instances(self, **filters: Any) -> list[Instance]: ...


INSTANCE_COLUMNS = [
    "id",
    "workspace_id",
    "cadence_id",
    "form_id",
    "instance_name",
    "scheduled_for",
    "due_at",
    "status",
    "assigned_to",
    "started_at",
    "completed_at",
    "completed_by",
    "submission_id",
    "skip_reason",
    "metadata",
    "created_at",
    "updated_at",
]

# Columns a compare-and-swap may touch.
MUTABLE_COLUMNS = frozenset({
    "status",
    "started_at",
    "completed_at",
    "completed_by",
    "submission_id",
    "skip_reason",
})

CADENCE_COLUMNS = [
    "id",
    "workspace_id",
    "form_id",
    "name",
    "schedule",
    "is_active",
    "assigned_to",
    "created_at",
    "updated_at",
]


def _store_error(action: str, exc: Exception) -> StoreError:
    """Wrap a driver exception; only SQLite lock/busy conditions are retryable."""
    text = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError) and ("locked" in text or "busy" in text):
        return StoreUnavailable(f"{action} failed: {exc}", cause=exc)
    return StoreError(f"{action} failed: {exc}", cause=exc)


def _sql_value(value: Any) -> Any:
    if isinstance(value, InstanceStatus):
        return value.value
    if isinstance(value, datetime):
        return to_iso8601(value)
    return value


class SqlInstanceStore:
    """:class:`InstanceStore` over the ``Connection`` protocol.

    Each write commits immediately so a concurrent materializer sees the
    unique key as soon as this one has claimed it.

    Example:
        >>> store = SqlInstanceStore(conn)
        >>> store.insert_if_absent(instance)
        True
        >>> store.insert_if_absent(instance)   # same (cadence_id, scheduled_for)
        False
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def _ph(self, count: int) -> str:
        """Generate placeholder string for this dialect."""
        return self.dialect.placeholders(count)

    def _rollback(self) -> None:
        try:
            self.conn.rollback()
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Rollback failed: {e}")

    # === Writes ===

    def insert_if_absent(self, instance: Instance) -> bool:
        """Insert *instance*; ``False`` if its occurrence already exists."""
        sql = self.dialect.insert_or_ignore("instances", INSTANCE_COLUMNS)
        now = utc_now()
        params = (
            instance.id,
            instance.workspace_id,
            instance.cadence_id,
            instance.form_id,
            instance.instance_name,
            to_iso8601(instance.scheduled_for),
            to_iso8601(instance.due_at),
            instance.status.value,
            json.dumps(list(instance.assigned_to)),
            to_iso8601(instance.started_at),
            to_iso8601(instance.completed_at),
            instance.completed_by,
            instance.submission_id,
            instance.skip_reason,
            json.dumps(instance.metadata) if instance.metadata else None,
            to_iso8601(instance.created_at or now),
            to_iso8601(instance.updated_at or now),
        )
        try:
            cursor = self.conn.execute(sql, params)
            self.conn.commit()
        except Exception as e:
            self._rollback()
            raise _store_error("insert_if_absent", e).with_context(
                cadence_id=instance.cadence_id, instance_id=instance.id
            ) from e
        return cursor.rowcount > 0

    def compare_and_swap(
        self,
        instance_id: str,
        expected: InstanceStatus,
        updates: dict[str, Any],
    ) -> bool:
        """Conditionally update one row.

        Returns:
            True if the row was in *expected* status and was updated.
        """
        unknown = set(updates) - MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable via compare_and_swap: {sorted(unknown)}")

        set_parts = [f"{column} = {self._ph(1)}" for column in updates]
        set_parts.append(f"updated_at = {self._ph(1)}")
        params = tuple(_sql_value(v) for v in updates.values()) + (
            to_iso8601(utc_now()),
            instance_id,
            expected.value,
        )
        sql = (
            f"UPDATE instances SET {', '.join(set_parts)} "
            f"WHERE id = {self._ph(1)} AND status = {self._ph(1)}"
        )
        try:
            cursor = self.conn.execute(sql, params)
            self.conn.commit()
        except Exception as e:
            self._rollback()
            raise _store_error("compare_and_swap", e).with_context(
                instance_id=instance_id
            ) from e
        return cursor.rowcount > 0

    # === Reads ===

    def _select(self) -> str:
        return f"SELECT {', '.join(INSTANCE_COLUMNS)} FROM instances"

    def _fetch(self, sql: str, params: tuple = ()) -> list[Instance]:
        try:
            cursor = self.conn.execute(sql, params)
            rows = cursor.fetchall()
        except Exception as e:
            raise _store_error("query", e) from e
        return [self._row_to_instance(row) for row in rows]

    def get(self, instance_id: str) -> Instance | None:
        rows = self._fetch(f"{self._select()} WHERE id = {self._ph(1)}", (instance_id,))
        return rows[0] if rows else None

    def get_by_occurrence(self, cadence_id: str, scheduled_for: datetime) -> Instance | None:
        rows = self._fetch(
            f"{self._select()} WHERE cadence_id = {self._ph(1)} AND scheduled_for = {self._ph(1)}",
            (cadence_id, to_iso8601(scheduled_for)),
        )
        return rows[0] if rows else None

    def list_non_terminal(self) -> list[Instance]:
        """All instances still open to clock-driven transitions."""
        terminal = sorted(s.value for s in TERMINAL_STATUSES)
        return self._fetch(
            f"{self._select()} WHERE status NOT IN ({self._ph(len(terminal))}) "
            "ORDER BY scheduled_for, id",
            tuple(terminal),
        )

    def _where(
        self,
        *,
        workspace_id: str | None = None,
        cadence_id: str | None = None,
        cadence_ids: Iterable[str] | None = None,
        form_ids: Iterable[str] | None = None,
        statuses: Iterable[InstanceStatus | str] | None = None,
        scheduled_from: datetime | None = None,
        scheduled_to: datetime | None = None,
    ) -> tuple[str, tuple]:
        clauses: list[str] = []
        params: list[Any] = []
        if workspace_id is not None:
            clauses.append(f"workspace_id = {self._ph(1)}")
            params.append(workspace_id)
        if cadence_id is not None:
            clauses.append(f"cadence_id = {self._ph(1)}")
            params.append(cadence_id)
        for column, values in (("cadence_id", cadence_ids), ("form_id", form_ids)):
            if values is not None:
                values = list(values)
                if not values:
                    clauses.append("1 = 0")
                    continue
                clauses.append(f"{column} IN ({self._ph(len(values))})")
                params.extend(values)
        if statuses is not None:
            values = [InstanceStatus(s).value for s in statuses]
            if not values:
                clauses.append("1 = 0")
            else:
                clauses.append(f"status IN ({self._ph(len(values))})")
                params.extend(values)
        if scheduled_from is not None:
            clauses.append(f"scheduled_for >= {self._ph(1)}")
            params.append(to_iso8601(scheduled_from))
        if scheduled_to is not None:
            clauses.append(f"scheduled_for < {self._ph(1)}")
            params.append(to_iso8601(scheduled_to))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, tuple(params)

    def list_instances(
        self,
        *,
        limit: int | None = None,
        offset: int = 0,
        **filters: Any,
    ) -> list[Instance]:
        """List instances ordered by ``scheduled_for``.

        Filters: ``workspace_id``, ``cadence_id``, ``cadence_ids``,
        ``form_ids``, ``statuses``, ``scheduled_from`` (inclusive),
        ``scheduled_to`` (exclusive).
        """
        where, params = self._where(**filters)
        sql = f"{self._select()}{where} ORDER BY scheduled_for, id"
        if limit is not None:
            sql += f" LIMIT {self._ph(1)} OFFSET {self._ph(1)}"
            params = params + (limit, offset)
        return self._fetch(sql, params)

    def count_instances(self, **filters: Any) -> int:
        where, params = self._where(**filters)
        try:
            cursor = self.conn.execute(f"SELECT COUNT(*) FROM instances{where}", params)
            row = cursor.fetchone()
        except Exception as e:
            raise _store_error("count", e) from e
        return int(row[0]) if row else 0

    # === Private Helpers ===

    def _row_to_instance(self, row: Any) -> Instance:
        """Convert database row to Instance model."""
        data = dict(zip(INSTANCE_COLUMNS, tuple(row), strict=False))
        return Instance(
            id=data["id"],
            workspace_id=data["workspace_id"],
            cadence_id=data["cadence_id"],
            form_id=data["form_id"],
            instance_name=data["instance_name"],
            scheduled_for=from_iso8601(data["scheduled_for"]),
            due_at=from_iso8601(data["due_at"]),
            status=InstanceStatus(data["status"]),
            assigned_to=json.loads(data["assigned_to"]) if data["assigned_to"] else [],
            started_at=from_iso8601(data["started_at"]),
            completed_at=from_iso8601(data["completed_at"]),
            completed_by=data["completed_by"],
            submission_id=data["submission_id"],
            skip_reason=data["skip_reason"],
            metadata=json.loads(data["metadata"]) if data["metadata"] else {},
            created_at=from_iso8601(data["created_at"]),
            updated_at=from_iso8601(data["updated_at"]),
        )


class CadenceRepository:
    """Cadence definitions.

    The scheduling engine only reads (``get``, ``list_active``); the
    write methods serve the schedule-settings surfaces (CLI, API).
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def _ph(self, count: int) -> str:
        return self.dialect.placeholders(count)

    def _params(self, cadence: Cadence) -> tuple:
        now = utc_now()
        return (
            cadence.id,
            cadence.workspace_id,
            cadence.form_id,
            cadence.name,
            json.dumps(cadence.schedule.to_dict()),
            1 if cadence.is_active else 0,
            json.dumps(list(cadence.assigned_to)),
            to_iso8601(cadence.created_at or now),
            to_iso8601(now),
        )

    def create(self, cadence: Cadence) -> Cadence:
        """Insert a new cadence and return it as stored."""
        cols = ", ".join(CADENCE_COLUMNS)
        try:
            self.conn.execute(
                f"INSERT INTO cadences ({cols}) VALUES ({self._ph(len(CADENCE_COLUMNS))})",
                self._params(cadence),
            )
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            raise _store_error("create cadence", e).with_context(cadence_id=cadence.id) from e
        return self.get(cadence.id)  # type: ignore[return-value]

    def update(self, cadence: Cadence) -> Cadence | None:
        """Overwrite the editable fields of an existing cadence.

        ``id``, ``workspace_id``, ``form_id`` and ``created_at`` are immutable.
        Returns None if the cadence does not exist.
        """
        try:
            cursor = self.conn.execute(
                f"UPDATE cadences SET name = {self._ph(1)}, schedule = {self._ph(1)}, "
                f"is_active = {self._ph(1)}, assigned_to = {self._ph(1)}, updated_at = {self._ph(1)} "
                f"WHERE id = {self._ph(1)}",
                (
                    cadence.name,
                    json.dumps(cadence.schedule.to_dict()),
                    1 if cadence.is_active else 0,
                    json.dumps(list(cadence.assigned_to)),
                    to_iso8601(utc_now()),
                    cadence.id,
                ),
            )
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            raise _store_error("update cadence", e).with_context(cadence_id=cadence.id) from e
        if cursor.rowcount == 0:
            return None
        return self.get(cadence.id)

    def set_active(self, cadence_id: str, active: bool) -> bool:
        """Activate or deactivate a cadence. Returns False if it does not exist."""
        try:
            cursor = self.conn.execute(
                f"UPDATE cadences SET is_active = {self._ph(1)}, updated_at = {self._ph(1)} "
                f"WHERE id = {self._ph(1)}",
                (1 if active else 0, to_iso8601(utc_now()), cadence_id),
            )
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            raise _store_error("set_active", e).with_context(cadence_id=cadence_id) from e
        return cursor.rowcount > 0

    def _query(self, sql: str, params: tuple = ()) -> list[Any]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except Exception as e:
            raise _store_error("query cadences", e) from e

    def get(self, cadence_id: str) -> Cadence | None:
        rows = self._query(
            f"SELECT {', '.join(CADENCE_COLUMNS)} FROM cadences WHERE id = {self._ph(1)}",
            (cadence_id,),
        )
        if not rows:
            return None
        return self._row_to_cadence(rows[0])

    def list_all(self, workspace_id: str | None = None) -> list[Cadence]:
        sql = f"SELECT {', '.join(CADENCE_COLUMNS)} FROM cadences"
        params: tuple = ()
        if workspace_id is not None:
            sql += f" WHERE workspace_id = {self._ph(1)}"
            params = (workspace_id,)
        return [self._row_to_cadence(row) for row in self._query(sql + " ORDER BY name, id", params)]

    def list_active(
        self,
        on_invalid: Callable[[str, ScheduleConfigInvalid], None] | None = None,
    ) -> list[Cadence]:
        """All active cadences.

        Args:
            on_invalid: Called with ``(cadence_id, error)`` for a row whose
                stored schedule cannot be parsed. When omitted the error
                propagates.
        """
        rows = self._query(
            f"SELECT {', '.join(CADENCE_COLUMNS)} FROM cadences "
            f"WHERE is_active = {self.dialect.boolean_true()} ORDER BY name, id"
        )
        result = []
        for row in rows:
            try:
                result.append(self._row_to_cadence(row))
            except ScheduleConfigInvalid as e:
                if on_invalid is None:
                    raise
                on_invalid(tuple(row)[0], e)
        return result

    def _row_to_cadence(self, row: Any) -> Cadence:
        """Convert database row to Cadence model."""
        data = dict(zip(CADENCE_COLUMNS, tuple(row), strict=False))
        try:
            schedule_data = json.loads(data["schedule"])
        except (TypeError, ValueError) as e:
            raise ScheduleConfigInvalid(
                f"Stored schedule is not valid JSON: {e}", field="schedule", cause=e
            ).with_context(cadence_id=data["id"]) from e
        if not isinstance(schedule_data, dict):
            raise ScheduleConfigInvalid(
                "Stored schedule must be a JSON object", field="schedule"
            ).with_context(cadence_id=data["id"])
        return Cadence(
            id=data["id"],
            workspace_id=data["workspace_id"],
            form_id=data["form_id"],
            name=data["name"],
            schedule=Schedule.from_dict(schedule_data),
            is_active=bool(data["is_active"]),
            assigned_to=json.loads(data["assigned_to"]) if data["assigned_to"] else [],
            created_at=from_iso8601(data["created_at"]),
            updated_at=from_iso8601(data["updated_at"]),
        )


__all__ = [
    "CadenceRepository",
    "InstanceStore",
    "SqlInstanceStore",
]
