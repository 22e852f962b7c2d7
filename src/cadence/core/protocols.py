"""
Canonical protocol definitions for cadence-core.

Manifesto:
    Protocols define contracts without inheritance. Engine code depends
    on the *shape* of a database connection, never on a driver, so the
    same lifecycle manager runs on SQLite in tests and PostgreSQL in
    production.

Architecture:
    ::

        protocols.py
        └── Connection  — sync DB protocol (sqlite3 adapter, psycopg, ...)

    Consumers:
        scheduling/store.py, ops/*, core/schema.py

Guardrails:
    ❌ DON'T: Import sqlite3 or a PostgreSQL driver in scheduling code
    ✅ DO: Accept a ``Connection`` and a ``Dialect``

Tags:
    protocol, connection, database, structural-typing
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous database connection contract.

    ``execute`` returns a cursor-like object; the stores read
    ``cursor.rowcount`` from it to learn whether an atomic insert or a
    conditional update actually touched a row.

    Examples:
        >>> def count_instances(conn: Connection) -> int:
        ...     conn.execute("SELECT COUNT(*) FROM instances")
        ...     return conn.fetchone()[0]
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters."""
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        """Execute SQL statement for multiple parameter sets."""
        ...

    def fetchone(self) -> Any:
        """Fetch one row from last query."""
        ...

    def fetchall(self) -> list:
        """Fetch all rows from last query."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


__all__ = ["Connection"]
