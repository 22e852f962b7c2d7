"""SQLite connection adapter.

Wraps a raw :class:`sqlite3.Connection` to satisfy the
:class:`~cadence.core.protocols.Connection` protocol.

A bare ``sqlite3.Connection`` exposes ``execute()`` (returns a cursor)
but not ``fetchone()`` / ``fetchall()`` at the connection level.  This
adapter bridges the gap so store code written against the protocol
works identically on SQLite and PostgreSQL.

Usage::

    from cadence.ops.sqlite_conn import SqliteConnection

    conn = SqliteConnection(":memory:")
    conn.execute("SELECT 1")
    row = conn.fetchone()
    conn.close()
"""

from __future__ import annotations

import sqlite3
from typing import Any


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol.

    Maintains a single cursor so that ``execute`` / ``fetchone`` /
    ``fetchall`` operate on the same result set.  ``timeout`` is the
    busy timeout applied when another connection holds the write lock,
    which is how concurrent materialize passes serialise on one file.
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        row_factory: Any = sqlite3.Row,
        timeout: float = 10.0,
    ) -> None:
        self._conn = sqlite3.connect(path, timeout=timeout, check_same_thread=False)
        self._conn.row_factory = row_factory
        self._cursor = self._conn.cursor()

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._cursor.execute(sql, params)
        return self._cursor

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        self._cursor.executemany(sql, params)
        return self._cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    def __repr__(self) -> str:
        return f"SqliteConnection({self._conn!r})"
