"""
Operations layer - transport-agnostic functions over the scheduling engine.

- All functions accept ``OperationContext`` as first argument
- All functions return ``OperationResult[T]`` (never raise)
- Engine exceptions become stable error codes (see :mod:`cadence.ops.result`)
- The CLI and the HTTP API are thin shells around these functions

Usage::

    from cadence.ops import OperationContext, SqliteConnection
    from cadence.ops.database import initialize_database
    from cadence.ops.scheduler import run_tick

    ctx = OperationContext(conn=SqliteConnection("cadence.db"))
    initialize_database(ctx)
    result = run_tick(ctx)
    assert result.success
"""

from cadence.ops.context import OperationContext
from cadence.ops.result import OperationError, OperationResult, PagedResult
from cadence.ops.sqlite_conn import SqliteConnection

__all__ = [
    "OperationContext",
    "OperationError",
    "OperationResult",
    "PagedResult",
    "SqliteConnection",
]
