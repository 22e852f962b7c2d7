"""
Core primitives for cadence-core.

Errors, the connection/dialect contracts, settings, logging, timestamps,
and the table DDL. Nothing in here knows what a cadence *means*; that
lives in :mod:`cadence.scheduling`.
"""

from cadence.core.dialect import Dialect, PostgreSQLDialect, SQLiteDialect, get_dialect
from cadence.core.errors import (
    CadenceError,
    CadenceNotFound,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InstanceNotFound,
    InvalidTransition,
    ScheduleConfigInvalid,
    StoreError,
    StoreUnavailable,
    ValidationError,
)
from cadence.core.protocols import Connection
from cadence.core.timestamps import from_iso8601, generate_id, to_iso8601, utc_now

__all__ = [
    "CadenceError",
    "CadenceNotFound",
    "ConfigError",
    "Connection",
    "Dialect",
    "ErrorCategory",
    "ErrorContext",
    "InstanceNotFound",
    "InvalidTransition",
    "PostgreSQLDialect",
    "SQLiteDialect",
    "ScheduleConfigInvalid",
    "StoreError",
    "StoreUnavailable",
    "ValidationError",
    "from_iso8601",
    "generate_id",
    "get_dialect",
    "to_iso8601",
    "utc_now",
]
