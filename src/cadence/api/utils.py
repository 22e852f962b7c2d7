"""
Shared API router utilities.

- ``_dc()`` converts an ops response dataclass to a plain dict
- ``_handle_error()`` converts a failed OperationResult to a problem response
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from cadence.api.middleware.errors import problem_response, status_for_error_code


def _dc(obj: Any) -> dict[str, Any]:
    """Convert a dataclass (or dict) to a plain dict.

    Returns an empty dict for objects that are neither dataclasses nor dicts.
    """
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    return obj if isinstance(obj, dict) else {}


def _handle_error(result):
    """Convert a failed ``OperationResult`` into a Problem Details response.

    The error code picks the HTTP status; ``details.field`` becomes a
    field-level error entry.
    """
    if result.error is None:
        return problem_response(status=500, title="Operation failed")
    error = result.error
    errors = None
    if error.details.get("field"):
        errors = [{"code": error.code, "message": error.message, "field": error.details["field"]}]
    detail = ""
    if "current" in error.details:
        detail = f"Instance is {error.details['current']}; cannot move to {error.details.get('target')}"
    return problem_response(
        status=status_for_error_code(error.code),
        title=error.message,
        detail=detail,
        code=error.code,
        errors=errors,
    )

