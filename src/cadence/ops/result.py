"""
Operation result envelope.

Every operation function returns an :class:`OperationResult` (or
:class:`PagedResult` for lists) instead of raising. Engine exceptions are
translated into stable error codes here, in one place, so the CLI and the
HTTP API agree on what a failure means:

    ==========================  ======================  ====
    exception                   code                    HTTP
    ==========================  ======================  ====
    ScheduleConfigInvalid       VALIDATION_FAILED       400
    ValidationError             VALIDATION_FAILED       400
    InvalidTransition           INVALID_TRANSITION      409
    CadenceNotFound             NOT_FOUND               404
    InstanceNotFound            NOT_FOUND               404
    StoreUnavailable            UNAVAILABLE             503
    anything else               INTERNAL                500
    ==========================  ======================  ====
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, TypeVar

from cadence.core.errors import (
    CadenceError,
    ErrorCategory,
    InvalidTransition,
    NotFoundError,
    ValidationError,
    categorize_error,
    is_retryable,
)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class OperationError:
    """Structured error detail for failed operations.

    Attributes:
        code: Machine-readable code (``NOT_FOUND``, ``INVALID_TRANSITION``, …).
        message: Human-readable description of the error.
        category: Optional :class:`ErrorCategory` of the underlying exception.
        details: Extra key/value context (field names, statuses, ids).
        retryable: Whether the caller should retry the operation.
    """

    code: str
    message: str
    category: ErrorCategory | None = None
    details: dict[str, Any] = field(default_factory=dict)
    retryable: bool = False


def error_code_for(exc: BaseException) -> str:
    """Stable operation error code for an engine exception."""
    if isinstance(exc, InvalidTransition):
        return "INVALID_TRANSITION"
    if isinstance(exc, ValidationError):
        return "VALIDATION_FAILED"
    if isinstance(exc, NotFoundError):
        return "NOT_FOUND"
    if is_retryable(exc):
        return "UNAVAILABLE"
    return "INTERNAL"


@dataclass
class OperationResult[T]:
    """Envelope returned by every operation function.

    Use :meth:`ok`, :meth:`fail` or :meth:`from_exception` rather than the
    constructor.
    """

    success: bool
    data: T | None = None
    error: OperationError | None = None
    warnings: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        data: T,
        *,
        warnings: list[str] | None = None,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        return cls(
            success=True,
            data=data,
            warnings=warnings or [],
            elapsed_ms=elapsed_ms,
            metadata=metadata or {},
        )

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        *,
        category: ErrorCategory | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        elapsed_ms: float = 0.0,
    ) -> OperationResult[T]:
        return cls(
            success=False,
            error=OperationError(
                code=code,
                message=message,
                category=category,
                details=details or {},
                retryable=retryable,
            ),
            elapsed_ms=elapsed_ms,
        )

    @classmethod
    def from_exception(cls, exc: CadenceError, *, elapsed_ms: float = 0.0) -> OperationResult[T]:
        """Failed result carrying the code, category and context of *exc*."""
        details = exc.context.to_dict()
        if isinstance(exc, ValidationError) and exc.field:
            details["field"] = exc.field
        if isinstance(exc, InvalidTransition):
            details.update({"current": exc.current, "target": exc.target})
        return cls.fail(
            error_code_for(exc),
            exc.message,
            category=categorize_error(exc),
            details=details,
            retryable=is_retryable(exc),
            elapsed_ms=elapsed_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain dict (for JSON output)."""
        d: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            d["data"] = self.data
        if self.error is not None:
            d["error"] = {
                "code": self.error.code,
                "message": self.error.message,
                "retryable": self.error.retryable,
            }
            if self.error.details:
                d["error"]["details"] = self.error.details
        if self.warnings:
            d["warnings"] = self.warnings
        if self.elapsed_ms:
            d["elapsed_ms"] = round(self.elapsed_ms, 2)
        return d


@dataclass
class PagedResult(OperationResult[list[T]]):
    """Paginated result for list operations; ``has_more`` is derived."""

    total: int = 0
    limit: int = 50
    offset: int = 0
    has_more: bool = False

    @classmethod
    def from_items(
        cls,
        items: list[T],
        total: int,
        *,
        limit: int = 50,
        offset: int = 0,
        elapsed_ms: float = 0.0,
    ) -> PagedResult[T]:
        return cls(
            success=True,
            data=items,
            total=total,
            limit=limit,
            offset=offset,
            has_more=(offset + limit) < total,
            elapsed_ms=elapsed_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["total"] = self.total
        d["limit"] = self.limit
        d["offset"] = self.offset
        d["has_more"] = self.has_more
        return d


class _Timer:
    """Minimal stopwatch for timing operations."""

    __slots__ = ("_start",)

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000


def start_timer() -> _Timer:
    """Return a lightweight timer.  Use ``timer.elapsed_ms`` when done."""
    return _Timer()
