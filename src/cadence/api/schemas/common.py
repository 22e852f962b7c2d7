"""
Common API schemas — shared envelopes and RFC 7807 errors.

Every endpoint returns either :class:`SuccessResponse` (200/201)
or :class:`ProblemDetail` (4xx/5xx). Paged endpoints embed
:class:`PageMeta` alongside the item list.

Response Envelope Conventions:
    - All 2xx responses use ``SuccessResponse[T]`` or ``PagedResponse[T]``
    - All 4xx/5xx responses use ``ProblemDetail`` (RFC 7807)
    - ``elapsed_ms`` tracks server-side processing time
    - ``warnings`` carries non-fatal issues (late completion, invalid cadences)
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


# ── RFC 7807 Problem Detail ─────────────────────────────────────────────


class ErrorDetail(BaseModel):
    """Field-level error detail."""

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    field: str | None = Field(default=None, description="Field path if error is field-specific")


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Error Codes:
        - ``VALIDATION_FAILED`` (400): Invalid input or schedule
        - ``NOT_FOUND`` (404): Cadence or instance does not exist
        - ``INVALID_TRANSITION`` (409): Action not allowed in the current status
        - ``UNAVAILABLE`` (503): Store temporarily unreachable, retry later
        - ``INTERNAL`` (500): Unexpected server error

    Example:
        {
            "type": "about:blank",
            "title": "Cannot transition instance from missed to in_progress",
            "status": 409,
            "code": "INVALID_TRANSITION",
            "detail": "",
            "instance": "",
            "errors": []
        }
    """

    type: str = Field(default="about:blank", description="Error type URI")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code")
    code: str | None = Field(default=None, description="Ops error code")
    detail: str = Field(default="", description="Human-readable explanation of the error")
    instance: str = Field(default="", description="URI of the failing request")
    errors: list[ErrorDetail] = Field(default_factory=list)


# ── Success Envelopes ────────────────────────────────────────────────────


class PageMeta(BaseModel):
    """Pagination metadata for list responses."""

    total: int = Field(description="Total items across all pages")
    limit: int = Field(description="Items per page (requested)")
    offset: int = Field(description="Current offset (0-based)")
    has_more: bool = Field(description="True if more pages exist after current")

    @classmethod
    def from_result(cls, result) -> PageMeta:
        """Build from a :class:`~cadence.ops.result.PagedResult`."""
        return cls(
            total=result.total,
            limit=result.limit,
            offset=result.offset,
            has_more=result.has_more,
        )


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success envelope for single-item responses."""

    data: T = Field(description="Response payload (type varies by endpoint)")
    elapsed_ms: float = Field(default=0.0, description="Server-side processing time in milliseconds")
    warnings: list[str] = Field(default_factory=list, description="Non-fatal warnings")


class PagedResponse(BaseModel, Generic[T]):
    """Paged success envelope for list responses."""

    data: list[T] = Field(description="List of items for this page")
    page: PageMeta = Field(description="Pagination metadata")
    elapsed_ms: float = Field(default=0.0, description="Server-side processing time in milliseconds")
    warnings: list[str] = Field(default_factory=list)
