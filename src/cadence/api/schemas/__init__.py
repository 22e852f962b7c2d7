"""API schemas package."""

from cadence.api.schemas.common import (
    ErrorDetail,
    PagedResponse,
    PageMeta,
    ProblemDetail,
    SuccessResponse,
)

__all__ = [
    "ErrorDetail",
    "PageMeta",
    "PagedResponse",
    "ProblemDetail",
    "SuccessResponse",
]
