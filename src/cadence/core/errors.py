"""
Structured error types for the cadence engine.

Every failure the engine can surface is a typed error that carries a
category, a retry hint, and structured context (cadence, instance,
workspace) so callers can route it without string matching.

The engine has exactly two domain errors that callers are expected to
handle: ``ScheduleConfigInvalid`` (a cadence's schedule breaks its own
invariants) and ``InvalidTransition`` (a status change the state graph
does not allow). Everything else is either a lookup miss or a store
problem.

Manifesto:
    - **Typed Error Hierarchy:** Distinct classes for config, lifecycle, and storage
    - **Explicit Retry Semantics:** Store hiccups are retryable, bad schedules are not
    - **Rich Context:** Errors know which cadence/instance they concern
    - **Error Chaining:** Driver exceptions are kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                       CadenceError                           │
        │  (category, retryable, retry_after, context, cause)         │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ValidationError       LifecycleError      StoreError        │
        │  (VALIDATION)          (LIFECYCLE)         (STORAGE)         │
        │       │                     │                   │            │
        │  ScheduleConfigInvalid  InvalidTransition  StoreUnavailable  │
        │                                            (retryable)       │
        │                                                              │
        │  NotFoundError         ConfigError                           │
        │  (NOT_FOUND)           (CONFIG)                              │
        │       │                                                      │
        │  CadenceNotFound                                             │
        │  InstanceNotFound                                            │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ScheduleConfigInvalid("days_of_week must not be empty", field="days_of_week")
    >>> error.retryable
    False
    >>> error.with_context(cadence_id="cad-1").context.cadence_id
    'cad-1'

    >>> err = InvalidTransition("completed", "in_progress", instance_id="inst-9")
    >>> str(err)
    'Invalid InstanceStatus transition: completed → in_progress'

Guardrails:
    ❌ DON'T: Raise bare ``ValueError`` for a broken schedule
    ✅ DO: Raise ``ScheduleConfigInvalid`` with the offending field

    ❌ DON'T: Swallow ``InvalidTransition`` in the lifecycle manager
    ✅ DO: Let it reach the caller so the UI can explain the refusal

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    cadence, scheduling

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories map one-to-one onto how a caller should react: fix the
    input (VALIDATION, CONFIG), refresh and retry the user action
    (LIFECYCLE), retry later (STORAGE), or treat as a bug (INTERNAL).

    Tags:
        error-category, classification, cadence
    """

    VALIDATION = "VALIDATION"     # Schedule or request data is invalid
    CONFIG = "CONFIG"             # Missing or invalid settings
    LIFECYCLE = "LIFECYCLE"       # Status change refused by the state graph
    NOT_FOUND = "NOT_FOUND"       # Unknown cadence or instance id
    STORAGE = "STORAGE"           # Backing store failures
    AUTH = "AUTH"                 # Trigger secret mismatch
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Typed fields cover the identifiers the engine deals in; anything
    else goes into ``metadata``. ``to_dict()`` drops unset fields so the
    result can be passed straight to a structured logger.

    Examples:
        >>> ctx = ErrorContext(cadence_id="cad-1", operation="materialize")
        >>> ctx.to_dict()
        {'cadence_id': 'cad-1', 'operation': 'materialize'}
    """

    cadence_id: str | None = None
    instance_id: str | None = None
    workspace_id: str | None = None
    operation: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["cadence_id", "instance_id", "workspace_id", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CadenceError(Exception):
    """
    Base exception for all cadence engine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so the
    common case needs only a message.

    Examples:
        >>> try:
        ...     raise OSError("disk full")
        ... except OSError as e:
        ...     error = StoreError("insert failed", cause=e)
        >>> error.cause
        OSError('disk full')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CadenceError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreError("CAS failed").with_context(instance_id=instance_id)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(CadenceError):
    """
    Data validation error.

    Never retryable - data must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class ScheduleConfigInvalid(ValidationError):
    """A cadence's schedule violates its own invariants.

    Normally caught when the cadence is saved; the expander raises it
    again as a last line before doing any date math.
    """


# =============================================================================
# LIFECYCLE ERRORS
# =============================================================================


class LifecycleError(CadenceError):
    """Base for refusals coming from the instance state machine."""

    default_category = ErrorCategory.LIFECYCLE
    default_retryable = False


class InvalidTransition(LifecycleError):
    """Raised when an instance status change is not permitted.

    Covers both illegal edges (``completed → in_progress``) and guarded
    edges whose guard failed (``start()`` after ``due_at``), as well as
    losing a compare-and-swap race to a concurrent actor.
    """

    def __init__(
        self,
        current: str,
        target: str,
        *,
        instance_id: str | None = None,
        reason: str | None = None,
        enum_name: str = "InstanceStatus",
    ) -> None:
        self.current = current
        self.target = target
        self.reason = reason
        message = f"Invalid {enum_name} transition: {current} → {target}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, context=ErrorContext(instance_id=instance_id))

    @property
    def instance_id(self) -> str | None:
        return self.context.instance_id


# =============================================================================
# LOOKUP ERRORS
# =============================================================================


class NotFoundError(CadenceError):
    """Requested record does not exist."""

    default_category = ErrorCategory.NOT_FOUND
    default_retryable = False


class CadenceNotFound(NotFoundError):
    def __init__(self, cadence_id: str):
        super().__init__(
            f"Cadence '{cadence_id}' not found",
            context=ErrorContext(cadence_id=cadence_id),
        )


class InstanceNotFound(NotFoundError):
    def __init__(self, instance_id: str):
        super().__init__(
            f"Instance '{instance_id}' not found",
            context=ErrorContext(instance_id=instance_id),
        )


# =============================================================================
# STORAGE / CONFIG ERRORS
# =============================================================================


class StoreError(CadenceError):
    """Backing store rejected or failed an operation."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class StoreUnavailable(StoreError):
    """Store temporarily unavailable (locked or busy database)."""

    default_retryable = True


class ConfigError(CadenceError):
    """Configuration error (missing or invalid settings)."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, CadenceError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, CadenceError):
        return error.category
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.STORAGE
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "CadenceError",
    "ValidationError",
    "ScheduleConfigInvalid",
    "LifecycleError",
    "InvalidTransition",
    "NotFoundError",
    "CadenceNotFound",
    "InstanceNotFound",
    "StoreError",
    "StoreUnavailable",
    "ConfigError",
    "is_retryable",
    "categorize_error",
]
