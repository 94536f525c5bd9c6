"""
Structured error types for jobspine.

Every failure the reconciliation service can surface to a caller is a
:class:`JobSpineError` subclass carrying a category, a transport error code,
structured context, and an optional chained cause.

Manifesto:
    - **Typed taxonomy:** Duplicate, not-found, invalid schedule, engine
      unavailable, and store failures are distinct types, not strings
    - **Transport-neutral codes:** ``code`` is what the HTTP layer maps to a
      status; the service never knows about HTTP
    - **Rich context:** Errors carry the job key, expression, or operation
      for logging
    - **Error chaining:** Preserve the original exception as ``cause``

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────┐
        │                      JobSpineError                          │
        │           (category, code, context, cause)                  │
        ├────────────────────────────────────────────────────────────┤
        │                                                             │
        │  DuplicateJobError      NotFoundError     InvalidScheduleError
        │  (CONFLICT)             (NOT_FOUND)       (VALIDATION_FAILED)
        │                              │                              │
        │                        NotRegisteredError                   │
        │                                                             │
        │  EngineUnavailableError      StoreError                     │
        │  (UNAVAILABLE)               (INTERNAL)                     │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> err = DuplicateJobError("Job already exists: ReportJob")
    >>> err.code
    'CONFLICT'
    >>> err.with_context(job_name="ReportJob", job_group="default").to_dict()["context"]
    {'job_name': 'ReportJob', 'job_group': 'default'}

Guardrails:
    ❌ DON'T: Raise bare ValueError/KeyError from the service layer
    ✅ DO: Raise the matching JobSpineError subclass

    ❌ DON'T: Swallow the underlying database or APScheduler exception
    ✅ DO: Pass it as ``cause=``

Tags:
    error-handling, exception-hierarchy, error-context, jobspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    SCHEDULER = "SCHEDULER"
    DATABASE = "DATABASE"
    INTERNAL = "INTERNAL"


class JobSpineError(Exception):
    """
    Base exception for all jobspine errors.

    Subclasses set ``default_category`` and ``default_code``; instances may
    override either.  ``code`` values are the ones the API layer maps to
    HTTP status codes (see ``jobspine.api.errors``).
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_code: str = "INTERNAL"

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.code = code or self.default_code
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> JobSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("Job not found").with_context(job_id=42)
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "code": self.code,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, code={self.code})"


# =============================================================================
# CALLER-FACING ERRORS
# =============================================================================


class DuplicateJobError(JobSpineError):
    """A job with the same (job_name, job_group) already exists."""

    default_category = ErrorCategory.CONFLICT
    default_code = "CONFLICT"


class NotFoundError(JobSpineError):
    """A job definition referenced by id or key does not exist."""

    default_category = ErrorCategory.NOT_FOUND
    default_code = "NOT_FOUND"


class NotRegisteredError(NotFoundError):
    """The scheduling engine has no job or trigger under the given key."""

    default_category = ErrorCategory.SCHEDULER


class InvalidScheduleError(JobSpineError):
    """A cron expression could not be parsed into a schedule."""

    default_category = ErrorCategory.VALIDATION
    default_code = "VALIDATION_FAILED"

    def __init__(self, expression: str, reason: str, **kwargs: Any):
        super().__init__(f"Invalid cron expression {expression!r}: {reason}", **kwargs)
        self.expression = expression
        self.reason = reason
        self.context.setdefault("cron_expression", expression)


class EngineUnavailableError(JobSpineError):
    """The scheduling engine is not started or has already shut down."""

    default_category = ErrorCategory.SCHEDULER
    default_code = "UNAVAILABLE"


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreError(JobSpineError):
    """The job store failed to read or write a definition."""

    default_category = ErrorCategory.DATABASE
    default_code = "INTERNAL"


__all__ = [
    "ErrorCategory",
    "JobSpineError",
    "DuplicateJobError",
    "NotFoundError",
    "NotRegisteredError",
    "InvalidScheduleError",
    "EngineUnavailableError",
    "StoreError",
]
