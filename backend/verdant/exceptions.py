"""
Verdant Backend: Custom Exception Hierarchy
===========================================

What:  Application-specific exceptions for the different error scenarios.
Why:   Targeted error handling with appropriate HTTP status codes and
       user-friendly messages, without leaking internal details.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) translate them into
       structured JSON error responses.

Exception Hierarchy:
    VerdantError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found
    │   └── AccessError          → 404 (missing OR not owned, deliberately the same)
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── PhotoProcessingError     → 500 (photo could not be decoded/normalized)
    ├── FileStorageError         → 500
    ├── DatabaseError            → 500
    ├── AIServiceError           → 503
    ├── CircuitBreakerOpenError  → 503
    └── EnrichmentError          → never returned; background failures only

Synchronous-path errors propagate to the HTTP layer. Background enrichment
errors are caught at the pipeline boundary and only logged, because
recording care must not depend on AI-service availability.
"""

from typing import Any, Dict, Optional


class VerdantError(Exception):
    """
    Base exception for all Verdant application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(VerdantError):
    """
    Client input failed a business rule (e.g. photo larger than allowed).

    Schema-level problems (missing careType, wrong types) are rejected by
    FastAPI itself with 422 before any service code runs.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(VerdantError):
    """No requesting identity could be resolved for the call."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(VerdantError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing records; services convert that into
    NotFoundError so the HTTP layer can answer 404.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class AccessError(NotFoundError):
    """
    The plant does not exist or belongs to someone else.

    Both causes produce the same message and status so that callers cannot
    scan for other users' plant IDs. The real cause goes to `context`.
    """

    def __init__(
        self,
        resource_id: Optional[str] = None,
        reason: str = "missing",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["reason"] = reason
        super().__init__(resource="plant", resource_id=resource_id, context=ctx)


class PhotoProcessingError(VerdantError):
    """
    The attached photo could not be decoded or normalized.

    Aborts the whole ingestion; no care log is persisted.
    """

    def __init__(
        self,
        message: str = "Failed to process photo",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(VerdantError):
    """Could not read, write, or delete a file on the storage volume."""

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AIServiceError(VerdantError):
    """
    The external AI capability failed or timed out.

    Only ever raised inside the enrichment pipeline today, where it is
    caught and logged. The 503 mapping exists for any future request-path use.
    """

    def __init__(
        self,
        message: str = "AI service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(VerdantError):
    """
    Raised when the circuit breaker is in OPEN state.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for M seconds)
        → After M seconds → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"It will be retried in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(VerdantError):
    """
    A database operation failed unexpectedly.

    The client always receives a generic message; details are logged.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(VerdantError):
    """Client exceeded the per-caller request rate limit."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class EnrichmentError(VerdantError):
    """
    A background enrichment step failed.

    Never surfaced to any caller. The pipeline wraps the underlying failure
    in this type so log lines name the step that broke.
    """

    def __init__(
        self,
        step: str,
        message: str = "Enrichment step failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["step"] = step
        super().__init__(message=message, context=ctx)
        self.step = step
