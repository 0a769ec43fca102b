"""
NoteSync Backend — Exception Hierarchy
=======================================

What:  Application-specific exceptions, one per failure kind.
How:   Each exception carries a human-readable message, a context dict, a
       machine-readable `error_code` and the HTTP `status_code` the global
       handlers in main.py answer with.
Who:   Raised by stores, the coordinator and the generation pipeline.

Exception Hierarchy:
    NoteSyncError (base)
    ├── ValidationError          → 400 Bad Request
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── ExternalServiceError     → 503 Service Unavailable (400 when safety-blocked)
    ├── InternalError            → 500 Internal Server Error
    └── RateLimitExceededError   → 429 Too Many Requests
"""

from typing import Any, Dict, Optional


class NoteSyncError(Exception):
    """
    Base exception for all NoteSync application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Structured details (which field, which constraint, side-effect counts)
    """

    error_code = "internal_error"
    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteSyncError):
    """
    Raised when client input is missing or malformed.

    When: missing required note fields, blank category name, unsupported
          document type, oversized upload, missing X-User-ID.
    """

    error_code = "validation_error"
    status_code = 400

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


class NotFoundError(NoteSyncError):
    """
    Raised when a referenced entity is absent or not owned by the caller.

    The store layer turns SQLAlchemy's `None` result into this exception.
    """

    error_code = "not_found"
    status_code = 404

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


class ConflictError(NoteSyncError):
    """
    Raised on a uniqueness violation.

    When: duplicate note doc_id, or a category name that collides
          case-insensitively with another category of the same owner.
    The storage-level unique index is authoritative; an IntegrityError from
    it is translated into this exception.
    """

    error_code = "conflict"
    status_code = 409

    def __init__(
        self,
        message: str = "The resource already exists",
        constraint: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if constraint:
            ctx["constraint"] = constraint
        super().__init__(message=message, context=ctx)
        self.constraint = constraint


class ExternalServiceError(NoteSyncError):
    """
    Raised when the generative-AI provider fails.

    Reasons:
        unavailable          timeout, network failure, open circuit breaker
        safety_blocked       the provider refused the content
        invalid_credentials  the API key was rejected
        quota_exceeded       the provider's quota or rate limit was hit
        malformed_response   the provider answered without extractable text

    The provider's diagnostic message is kept in `provider_message`. The
    pipeline never retries; retries are the caller's decision.
    """

    error_code = "external_service_error"
    status_code = 503

    UNAVAILABLE = "unavailable"
    SAFETY_BLOCKED = "safety_blocked"
    INVALID_CREDENTIALS = "invalid_credentials"
    QUOTA_EXCEEDED = "quota_exceeded"
    MALFORMED_RESPONSE = "malformed_response"

    def __init__(
        self,
        message: str = "The content generation service is unavailable",
        reason: str = UNAVAILABLE,
        provider_message: Optional[str] = None,
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["reason"] = reason
        if provider_message:
            ctx["provider_message"] = provider_message
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.reason = reason
        self.provider_message = provider_message
        self.retry_after = retry_after
        if reason == self.SAFETY_BLOCKED:
            self.status_code = 400


class InternalError(NoteSyncError):
    """
    Raised when a storage operation fails unexpectedly.

    The underlying message is preserved in `context["error"]` for
    server-side diagnostics. Never retried automatically.
    """

    error_code = "internal_error"
    status_code = 500

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(NoteSyncError):
    """Raised when a caller exceeds the sliding-window request limit."""

    error_code = "rate_limit_exceeded"
    status_code = 429

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
