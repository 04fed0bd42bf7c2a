"""
PeerRate Backend - Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for every failure the services report.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers registered in main.py turn them into structured
       JSON responses with the matching HTTP status code.
Who:   Raised by services, gateways and dependencies; caught by main.py.

Exception Hierarchy:
    PeerRateError (base)
    ├── ValidationError       → 400 Bad Request
    ├── AuthenticationError   → 401 Unauthorized
    ├── NotFoundError         → 404 Not Found
    ├── ConflictError         → 409 Conflict
    ├── StorageError          → 500 Internal Server Error
    ├── DatabaseError         → 500 Internal Server Error
    ├── CacheError            → 500 (normally absorbed by ReviewService)
    └── ExternalServiceError  → 503 Service Unavailable
"""

from typing import Any, Dict, Optional


class PeerRateError(Exception):
    """
    Base exception for all PeerRate application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, only returned for 4xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PeerRateError):
    """
    Raised when client input breaks a business rule.

    When:    Self-review, self-follow, missing search term, unsupported image
             type, undecodable image payload, unknown social provider.
    HTTP:    400 Bad Request

    Schema-level problems (missing JSON fields, scores out of range) are
    rejected earlier by FastAPI with 422.
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


class AuthenticationError(PeerRateError):
    """
    Raised when the acting user cannot be resolved from the request.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Not authenticated",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(PeerRateError):
    """
    Raised when a referenced user, review or relationship does not exist.

    HTTP:    404 Not Found

    SQLAlchemy returns None for missing rows; services convert that None
    into this exception before doing any write.
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
        self.resource = resource


class ConflictError(PeerRateError):
    """
    Raised when a write would collide with state owned by someone else.

    When:    Linking a social account whose email belongs to another user.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The request conflicts with existing data",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageError(PeerRateError):
    """
    Raised when the object store rejects or fails an upload.

    HTTP:    500 Internal Server Error

    The bucket, key and provider error go to the log only; the client sees
    the generic message.
    """

    def __init__(
        self,
        message: str = "Failed to upload profile picture",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(PeerRateError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic; SQL details are
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CacheError(PeerRateError):
    """
    Raised by RatingCache when Redis is unreachable or a payload is malformed.

    ReviewService treats the cache as best-effort: a failed read becomes a
    recompute and a failed write is logged. The handler in main.py only
    fires if some other caller lets it escape.
    """

    def __init__(
        self,
        message: str = "Rating cache operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ExternalServiceError(PeerRateError):
    """
    Raised when a social provider cannot be reached while linking an account.

    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "The social account provider is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
