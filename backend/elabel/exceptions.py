"""
eLabel API — Custom Exception Hierarchy
========================================

What:  Application-specific exceptions for the error scenarios of the API.
Why:   Services raise domain exceptions; global handlers registered in
       main.py turn them into consistent JSON responses with the right
       status code, so no route needs its own try/except.
How:   Each exception carries a user-facing message and an optional context
       dict that is logged but never returned to the client.

Exception Hierarchy:
    ELabelError (base)
    ├── ValidationError          → 400 Bad Request, field-level error list
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found, message names the missing key
    ├── ConflictError            → 409 Conflict (duplicate unique key)
    ├── PayloadTooLargeError     → 413 Payload Too Large (middleware)
    ├── RateLimitExceededError   → 429 Too Many Requests (middleware)
    ├── DatabaseError            → 500 Internal Server Error
    └── OAuthError               → redirect to the front-end error page
"""

from typing import Any, Dict, List, Optional


class ELabelError(Exception):
    """
    Base exception for all eLabel application errors.

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


class ValidationError(ELabelError):
    """
    Raised when client input fails validation.

    Carries a list of ``{"field": ..., "message": ...}`` pairs. FastAPI's own
    RequestValidationError is converted into this type by the global handler
    so body, path and query failures share one response shape.

    Example response:
        {
            "error": "validation_error",
            "message": "Validation failed",
            "errors": [{"field": "kitNumber", "message": "Kit number must be exactly 6 digits"}]
        }
    """

    def __init__(
        self,
        errors: Optional[List[Dict[str, str]]] = None,
        message: str = "Validation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.errors = errors or []


class AuthenticationError(ELabelError):
    """
    Raised when local credentials or a bearer token cannot be verified.

    HTTP: 401 Unauthorized. The OAuth flow never raises this; it redirects
    with an OAuthError instead.
    """

    def __init__(
        self,
        message: str = "Not authorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(ELabelError):
    """
    Raised when a lookup matches no stored document.

    The message names the key that was looked up, e.g.
    "Label not found for that identifierCode".
    """

    def __init__(
        self,
        message: str = "The requested resource was not found",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConflictError(ELabelError):
    """Raised when a create would violate a uniqueness constraint."""

    def __init__(
        self,
        message: str = "Resource already exists",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class PayloadTooLargeError(ELabelError):
    """Raised by the body-limit middleware for oversized requests."""

    def __init__(
        self,
        limit: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"Request body too large. Maximum allowed size is {limit} bytes."
        ctx = context or {}
        ctx["limit"] = limit
        super().__init__(message=message, context=ctx)
        self.limit = limit


class RateLimitExceededError(ELabelError):
    """
    Raised when a client exceeds the per-IP request limit.

    HTTP: 429 Too Many Requests, with a Retry-After header holding the
    seconds until the current window closes.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests from this IP. Please try again in {retry_after} seconds."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DatabaseError(ELabelError):
    """
    Raised when a store operation fails unexpectedly.

    The client always gets a generic message; the underlying error type is
    kept in `context` for the server log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class OAuthError(ELabelError):
    """
    Raised when the federated sign-in cannot produce a local user.

    When: provider not configured, provider error, profile without email,
    or no user resolved on callback. The auth router turns this into a
    redirect to `{frontend}/login?error=auth_failed&message=...`.
    """

    def __init__(
        self,
        message: str = "Authentication failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
