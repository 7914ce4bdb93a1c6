"""
NoteTree Backend — Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions mapped to HTTP responses.
How:   Each exception carries a user-facing message and a context dict.
       Global handlers registered in main.py turn them into JSON errors.
Who:   Raised by the tree store (validation only), services and middleware.

Exception Hierarchy:
    NoteTreeError (base)
    ├── ValidationError          → 400 Bad Request
    ├── NotFoundError            → 404 Not Found
    ├── DatabaseError            → 500 Internal Server Error
    └── RateLimitExceededError   → 429 Too Many Requests

Tree-level operations on a missing id are no-ops and never raise; the
service layer decides when a missing id becomes a NotFoundError.
"""

from typing import Any, Dict, Optional


class NoteTreeError(Exception):
    """
    Base exception for all NoteTree application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for 4xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteTreeError):
    """
    Raised when client input fails validation.

    When:    Malformed import payload, duplicate note ids, unusable project name.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Invalid notes format. Expected { notes: [] }",
            "details": {"field": "notes"}
        }
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


class NotFoundError(NoteTreeError):
    """
    Raised when a requested resource does not exist.

    When:    Unknown project id, trashed project, or unknown note id at the
             service layer.
    HTTP:    404 Not Found
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
        self.resource_id = resource_id


class DatabaseError(NoteTreeError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The client always receives a generic message; the context (operation,
    project id, original exception type) is only written to the server log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(NoteTreeError):
    """
    Raised when a client exceeds the per-IP write rate limit.

    HTTP:    429 Too Many Requests (with a Retry-After header)
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more changes."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
