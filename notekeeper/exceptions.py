"""
NoteKeeper Backend — Custom Exception Hierarchy
=================================================

What:  Defines application-specific exceptions for different error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with the matching HTTP status.
Who:   Raised by repositories, blob stores, services and auth dependencies.

Exception Hierarchy:
    NoteKeeperError (base)
    ├── ValidationError              → 400 Bad Request (schema constraint violated)
    ├── BadRequestError              → 400 Bad Request (missing/invalid input)
    ├── DependencyUnavailableError   → 400 Bad Request (record store / blob store failed)
    ├── NotFoundError                → 404 Not Found (absent OR owned by someone else)
    └── AuthenticationError          → 401 Unauthorized

Dependency failures share the 400 status with client errors; clients tell them
apart by the `error` code in the body. Nothing is retried automatically.
"""

from typing import Any, Dict, Optional


class NoteKeeperError(Exception):
    """
    Base exception for all NoteKeeper application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for server-side errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteKeeperError):
    """
    Raised when data violates a schema constraint (e.g. missing title,
    duplicate attachment identifier on a note).

    HTTP: 400 Bad Request
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


class BadRequestError(NoteKeeperError):
    """
    Raised when a request is missing required input or the input is unusable,
    e.g. POST /notes/{id}/images without an `image` file, with an empty file,
    or with a non-image content type.

    HTTP: 400 Bad Request
    """

    def __init__(
        self,
        message: str = "Bad request",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(NoteKeeperError):
    """
    Raised when a requested resource does not exist for the caller.

    A note owned by another user raises exactly the same error as a note that
    does not exist, so responses never reveal other users' note ids.

    HTTP: 404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource.capitalize()} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DependencyUnavailableError(NoteKeeperError):
    """
    Raised when the record store or the blob store is unreachable, times out,
    or answers with an error.

    HTTP: 400 Bad Request

    `dependency` names the failing collaborator ("database" or "blob_store").
    Details such as SQL text or provider responses go into `context` and are
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A required service is temporarily unavailable. Please try again later.",
        dependency: str = "unknown",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["dependency"] = dependency
        super().__init__(message=message, context=ctx)
        self.dependency = dependency


class AuthenticationError(NoteKeeperError):
    """
    Raised when the bearer token is missing, malformed, expired, or does not
    carry a subject.

    HTTP: 401 Unauthorized (with WWW-Authenticate: Bearer)
    """

    def __init__(
        self,
        message: str = "Invalid or expired authentication token",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
