"""
Habit Tracker Backend - Custom Exception Hierarchy
==================================================

What:  Application-specific exceptions for request and database failures.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers registered in main.py turn them into JSON error
       responses with the status code listed below.
Who:   Raised by the connection pool, query helpers, services and dependencies.

Exception Hierarchy:
    HabitTrackerError (base)
    ├── ValidationError            → 422 Unprocessable Entity
    ├── BadRequestError            → 400 Bad Request
    ├── UnauthorizedError          → 401 Unauthorized
    ├── ForbiddenError             → 403 Forbidden
    ├── NotFoundError              → 404 Not Found
    ├── ConflictError              → 409 Conflict
    ├── RateLimitExceededError     → 429 Too Many Requests
    └── DatabaseError              → 500 Internal Server Error
        ├── DatabaseConnectionError   one physical open / PRAGMA failed
        ├── PoolInitError             warm-up failed; startup should abort
        ├── PoolExhaustedError        overflow cap reached
        ├── PoolShutdownError         teardown orchestration failed
        ├── TransactionError          batch rolled back
        └── ConstraintViolationError  → 400 (SQLite integrity failure)
"""

from typing import Any, Dict, Optional


class HabitTrackerError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for 5xx errors)
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


# ══════════════════════════════════════════════════════════════════════════
# Client errors
# ══════════════════════════════════════════════════════════════════════════


class ValidationError(HabitTrackerError):
    """
    Raised when input is well-formed but breaks a business rule
    (e.g. a habit whose end_date precedes its start_date).

    `errors` maps field names to messages and is returned as `details`.
    """

    status_code = 422
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.errors = errors or {}
        ctx = context or {}
        if self.errors:
            ctx["errors"] = self.errors
        super().__init__(message=message, context=ctx)


class BadRequestError(HabitTrackerError):
    status_code = 400
    error_code = "bad_request"

    def __init__(self, message: str = "Bad request", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class UnauthorizedError(HabitTrackerError):
    """Missing, expired or invalid bearer token, or bad login credentials."""

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self, message: str = "Unauthorized access", context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(HabitTrackerError):
    status_code = 403
    error_code = "forbidden"

    def __init__(self, message: str = "Forbidden access", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class NotFoundError(HabitTrackerError):
    """
    Raised when a requested resource does not exist.

    Habits owned by another user are reported as not found too, so a client
    cannot probe which habit IDs exist.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(HabitTrackerError):
    """Raised when creating a resource that already exists (e.g. duplicate email)."""

    status_code = 409
    error_code = "conflict"

    def __init__(
        self, message: str = "Resource already exists", context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(HabitTrackerError):
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, retry_after: int = 60, context: Optional[Dict[str, Any]] = None):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


# ══════════════════════════════════════════════════════════════════════════
# Database errors
# ══════════════════════════════════════════════════════════════════════════


class DatabaseError(HabitTrackerError):
    """
    Raised when a database operation fails.

    Security Note:
        The message returned to the client is always generic. The SQL text and
        driver error are kept in `context` and logged server-side only.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "Database error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseConnectionError(DatabaseError):
    """
    A physical connection could not be opened or configured.

    Fatal to that single creation attempt, not to the pool. The underlying
    driver error is available as `__cause__`.
    """

    def __init__(
        self,
        message: str = "Failed to connect to database",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PoolInitError(DatabaseError):
    def __init__(
        self,
        message: str = "Database connection pool initialization failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PoolExhaustedError(DatabaseError):
    """No idle connection and the overflow cap (DB_MAX_OVERFLOW) is reached."""

    def __init__(
        self,
        message: str = "No database connection available",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PoolShutdownError(DatabaseError):
    def __init__(
        self,
        message: str = "Failed to close database connections",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TransactionError(DatabaseError):
    def __init__(self, message: str = "Transaction failed", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class ConstraintViolationError(DatabaseError):
    """A UNIQUE, NOT NULL, CHECK or FOREIGN KEY constraint rejected a write."""

    status_code = 400
    error_code = "constraint_violation"

    def __init__(
        self,
        message: str = "Database constraint violation",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
