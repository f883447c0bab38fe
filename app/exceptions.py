# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error that leaves the service carries a machine-readable code and,
# where possible, a suggestion telling the caller how to fix it.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    MultipleResultsFound,
    NoResultFound,
    OperationalError,
    SQLAlchemyError,
)

logger = logging.getLogger(__name__)


class AppException(Exception):
    """
    Base exception for the API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def with_operation(self, operation: str) -> "AppException":
        """Attach the name of the failing operation."""
        self.details["operation"] = operation
        return self

    def with_resource(self, resource: str) -> "AppException":
        """Attach the name of the resource involved."""
        self.details["resource"] = resource
        return self

    def with_context(self, key: str, value: Any) -> "AppException":
        """Attach an arbitrary context value."""
        self.details[key] = value
        return self

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Client Errors
# =============================================================================

class ValidationError(AppException):
    """Raised when a request is well-formed but semantically invalid."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=422,
            suggestion="Check the request body against the API documentation",
            details=details,
        )


class UnauthorizedError(AppException):
    """Raised when a request is not authenticated."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            status_code=401,
            suggestion="Send a valid bearer token in the Authorization header",
        )


class ForbiddenError(AppException):
    """Raised when an authenticated caller lacks permissions."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            code="FORBIDDEN",
            status_code=403,
        )


class NotFoundError(AppException):
    """Raised when a resource doesn't exist."""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} not found: {identifier}"
        super().__init__(
            message=message,
            code=f"{resource.upper()}_NOT_FOUND",
            status_code=404,
            suggestion=f"Check that the {resource.lower()} id is correct",
            details={"resource": resource.lower()} if identifier is None
            else {"resource": resource.lower(), "id": str(identifier)},
        )


class ConflictError(AppException):
    """Raised when a write violates a uniqueness constraint."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=409,
            suggestion="A record with the same unique value already exists",
            details=details,
        )


# =============================================================================
# Server Errors
# =============================================================================

class DatabaseError(AppException):
    """Raised when a database operation fails."""

    def __init__(self, message: str, cause: BaseException | None = None, code: str = "DATABASE_ERROR",
                 status_code: int = 500):
        details = {"error": str(cause)} if cause is not None else None
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            suggestion="Try again later or contact support if the issue persists",
            details=details,
        )
        self.cause = cause


class DatabaseConnectionError(DatabaseError):
    """Raised when the database cannot be reached after all retries."""

    def __init__(self, message: str, cause: BaseException | None = None, attempts: int | None = None):
        super().__init__(
            message,
            cause=cause,
            code="DATABASE_UNAVAILABLE",
            status_code=503,
        )
        self.suggestion = "Check DB_HOST, DB_PORT and credentials, and that the database is running"
        if attempts is not None:
            self.details["retry_attempts"] = attempts


class RequestTimeoutError(AppException):
    """Raised when an operation exceeded its deadline."""

    def __init__(self, message: str = "Request timeout exceeded"):
        super().__init__(
            message=message,
            code="TIMEOUT",
            status_code=504,
            suggestion="Retry the request; narrow the query if it keeps timing out",
        )


class InternalError(AppException):
    """Raised for unexpected failures."""

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(
            message=message,
            code="INTERNAL_ERROR",
            status_code=500,
        )


# =============================================================================
# Classification
# =============================================================================

def classify_exception(exc: BaseException) -> AppException:
    """
    Convert any exception into an AppException.

    ORM sentinel errors are mapped to the matching HTTP semantics; anything
    unrecognised becomes an internal error.
    """
    if isinstance(exc, AppException):
        return exc

    if isinstance(exc, NoResultFound):
        return NotFoundError("Resource")

    if isinstance(exc, MultipleResultsFound):
        return DatabaseError("Query returned more than one row", exc)

    if isinstance(exc, IntegrityError):
        return ConflictError("Database constraint violated", details={"error": str(exc.orig)})

    if isinstance(exc, OperationalError):
        return DatabaseError("Database is unavailable", exc, code="DATABASE_UNAVAILABLE", status_code=503)

    if isinstance(exc, (DBAPIError, SQLAlchemyError)):
        return DatabaseError("Database operation failed", exc)

    if isinstance(exc, TimeoutError):
        return RequestTimeoutError()

    return InternalError()


# =============================================================================
# Exception Handlers
# =============================================================================

def _log_app_exception(request: Request, exc: AppException) -> None:
    message = f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}"
    if exc.is_server_error:
        logger.error(message)
        observability = getattr(request.app.state, "observability", None)
        if observability is not None:
            observability.report(
                exc.cause if isinstance(exc, DatabaseError) and exc.cause else exc,
                operation=exc.details.get("operation", "http_request"),
                error_code=exc.code,
                path=request.url.path,
                method=request.method,
            )
    else:
        logger.warning(message)


async def app_exception_handler(
    request: Request,
    exc: AppException
) -> JSONResponse:
    """
    Convert AppException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    _log_app_exception(request, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def sqlalchemy_exception_handler(
    request: Request,
    exc: SQLAlchemyError
) -> JSONResponse:
    """Map ORM errors that escaped the service layer."""
    return await app_exception_handler(request, classify_exception(exc))
