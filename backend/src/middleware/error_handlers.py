"""Centralized error handling system with proper categorization.

This module provides:
1. Error categories for every failure the API can report
2. Consistent error response formatting
3. Mapping from domain exceptions to HTTP responses
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from psycopg.errors import (
    CheckViolation as CheckViolationError,
    ForeignKeyViolation as ForeignKeyViolationError,
    NotNullViolation as NotNullViolationError,
)
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import DatabaseError, IntegrityError, OperationalError

from src.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    InternalError,
    NotReadyError,
    ResourceNotFoundError,
    ValidationError,
)


logger = logging.getLogger(__name__)


# === Error Categories ===


class ErrorCategory:
    """Error category constants."""

    VALIDATION = "VALIDATION_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    DATABASE = "DATABASE_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    CONFLICT = "CONFLICT_ERROR"
    NOT_READY = "NOT_READY"
    INTERNAL = "INTERNAL_ERROR"


class ErrorCode:
    """Specific error codes for better client handling."""

    # Validation errors
    INVALID_INPUT = "INVALID_INPUT"

    # Access errors
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"

    # Database errors
    DB_CONNECTION_FAILED = "DB_CONNECTION_FAILED"
    DB_CONSTRAINT_VIOLATION = "DB_CONSTRAINT_VIOLATION"
    DB_UNIQUE_VIOLATION = "DB_UNIQUE_VIOLATION"
    DB_FOREIGN_KEY_VIOLATION = "DB_FOREIGN_KEY_VIOLATION"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"

    # Media availability
    MEDIA_PROCESSING = "MEDIA_PROCESSING"
    MEDIA_FAILED = "MEDIA_FAILED"

    # Internal errors
    INTERNAL = "INTERNAL_ERROR"


# === Error Response Formatting ===


def format_error_response(
    category: str,
    code: str,
    detail: str,
    status_code: int,
    suggestions: list[str] | None = None,
    metadata: dict[str, Any] | None = None,
) -> JSONResponse:
    """Format a consistent error response."""
    content = {
        "error": {
            "category": category,
            "code": code,
            "detail": detail,
        }
    }

    if suggestions:
        content["error"]["suggestions"] = suggestions

    if metadata:
        content["error"]["metadata"] = metadata

    return JSONResponse(status_code=status_code, content=content)


async def handle_validation_errors(request: Request, exc: Exception) -> JSONResponse:
    """Handle validation errors from Pydantic and custom validators."""
    logger.info(f"Validation error on {request.method} {request.url.path}", extra={"error": str(exc)})

    if isinstance(exc, (PydanticValidationError, RequestValidationError)):
        # Extract field errors from Pydantic
        errors = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            errors.append({"field": field, "message": error["msg"], "type": error["type"]})

        return format_error_response(
            category=ErrorCategory.VALIDATION,
            code=ErrorCode.INVALID_INPUT,
            detail="Invalid input data",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            metadata={"errors": errors},
        )
    # Custom validation error
    return format_error_response(
        category=ErrorCategory.VALIDATION,
        code=ErrorCode.INVALID_INPUT,
        detail=str(exc),
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def handle_domain_errors(request: Request, exc: DomainError) -> JSONResponse:  # noqa: PLR0911
    """Translate domain exceptions raised by the services."""
    if isinstance(exc, ValidationError):
        return await handle_validation_errors(request, exc)

    if isinstance(exc, AuthenticationError):
        logger.info(f"Unauthenticated request to {request.method} {request.url.path}")
        return format_error_response(
            category=ErrorCategory.AUTHENTICATION,
            code=ErrorCode.UNAUTHENTICATED,
            detail=exc.message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    if isinstance(exc, AuthorizationError):
        logger.warning(f"Forbidden {request.method} {request.url.path}: {exc.message}")
        return format_error_response(
            category=ErrorCategory.AUTHORIZATION,
            code=ErrorCode.FORBIDDEN,
            detail=exc.message,
            status_code=status.HTTP_403_FORBIDDEN,
        )

    if isinstance(exc, ResourceNotFoundError):
        return format_error_response(
            category=ErrorCategory.RESOURCE_NOT_FOUND,
            code=ErrorCode.NOT_FOUND,
            detail=exc.message,
            status_code=status.HTTP_404_NOT_FOUND,
            metadata={"resource_type": exc.resource_type, "resource_id": str(exc.resource_id)},
        )

    if isinstance(exc, NotReadyError):
        retryable = exc.retryable
        return format_error_response(
            category=ErrorCategory.NOT_READY,
            code=ErrorCode.MEDIA_PROCESSING if retryable else ErrorCode.MEDIA_FAILED,
            detail=exc.message,
            status_code=status.HTTP_409_CONFLICT,
            suggestions=["Poll again shortly"] if retryable else ["Ask an instructor to re-upload or retry the video"],
            metadata={"media_id": str(exc.media_id), "status": exc.status, "retryable": retryable},
        )

    if isinstance(exc, ConflictError):
        return format_error_response(
            category=ErrorCategory.CONFLICT,
            code=exc.code,
            detail=exc.message,
            status_code=status.HTTP_409_CONFLICT,
        )

    if isinstance(exc, InternalError):
        logger.error(f"Internal error on {request.method} {request.url.path}: {exc.message}")
        return format_error_response(
            category=ErrorCategory.INTERNAL,
            code=ErrorCode.INTERNAL,
            detail=exc.message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.error(f"Unmapped domain error on {request.method} {request.url.path}: {exc.message}")
    return format_error_response(
        category=ErrorCategory.INTERNAL,
        code=ErrorCode.INTERNAL,
        detail=exc.message,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def handle_database_errors(request: Request, exc: Exception) -> JSONResponse:
    """Handle database-related errors."""
    logger.exception(
        f"Database error on {request.method} {request.url.path}: {exc}",
        extra={"error_type": type(exc).__name__},
        exc_info=(type(exc), exc, exc.__traceback__),
    )

    original = getattr(exc, "orig", None)

    # Map specific database errors to user-friendly messages
    if isinstance(exc, IntegrityError) and "unique" in str(exc).lower():
        return format_error_response(
            category=ErrorCategory.DATABASE,
            code=ErrorCode.DB_UNIQUE_VIOLATION,
            detail="This resource already exists",
            status_code=status.HTTP_409_CONFLICT,
            suggestions=["Try using a different identifier"],
        )

    if isinstance(original, ForeignKeyViolationError):
        return format_error_response(
            category=ErrorCategory.DATABASE,
            code=ErrorCode.DB_FOREIGN_KEY_VIOLATION,
            detail="Referenced resource does not exist",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(original, (NotNullViolationError, CheckViolationError)):
        return format_error_response(
            category=ErrorCategory.DATABASE,
            code=ErrorCode.DB_CONSTRAINT_VIOLATION,
            detail="Required data is missing or invalid",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, OperationalError):
        return format_error_response(
            category=ErrorCategory.DATABASE,
            code=ErrorCode.DB_CONNECTION_FAILED,
            detail="Database connection error",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            suggestions=["Please try again later"],
        )

    # Generic database error
    return format_error_response(
        category=ErrorCategory.DATABASE,
        code=ErrorCode.INTERNAL,
        detail="A database error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach the handlers above to an application."""
    app.add_exception_handler(DomainError, handle_domain_errors)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_errors)
    app.add_exception_handler(PydanticValidationError, handle_validation_errors)
    app.add_exception_handler(IntegrityError, handle_database_errors)
    app.add_exception_handler(OperationalError, handle_database_errors)
    app.add_exception_handler(DatabaseError, handle_database_errors)
