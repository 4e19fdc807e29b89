"""
Application exceptions and global exception handlers.

Provides the pipeline's error taxonomy (provider, assistant and persistence
failures) plus centralized handlers that render every failure in the same
JSON envelope with request context.
"""

from __future__ import annotations

import traceback

from typing import Any

import asyncpg

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.middleware.request_context import get_request_context, get_request_id
from core.constants import get_settings
from models.error_models import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    get_status_code,
)
from utils.logger import logger


class AppException(Exception):
    """Base application exception with error code support.

    Example:
        raise AppException(
            code=ErrorCode.ASSISTANT_NOT_FOUND,
            message="Assistant not found",
            details={"assistant_id": assistant_id}
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Resource not found errors."""

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
    ):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(code=code, message=message, details={"resource": resource, "id": resource_id})


class AssistantNotFoundError(ResourceNotFoundError):
    """Mentioned or requested assistant does not exist."""

    def __init__(self, assistant_id: str):
        super().__init__(resource="Assistant", resource_id=assistant_id, code=ErrorCode.ASSISTANT_NOT_FOUND)
        self.assistant_id = assistant_id


class ExternalServiceError(AppException):
    """Base for failures talking to an LLM vendor."""

    def __init__(
        self,
        service: str,
        message: str,
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        cause: Exception | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            code=code,
            message=f"{service}: {message}",
            details={"service": service, **(details or {})},
            cause=cause,
        )
        self.service = service


class ProviderAuthError(ExternalServiceError):
    """No API key configured for the provider. Configuration problem, never retried."""

    def __init__(self, service: str):
        super().__init__(service, "API key not configured", code=ErrorCode.PROVIDER_AUTH_MISSING)


class ProviderHTTPError(ExternalServiceError):
    """Vendor answered with a non-2xx status."""

    def __init__(self, service: str, status: int, vendor_message: str):
        code = ErrorCode.EXTERNAL_RATE_LIMITED if status == 429 else ErrorCode.PROVIDER_HTTP_ERROR
        super().__init__(
            service,
            f"API error ({status}): {vendor_message}",
            code=code,
            details={"status": status},
        )
        self.status = status
        self.vendor_message = vendor_message


class ProviderResponseShapeError(ExternalServiceError):
    """Vendor answered 2xx but the body lacks the expected fields."""

    def __init__(self, service: str, message: str = "unexpected response shape", cause: Exception | None = None):
        super().__init__(service, message, code=ErrorCode.PROVIDER_BAD_RESPONSE, cause=cause)


class ProviderTimeoutError(ExternalServiceError):
    """Vendor call exceeded the configured per-call timeout."""

    def __init__(self, service: str, timeout: float):
        super().__init__(service, f"no complete response within {timeout:g}s", code=ErrorCode.EXTERNAL_TIMEOUT)
        self.timeout = timeout


class UnsupportedProviderError(AppException):
    """Assistant configured with a provider value that has no adapter."""

    def __init__(self, provider: str):
        super().__init__(
            code=ErrorCode.PROVIDER_UNSUPPORTED,
            message=f"Unsupported AI provider: {provider}",
            details={"provider": provider},
        )
        self.provider = provider


class DatabaseError(AppException):
    """Database-related errors."""

    def __init__(
        self,
        message: str = "Database error",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(code=code, message=message, cause=cause)


class PersistenceError(DatabaseError):
    """Message store read or write failed."""

    def __init__(self, operation: str, cause: Exception | None = None):
        super().__init__(message=f"Message store {operation} failed", cause=cause)
        self.operation = operation


def _create_error_response(
    code: ErrorCode,
    message: str,
    request: Request | None = None,
    details: list[ErrorDetail] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> ErrorResponse:
    """Create a standardized error response."""
    request_id = get_request_id()
    path = request.url.path if request else None

    return ErrorResponse(
        code=code,
        message=message,
        request_id=request_id,
        path=path,
        details=details,
        debug=debug_info,
    )


def _log_error(
    error: Exception,
    code: ErrorCode,
    status_code: int,
) -> None:
    """Log error with appropriate level and context."""
    ctx = get_request_context()
    log_context = ctx.to_log_context() if ctx else {}
    log_context["error_code"] = code.value
    log_context["status_code"] = status_code

    if status_code >= 500:
        logger.error(f"Server error: {code.value} - {error}", exc_info=True, **log_context)
    elif status_code >= 400:
        logger.warning(f"Client error: {code.value} - {error}", **log_context)


def _validation_details(errors: Any) -> list[ErrorDetail]:
    return [
        ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in errors
    ]


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application-specific exceptions."""
    status_code = get_status_code(exc.code)

    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "cause": str(exc.cause) if exc.cause else None,
        }

    details = None
    if exc.details:
        details = [ErrorDetail(message=str(v), field=k) for k, v in exc.details.items() if v is not None]

    error_response = _create_error_response(
        code=exc.code,
        message=exc.message,
        request=request,
        details=details,
        debug_info=debug_info,
    )

    _log_error(exc, exc.code, status_code)

    return JSONResponse(
        status_code=status_code,
        content=error_response.to_dict(include_debug=settings.debug),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with consistent formatting."""
    status_to_code = {
        400: ErrorCode.VALIDATION_ERROR,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        429: ErrorCode.EXTERNAL_RATE_LIMITED,
        500: ErrorCode.INTERNAL_ERROR,
        502: ErrorCode.EXTERNAL_SERVICE_ERROR,
        504: ErrorCode.EXTERNAL_TIMEOUT,
    }

    code = status_to_code.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    error_response = _create_error_response(code=code, message=message, request=request)
    _log_error(exc, code, exc.status_code)

    return JSONResponse(status_code=exc.status_code, content=error_response.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors from request parsing."""
    error_response = _create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        request=request,
        details=_validation_details(exc.errors()),
    )

    _log_error(exc, ErrorCode.VALIDATION_ERROR, 422)

    return JSONResponse(status_code=422, content=error_response.to_dict())


async def pydantic_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic ValidationError raised while building models from rows."""
    error_response = _create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Data validation failed",
        request=request,
        details=_validation_details(exc.errors()),
    )

    _log_error(exc, ErrorCode.VALIDATION_ERROR, 422)

    return JSONResponse(status_code=422, content=error_response.to_dict())


async def asyncpg_exception_handler(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    """Handle PostgreSQL errors that escaped the message store."""
    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {
            "pg_error_code": getattr(exc, "sqlstate", None),
            "pg_error_class": type(exc).__name__,
        }

    error_response = _create_error_response(
        code=ErrorCode.DATABASE_ERROR,
        message="Database operation failed",
        request=request,
        debug_info=debug_info,
    )

    _log_error(exc, ErrorCode.DATABASE_ERROR, 500)

    return JSONResponse(
        status_code=500,
        content=error_response.to_dict(include_debug=settings.debug),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with graceful degradation."""
    settings = get_settings()

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True,
        request_id=get_request_id(),
        path=request.url.path,
    )

    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": traceback.format_exc(),
        }

    error_response = _create_error_response(
        code=ErrorCode.INTERNAL_UNEXPECTED,
        message="An unexpected error occurred",
        request=request,
        debug_info=debug_info,
    )

    return JSONResponse(
        status_code=500,
        content=error_response.to_dict(include_debug=settings.debug),
    )


def describe_error(exc: BaseException) -> str:
    """Human-readable one-liner for SSE error frames and failure reports."""
    if isinstance(exc, AppException):
        return exc.message
    return str(exc) or type(exc).__name__


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    # Starlette's signature expects Exception; covariant handlers are safe at runtime
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValidationError, pydantic_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(asyncpg.PostgresError, asyncpg_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "AppException",
    "AssistantNotFoundError",
    "DatabaseError",
    "ExternalServiceError",
    "PersistenceError",
    "ProviderAuthError",
    "ProviderHTTPError",
    "ProviderResponseShapeError",
    "ProviderTimeoutError",
    "ResourceNotFoundError",
    "UnsupportedProviderError",
    "app_exception_handler",
    "asyncpg_exception_handler",
    "describe_error",
    "generic_exception_handler",
    "http_exception_handler",
    "pydantic_exception_handler",
    "register_exception_handlers",
    "validation_exception_handler",
]
