"""
Standardized error response models for the assistant pipeline API.

Provides consistent error formatting across REST endpoints and the
server-sent-event stream, with request tracking and debugging context.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Validation errors (2xxx)
    VALIDATION_ERROR = "VAL_2001"

    # Resource errors (3xxx)
    RESOURCE_NOT_FOUND = "RES_3001"
    RESOURCE_CONFLICT = "RES_3003"
    ASSISTANT_NOT_FOUND = "RES_3010"

    # Provider errors (7xxx)
    EXTERNAL_SERVICE_ERROR = "EXT_7001"
    EXTERNAL_TIMEOUT = "EXT_7002"
    EXTERNAL_RATE_LIMITED = "EXT_7003"
    PROVIDER_AUTH_MISSING = "EXT_7010"
    PROVIDER_HTTP_ERROR = "EXT_7011"
    PROVIDER_BAD_RESPONSE = "EXT_7012"
    PROVIDER_UNSUPPORTED = "EXT_7013"

    # Database errors (8xxx)
    DATABASE_ERROR = "DB_8001"
    DATABASE_CONNECTION_FAILED = "DB_8002"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"
    INTERNAL_UNEXPECTED = "INT_9999"


class ErrorDetail(BaseModel):
    """Detailed information about a specific validation or sub-error."""

    field: str | None = None
    message: str
    code: str | None = None


class ErrorResponse(BaseModel):
    """Standardized error response model for REST endpoints.

    Example response:
    {
        "error": {
            "code": "RES_3010",
            "message": "Assistant 'a1' not found",
            "request_id": "req_abc123",
            "timestamp": "2025-01-15T10:30:00Z",
            "path": "/api/v1/ai/respond"
        }
    }
    """

    code: ErrorCode
    message: str
    request_id: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: list[ErrorDetail] | None = None
    path: str | None = None
    # Debug info - only included in development mode
    debug: dict[str, Any] | None = Field(default=None, exclude=True)

    def to_dict(self, include_debug: bool = False) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        data = self.model_dump(exclude_none=True)
        if include_debug and self.debug:
            data["debug"] = self.debug
        return {"error": data}


# HTTP status code mappings for error codes
ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    # 404 Not Found
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.ASSISTANT_NOT_FOUND: 404,
    # 409 Conflict
    ErrorCode.RESOURCE_CONFLICT: 409,
    # 422 Unprocessable Entity
    ErrorCode.VALIDATION_ERROR: 422,
    # 429 Too Many Requests
    ErrorCode.EXTERNAL_RATE_LIMITED: 429,
    # 500 Internal Server Error
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.INTERNAL_UNEXPECTED: 500,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.DATABASE_CONNECTION_FAILED: 500,
    ErrorCode.PROVIDER_AUTH_MISSING: 500,
    ErrorCode.PROVIDER_UNSUPPORTED: 500,
    # 502 Bad Gateway
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.PROVIDER_HTTP_ERROR: 502,
    ErrorCode.PROVIDER_BAD_RESPONSE: 502,
    # 504 Gateway Timeout
    ErrorCode.EXTERNAL_TIMEOUT: 504,
}


def get_status_code(error_code: ErrorCode) -> int:
    """Get HTTP status code for an error code."""
    return ERROR_CODE_TO_STATUS.get(error_code, 500)


__all__ = [
    "ERROR_CODE_TO_STATUS",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "get_status_code",
]
