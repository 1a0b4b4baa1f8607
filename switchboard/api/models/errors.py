"""Error response models for consistent API error handling."""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Machine-readable error codes for API responses."""

    INVALID_REQUEST = "INVALID_REQUEST"
    """Request validation failed (malformed JSON, missing fields, etc.)."""

    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    """The specified session_id is not live."""

    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    """The bot/conversation backend failed or could not be reached."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""


class ErrorDetail(BaseModel):
    """Field-level error information for validation errors."""

    field: str | None = None
    message: str


class ErrorBody(BaseModel):
    """Error body content for API error responses."""

    code: ErrorCode
    message: str
    details: list[ErrorDetail] | None = None


class ErrorResponse(BaseModel):
    """Standard error response format.

    Example:
        {
            "error": {
                "code": "SESSION_NOT_FOUND",
                "message": "Session chat_ab12 is not active"
            }
        }
    """

    error: ErrorBody
