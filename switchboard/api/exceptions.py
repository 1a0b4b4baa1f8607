"""API exception hierarchy.

All API exceptions inherit from SwitchboardAPIError, which carries the
status_code and error_code used by the global exception handler.
"""

from switchboard.api.models.errors import ErrorCode


class SwitchboardAPIError(Exception):
    """Base exception for all API errors."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidRequestError(SwitchboardAPIError):
    """Raised when a request body cannot be used."""

    status_code = 400
    error_code = ErrorCode.INVALID_REQUEST


class SessionNotFoundError(SwitchboardAPIError):
    """Raised when session_id is not in the registry."""

    status_code = 404
    error_code = ErrorCode.SESSION_NOT_FOUND


class BackendUnavailableError(SwitchboardAPIError):
    """Raised when a proxied backend call fails."""

    status_code = 502
    error_code = ErrorCode.BACKEND_UNAVAILABLE
