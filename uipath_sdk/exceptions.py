"""
Exception hierarchy for the UiPath SDK.

Every HTTP-level failure surfaced by the SDK is one of the UiPathError
subclasses below, so callers can branch on type (or on ``error.type``)
instead of inspecting raw responses. Configuration and storage problems
have their own exceptions since they never originate from the platform.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .constants import ErrorMessages


class ErrorType:
    """String identifiers carried on ``UiPathError.type``."""

    AUTHENTICATION = "AuthenticationError"
    AUTHORIZATION = "AuthorizationError"
    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFoundError"
    RATE_LIMIT = "RateLimitError"
    SERVER = "ServerError"
    NETWORK = "NetworkError"


class UiPathError(Exception):
    """
    Base exception for all platform and transport errors.

    Attributes:
        message: Human readable error message
        status_code: HTTP status code (None for transport failures)
        request_id: Backend trace/request id, when one was reported
        timestamp: When the error was created (timezone-aware UTC)
        details: Extra structured information from the error payload
    """

    error_type = "UiPathError"
    default_message = ErrorMessages.UNKNOWN_ERROR
    default_status_code: Optional[int] = None

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.status_code = status_code if status_code is not None else self.default_status_code
        self.request_id = request_id
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    @property
    def type(self) -> str:
        return self.error_type

    @property
    def is_retryable(self) -> bool:
        """Whether repeating the same request could succeed."""
        return False

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a JSON-serializable dictionary.

        Returns:
            Dictionary with type, message, status code, request id and timestamp
        """
        return {
            "type": self.type,
            "message": self.message,
            "statusCode": self.status_code,
            "requestId": self.request_id,
            "timestamp": self.timestamp.isoformat(),
        }

    def get_debug_info(self) -> Dict[str, Any]:
        """
        Detailed information for troubleshooting.

        Returns:
            to_dict() plus payload details and the exception chain
        """
        info = self.to_dict()
        info["details"] = self.details
        if self.__cause__ is not None:
            info["cause"] = repr(self.__cause__)
        return info

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status_code={self.status_code!r}, request_id={self.request_id!r})"
        )


class AuthenticationError(UiPathError):
    """Missing, invalid or expired credentials (HTTP 401)."""

    error_type = ErrorType.AUTHENTICATION
    default_message = ErrorMessages.AUTHENTICATION_FAILED
    default_status_code = 401


class AuthorizationError(UiPathError):
    """Credentials are valid but lack permission (HTTP 403)."""

    error_type = ErrorType.AUTHORIZATION
    default_message = ErrorMessages.ACCESS_DENIED
    default_status_code = 403


class ValidationError(UiPathError):
    """Request was rejected as invalid (HTTP 400 and unmapped 4xx)."""

    error_type = ErrorType.VALIDATION
    default_message = ErrorMessages.VALIDATION_FAILED
    default_status_code = 400


class NotFoundError(UiPathError):
    """Requested resource does not exist (HTTP 404)."""

    error_type = ErrorType.NOT_FOUND
    default_message = ErrorMessages.RESOURCE_NOT_FOUND
    default_status_code = 404


class RateLimitError(UiPathError):
    """Too many requests (HTTP 429)."""

    error_type = ErrorType.RATE_LIMIT
    default_message = ErrorMessages.RATE_LIMIT_EXCEEDED
    default_status_code = 429

    @property
    def is_retryable(self) -> bool:
        return True


class ServerError(UiPathError):
    """Platform-side failure (HTTP 5xx)."""

    error_type = ErrorType.SERVER
    default_message = ErrorMessages.SERVER_ERROR
    default_status_code = 500

    RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})

    @property
    def is_retryable(self) -> bool:
        return self.status_code in self.RETRYABLE_STATUS_CODES


class NetworkError(UiPathError):
    """The request never produced an HTTP response."""

    error_type = ErrorType.NETWORK
    default_message = ErrorMessages.NETWORK_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = True,
    ):
        """
        Args:
            retryable: False when the request already reached the server,
                e.g. a 2xx response whose body could not be decoded
        """
        super().__init__(message, status_code, request_id, details)
        self.retryable = retryable

    @property
    def is_aborted(self) -> bool:
        return self.message == ErrorMessages.REQUEST_ABORTED

    @property
    def is_timeout(self) -> bool:
        return self.message == ErrorMessages.REQUEST_TIMEOUT

    @property
    def is_retryable(self) -> bool:
        return self.retryable and not self.is_aborted


class ConfigurationError(Exception):
    """SDK configuration error (missing or invalid configuration)."""

    pass


class TokenStorageError(Exception):
    """Storage adapter operation failed (file I/O error)."""

    pass
