"""
cachewise - Core Error Types

Defines the exception hierarchy surfaced by the caching layer.
All exceptions inherit from CachewiseError for consistent error handling.

Two families matter at runtime:
- Site errors (BAD_SITE, INVALID_KEY, INVALID_ANNOTATION) are programming errors
  and always propagate to the caller.
- Cache errors (TIMEOUT, TRANSPORT) come from the transport and are swallowed
  by best-effort paths.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Standard error codes attached to cachewise exceptions.

    Used for structured logging and error responses.
    """

    # Declarative / programming errors
    BAD_SITE = "BAD_SITE"
    INVALID_KEY = "INVALID_KEY"
    INVALID_ANNOTATION = "INVALID_ANNOTATION"

    # Transport errors
    TIMEOUT = "TIMEOUT"
    TRANSPORT = "TRANSPORT"

    # Wiring errors
    CONFIGURATION = "CONFIGURATION"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CachewiseError(Exception):
    """Base exception for all cachewise errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logs."""
        return {
            "error": self.__class__.__name__,
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CachewiseError):
    """Raised when configuration or wiring is invalid."""

    code = ErrorCode.CONFIGURATION


class InvalidSiteError(CachewiseError):
    """
    Raised when the declarative metadata of a cache site is malformed.

    A site that fails to build keeps failing with this error for the
    lifetime of its dispatcher.
    """

    code = ErrorCode.BAD_SITE


class InvalidKeyError(InvalidSiteError):
    """Raised when a key component is None, empty, not stringifiable or the key is malformed."""

    code = ErrorCode.INVALID_KEY


class InvalidAnnotationError(InvalidSiteError):
    """Raised when the key list and the update list of a multi site differ in size."""

    code = ErrorCode.INVALID_ANNOTATION


class CacheError(CachewiseError):
    """Base exception for failures reported by the cache transport."""

    code = ErrorCode.TRANSPORT


class CacheTimeoutError(CacheError):
    """Raised when a cache operation times out."""

    code = ErrorCode.TIMEOUT

    def __init__(self, operation: str, details: dict[str, Any] | None = None):
        message = f"Cache operation timed out: {operation}"
        super().__init__(message, {"operation": operation, **(details or {})})
        self.operation = operation


class CacheTransportError(CacheError):
    """Raised when the cache transport fails for any reason other than a timeout."""

    code = ErrorCode.TRANSPORT

    def __init__(self, operation: str, reason: str, details: dict[str, Any] | None = None):
        message = f"Cache operation {operation} failed: {reason}"
        super().__init__(message, {"operation": operation, "reason": reason, **(details or {})})
        self.operation = operation


def extract_error_code(error: Exception) -> ErrorCode:
    """
    Extract the appropriate ErrorCode from an exception.

    Args:
        error: Exception to categorize

    Returns:
        ErrorCode for the exception
    """
    if isinstance(error, CachewiseError):
        return error.code

    if isinstance(error, TimeoutError):
        return ErrorCode.TIMEOUT

    return ErrorCode.INTERNAL_ERROR
