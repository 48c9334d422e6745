"""
Storage Error Taxonomy

Provides standardized error codes and exceptions for every storage backend.
Callers branch on the exception class (not found, not supported) or on the
code; the message and details carry enough context to log or re-raise.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for storage backends."""

    # Configuration errors (CONFIG_xxx)
    CONFIG_MISSING_OPTION = "CONFIG_001"
    CONFIG_INVALID_OPTION = "CONFIG_002"
    CONFIG_UNKNOWN_BACKEND = "CONFIG_003"
    CONFIG_TOKEN_EXCHANGE_FAILED = "CONFIG_004"

    # Storage errors (STORAGE_xxx)
    STORAGE_READ_FAILED = "STORAGE_001"
    STORAGE_WRITE_FAILED = "STORAGE_002"
    STORAGE_DELETE_FAILED = "STORAGE_003"
    STORAGE_LIST_FAILED = "STORAGE_004"
    STORAGE_PARSE_FAILED = "STORAGE_005"
    STORAGE_NOT_FOUND = "STORAGE_404"
    STORAGE_REMOTE_REJECTED = "STORAGE_409"
    STORAGE_NOT_SUPPORTED = "STORAGE_501"


class StorageError(Exception):
    """
    Base class for all storage errors.

    Every error carries:

    - op: the operation that failed, e.g. "storage/dropbox.download"
    - code: an ErrorCode
    - message: human readable summary
    - details: extra context (HTTP status, remote error summary, ...)

    The string form is "op: message" so a plain log line or traceback still
    shows which call failed.
    """

    def __init__(
        self,
        op: str,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(f"{op}: {message}")
        self.op = op
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Structured form, suitable for log fields or JSON bodies."""
        return {
            "op": self.op,
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(StorageError):
    """Invalid or missing configuration. Retrying will not help."""


class NotFoundError(StorageError):
    """The referenced object does not exist."""


class StorageIOError(StorageError):
    """The remote call failed. The caller decides whether to retry."""


class RemoteRejectedError(StorageIOError):
    """The remote service understood the request but refused it."""


class ParseError(StorageIOError):
    """A successful response carried a body that could not be decoded."""


class NotSupportedError(StorageError):
    """The backend does not offer this capability."""


# Convenience functions for common errors
def config_error(op: str, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ConfigurationError:
    """Create a configuration error."""
    return ConfigurationError(op, code, message, details)


def io_error(op: str, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> StorageIOError:
    """Create a generic I/O error."""
    return StorageIOError(op, code, message, details)


def not_found_error(op: str, message: str, details: Optional[Dict[str, Any]] = None) -> NotFoundError:
    """Create a not-found error."""
    return NotFoundError(op, ErrorCode.STORAGE_NOT_FOUND, message, details)


def not_supported_error(op: str, message: str = "operation not supported") -> NotSupportedError:
    """Create a not-supported error."""
    return NotSupportedError(op, ErrorCode.STORAGE_NOT_SUPPORTED, message)
