"""ClipVault Error Handling Module

This module defines the error handling system for ClipVault, providing
structured error classes with context information and user-friendly messages.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]


class ErrorCode(str, Enum):
    """Error codes for the ClipVault library.

    This enum serves as the single source of truth for all error codes
    used throughout the package.
    """

    # Transport Errors
    NETWORK_ERROR = "NETWORK_ERROR"
    API_TIMEOUT = "API_TIMEOUT"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    API_CLIENT_ERROR = "API_CLIENT_ERROR"
    API_NOT_FOUND = "API_NOT_FOUND"
    API_INVALID_RESPONSE = "API_INVALID_RESPONSE"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

    # Cache Errors
    CACHE_EXHAUSTED = "CACHE_EXHAUSTED"
    CACHE_CORRUPTED = "CACHE_CORRUPTED"

    # Storage Errors
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"
    STORAGE_INITIALIZATION_FAILED = "STORAGE_INITIALIZATION_FAILED"

    # Configuration Errors
    CONFIG_MISSING = "CONFIG_MISSING"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        elif val is None:
            continue
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContext:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data so the context is always safe to serialize into logs.

    Attributes:
        operation: Optional operation name that caused the error
        record_id: Optional id of the record involved
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    record_id: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Post-initialization validation and coercion."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self) -> dict[str, Any]:
        """Export context as a dict for structured logging.

        Returns:
            Dictionary with a guaranteed ``additional_data`` key.
        """
        data: dict[str, Any] = {}
        if self.operation is not None:
            data["operation"] = self.operation
        if self.record_id is not None:
            data["record_id"] = self.record_id
        data["additional_data"] = dict(self.additional_data or {})
        return data


class ClipVaultError(Exception):
    """Base exception class for all ClipVault errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize ClipVaultError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error
        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error with code, message,
            context, and original_error (if present)
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(ClipVaultError):
    """Domain-specific errors.

    These errors occur when business rules are violated, for example a
    record without an id or an upload without a file.
    """


class InfrastructureError(ClipVaultError):
    """Infrastructure-related errors.

    These errors occur when interacting with external systems like the
    backend API or the persistent blob store.
    """


class TransportErrorKind(str, Enum):
    """Failure classes reported by the remote resource gateway."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    NOT_FOUND = "not_found"


_TRANSPORT_CODES: dict[TransportErrorKind, ErrorCode] = {
    TransportErrorKind.NETWORK: ErrorCode.NETWORK_ERROR,
    TransportErrorKind.TIMEOUT: ErrorCode.API_TIMEOUT,
    TransportErrorKind.SERVER: ErrorCode.API_SERVER_ERROR,
    TransportErrorKind.NOT_FOUND: ErrorCode.API_NOT_FOUND,
}


class TransportError(InfrastructureError):
    """A gateway call failed.

    Examples:
    - Connection refused or DNS failure (NETWORK)
    - Request exceeded its time budget (TIMEOUT)
    - Backend answered with an error status (SERVER)
    - Requested record does not exist (NOT_FOUND)
    """

    def __init__(
        self,
        kind: TransportErrorKind,
        message: str,
        *,
        status: int | None = None,
        code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.kind = kind
        self.status = status
        super().__init__(
            code=code or _TRANSPORT_CODES[kind],
            message=message,
            context=context,
            original_error=original_error,
        )

    @property
    def is_not_found(self) -> bool:
        """Whether the backend reported that the record does not exist."""
        return self.kind is TransportErrorKind.NOT_FOUND


class ValidationError(DomainError):
    """Input failed validation before any network call was made."""


class CacheExhaustedError(InfrastructureError):
    """A live fetch failed and no cache tier could satisfy the request."""


def create_validation_error(
    message: str,
    field: str | None = None,
    operation: str | None = None,
) -> ValidationError:
    """Create a validation error.

    Args:
        message: Human-readable error message
        field: Name of the missing or invalid field
        operation: Operation that was being performed

    Returns:
        ValidationError instance
    """
    additional_data = {"field": field} if field else None
    code = ErrorCode.MISSING_REQUIRED_FIELD if field else ErrorCode.VALIDATION_ERROR
    return ValidationError(
        code=code,
        message=message,
        context=ErrorContext(operation=operation, additional_data=additional_data),
    )


def create_storage_error(
    message: str,
    key: str,
    operation: str,
    original_error: Exception | None = None,
    *,
    write: bool = True,
) -> InfrastructureError:
    """Create a blob store error.

    Args:
        message: Human-readable error message
        key: Storage key involved
        operation: Operation that was being performed
        original_error: Original exception that caused this error
        write: Whether the failure happened while writing

    Returns:
        InfrastructureError instance
    """
    return InfrastructureError(
        code=ErrorCode.STORAGE_WRITE_FAILED if write else ErrorCode.STORAGE_READ_FAILED,
        message=message,
        context=ErrorContext(operation=operation, additional_data={"key": key}),
        original_error=original_error,
    )
