"""Standardized errors raised by retrykit itself.

User failures are never wrapped: drivers always re-raise the original
exception. The types here only cover misuse of the library, which is a
programming error and therefore never retried.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    """Machine-readable codes for library errors."""
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    UNKNOWN = "UNKNOWN"


class RetryError(Exception):
    """Base class for errors raised by retrykit.

    Attributes:
        message: Human-readable description
        code: Machine-readable classification
    """

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class InvalidArgument(RetryError, ValueError):
    """Invalid configuration, e.g. a negative exponent or delay."""

    code = ErrorCode.INVALID_ARGUMENT


def require_non_negative(name: str, value: int) -> int:
    """Return value unchanged, raising InvalidArgument if it is negative."""
    if value < 0:
        raise InvalidArgument(f"{name} must be non-negative, got {value}")
    return value
