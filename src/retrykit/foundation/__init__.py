"""Foundation - errors and configuration shared by the rest of retrykit."""

from .errors import ErrorCode, InvalidArgument, RetryError, require_non_negative

__all__ = ["ErrorCode", "InvalidArgument", "RetryError", "require_non_negative"]
