"""Exception types shared by the safe-output pipeline."""

from __future__ import annotations


class SafeOutputError(Exception):
    """Base class for pipeline errors that carry a machine-readable reason code."""

    reason_code = "safe_output_error"


class ConfigError(SafeOutputError, ValueError):
    reason_code = "invalid_config"


class ConstraintViolation(SafeOutputError, ValueError):
    reason_code = "constraint_violation"


class LimitExceededError(ConstraintViolation):
    def __init__(self, code: str, message: str, actual: int, limit: int) -> None:
        super().__init__(message)
        self.code = code
        self.actual = actual
        self.limit = limit


class ReviewContextMismatch(SafeOutputError, ValueError):
    reason_code = "review_context_mismatch"


class PlatformError(SafeOutputError, RuntimeError):
    """Raised by platform clients; classified by :mod:`safe_outputs.failures`."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        reason_code: str = "platform_error",
    ) -> None:
        super().__init__(message)
        self.status = status
        self.reason_code = reason_code
