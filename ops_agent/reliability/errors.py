"""Errors raised by the resilience layer."""

from typing import Optional


class ReliabilityError(Exception):
    """Base exception for circuit breaker and retry failures."""

    is_retryable = False


class CircuitOpenError(ReliabilityError):
    """The guarded dependency is known-bad; the call was not attempted."""

    def __init__(self, name: str, retry_after: Optional[float] = None):
        self.name = name
        self.retry_after = retry_after
        message = f"Circuit breaker '{name}' is open"
        if retry_after is not None:
            message += f" (retry in {retry_after:.1f}s)"
        super().__init__(message)


class RetriesExhaustedError(ReliabilityError):
    """Every attempt failed. Wraps the last underlying error."""

    def __init__(self, name: str, attempts: int, last_error: BaseException):
        self.name = name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"'{name}' failed after {attempts} attempts: {last_error}")
