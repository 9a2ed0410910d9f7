"""Resilience layer: circuit breakers and retry with exponential backoff."""

from .errors import CircuitOpenError, ReliabilityError, RetriesExhaustedError
from .retry import RetryManager, RetryPolicy, RetryState
from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerManager,
    CircuitState,
)
from .resilience import ResilienceWrapper, ResilientModelProvider

__all__ = [
    "ReliabilityError",
    "CircuitOpenError",
    "RetriesExhaustedError",
    "RetryPolicy",
    "RetryState",
    "RetryManager",
    "CircuitState",
    "CircuitBreakerConfig",
    "CircuitBreaker",
    "CircuitBreakerManager",
    "ResilienceWrapper",
    "ResilientModelProvider",
]
