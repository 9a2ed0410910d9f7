"""
Circuit breaker for tool and model dependencies.

One breaker guards one named dependency. After ``max_failures`` consecutive
failures the breaker opens and rejects calls with ``CircuitOpenError``
until ``reset_timeout`` has elapsed. The next call then probes the
dependency in HALF_OPEN; ``half_open_attempts`` consecutive successes close
the circuit again and any failure reopens it.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
import inspect
import logging
import threading
import time

from ..config import constants as c
from .errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar('T')

Clock = Callable[[], float]


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Failing, reject requests
    HALF_OPEN = "half_open"  # Probing recovery


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""
    max_failures: int = c.DEFAULT_BREAKER_MAX_FAILURES
    reset_timeout: float = c.DEFAULT_BREAKER_RESET_TIMEOUT_SECONDS
    half_open_attempts: int = c.DEFAULT_BREAKER_HALF_OPEN_ATTEMPTS

    # Optional callbacks, sync or async, called with the breaker
    on_open: Optional[Callable] = None
    on_close: Optional[Callable] = None
    on_half_open: Optional[Callable] = None


@dataclass
class CircuitStats:
    """Lifetime counters for one breaker."""
    total_requests: int = 0
    total_failures: int = 0
    total_successes: int = 0
    rejected: int = 0
    times_opened: int = 0
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None

    def get_failure_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_failures / self.total_requests


class CircuitBreaker:
    """
    Circuit breaker for a single dependency.

    State transitions happen under a per-instance lock. The guarded call
    itself runs outside the lock, so HALF_OPEN admits concurrent probes.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.state = CircuitState.CLOSED
        self.consecutive_failures = 0
        self.consecutive_successes = 0
        self.open_until: Optional[float] = None
        self.stats = CircuitStats()
        self._clock = clock or time.monotonic
        self._state_lock = threading.Lock()

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Execute function through the circuit breaker.

        Raises:
            CircuitOpenError: If the circuit is open; ``func`` is not invoked
            Original exception: If ``func`` fails
        """
        await self.before_call()
        try:
            result = await func()
        except Exception:
            await self.record_failure()
            raise
        await self.record_success()
        return result

    async def before_call(self) -> None:
        """Admit a call or raise ``CircuitOpenError``."""
        callbacks: List[Callable] = []
        with self._state_lock:
            self.stats.total_requests += 1
            if self.state == CircuitState.OPEN:
                now = self._clock()
                if self.open_until is not None and now < self.open_until:
                    self.stats.rejected += 1
                    raise CircuitOpenError(self.name, retry_after=self.open_until - now)
                callbacks = self._transition_to_half_open()
        await self._fire(callbacks)

    async def record_success(self) -> None:
        callbacks: List[Callable] = []
        with self._state_lock:
            self.stats.total_successes += 1
            self.stats.last_success_time = self._clock()
            if self.state == CircuitState.CLOSED:
                self.consecutive_failures = 0
            elif self.state == CircuitState.HALF_OPEN:
                self.consecutive_successes += 1
                logger.info(
                    f"Circuit breaker {self.name} recorded probe success",
                    extra={
                        "circuit_breaker": self.name,
                        "consecutive_successes": self.consecutive_successes,
                    }
                )
                if self.consecutive_successes >= self.config.half_open_attempts:
                    callbacks = self._transition_to_closed()
        await self._fire(callbacks)

    async def record_failure(self) -> None:
        callbacks: List[Callable] = []
        with self._state_lock:
            self.stats.total_failures += 1
            self.stats.last_failure_time = self._clock()
            if self.state == CircuitState.CLOSED:
                self.consecutive_failures += 1
                if self.consecutive_failures >= self.config.max_failures:
                    callbacks = self._transition_to_open()
            elif self.state == CircuitState.HALF_OPEN:
                callbacks = self._transition_to_open()

            logger.warning(
                f"Circuit breaker {self.name} recorded failure",
                extra={
                    "circuit_breaker": self.name,
                    "state": self.state.value,
                    "consecutive_failures": self.consecutive_failures,
                }
            )
        await self._fire(callbacks)

    # Transitions run with the state lock held and return callbacks to fire.

    def _transition_to_open(self) -> List[Callable]:
        previous_state = self.state
        self.state = CircuitState.OPEN
        self.open_until = self._clock() + self.config.reset_timeout
        self.consecutive_successes = 0
        self.stats.times_opened += 1

        logger.error(
            f"Circuit breaker {self.name} opened",
            extra={
                "circuit_breaker": self.name,
                "previous_state": previous_state.value,
                "consecutive_failures": self.consecutive_failures,
                "reset_timeout": self.config.reset_timeout,
            }
        )
        return [self.config.on_open] if self.config.on_open else []

    def _transition_to_half_open(self) -> List[Callable]:
        self.state = CircuitState.HALF_OPEN
        self.consecutive_successes = 0

        logger.info(
            f"Circuit breaker {self.name} half-open",
            extra={"circuit_breaker": self.name, "previous_state": CircuitState.OPEN.value}
        )
        return [self.config.on_half_open] if self.config.on_half_open else []

    def _transition_to_closed(self) -> List[Callable]:
        previous_state = self.state
        self.state = CircuitState.CLOSED
        self.open_until = None
        self.consecutive_failures = 0
        self.consecutive_successes = 0

        logger.info(
            f"Circuit breaker {self.name} closed",
            extra={"circuit_breaker": self.name, "previous_state": previous_state.value}
        )
        return [self.config.on_close] if self.config.on_close else []

    async def _fire(self, callbacks: List[Callable]) -> None:
        for callback in callbacks:
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(self)
                else:
                    callback(self)
            except Exception as e:
                logger.error(f"Error in circuit breaker callback for {self.name}: {e}")

    def get_state(self) -> CircuitState:
        return self.state

    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def is_half_open(self) -> bool:
        return self.state == CircuitState.HALF_OPEN

    def snapshot(self) -> Dict[str, Any]:
        """Consistent view of state and counters."""
        with self._state_lock:
            retry_in = None
            if self.state == CircuitState.OPEN and self.open_until is not None:
                retry_in = max(0.0, self.open_until - self._clock())
            return {
                "state": self.state.value,
                "consecutive_failures": self.consecutive_failures,
                "consecutive_successes": self.consecutive_successes,
                "retry_in_s": retry_in,
                "total_requests": self.stats.total_requests,
                "total_failures": self.stats.total_failures,
                "rejected": self.stats.rejected,
                "times_opened": self.stats.times_opened,
                "failure_rate": self.stats.get_failure_rate(),
            }

    def reset(self) -> None:
        """Force the breaker back to CLOSED with fresh counters."""
        with self._state_lock:
            self.state = CircuitState.CLOSED
            self.consecutive_failures = 0
            self.consecutive_successes = 0
            self.open_until = None
            self.stats = CircuitStats()
        logger.info(f"Circuit breaker {self.name} reset")


class CircuitBreakerManager:
    """Lazily creates and holds one breaker per dependency name."""

    def __init__(
        self,
        default_config: Optional[CircuitBreakerConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.default_config = default_config or CircuitBreakerConfig()
        self._clock = clock
        self._overrides: Dict[str, CircuitBreakerConfig] = {}
        self.circuit_breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def configure(self, name: str, config: CircuitBreakerConfig) -> None:
        """Use ``config`` for ``name`` when its breaker is first created."""
        with self._lock:
            self._overrides[name] = config

    def get_or_create(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self.circuit_breakers.get(name)
            if breaker is None:
                config = self._overrides.get(name, self.default_config)
                breaker = CircuitBreaker(name, config, clock=self._clock)
                self.circuit_breakers[name] = breaker
            return breaker

    def get(self, name: str) -> Optional[CircuitBreaker]:
        with self._lock:
            return self.circuit_breakers.get(name)

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            breakers = list(self.circuit_breakers.items())
        return {name: cb.snapshot() for name, cb in breakers}

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self.circuit_breakers.values())
        for cb in breakers:
            cb.reset()
