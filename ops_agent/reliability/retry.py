from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, TypeVar

from ..config import constants as c
from ..observability.logging import AgentLogger
from .errors import RetriesExhaustedError

logger = AgentLogger("retry")

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff policy.

    The delay before attempt ``k`` (``k > 1``) is
    ``min(max_delay, base_delay * multiplier ** (k - 2))``.
    """
    max_attempts: int = c.DEFAULT_RETRY_MAX_ATTEMPTS
    base_delay: float = c.DEFAULT_RETRY_BASE_DELAY_SECONDS
    max_delay: float = c.DEFAULT_RETRY_MAX_DELAY_SECONDS
    multiplier: float = c.DEFAULT_RETRY_MULTIPLIER

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")

    def delay_for_attempt(self, attempt: int) -> float:
        if attempt <= 1:
            return 0.0
        return min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 2))

    def total_delay(self) -> float:
        """Backoff spent if every attempt fails."""
        return sum(self.delay_for_attempt(k) for k in range(2, self.max_attempts + 1))


@dataclass
class RetryState:
    """Bookkeeping for one retried operation."""
    name: str
    attempts: int = 0
    delays: List[float] = field(default_factory=list)
    last_error: Optional[BaseException] = None

    @property
    def total_delay(self) -> float:
        return sum(self.delays)


def is_retryable(error: BaseException) -> bool:
    """Errors opt out of retries by setting ``is_retryable = False``."""
    if isinstance(error, asyncio.TimeoutError):
        return False
    return bool(getattr(error, "is_retryable", True))


class RetryManager:
    """
    Runs an operation under a :class:`RetryPolicy`.

    - Cancellation and deadline errors propagate unchanged on first sight
    - Errors flagged non-retryable propagate unchanged
    - Otherwise the last error is wrapped in ``RetriesExhaustedError``
    """

    def __init__(self, sleep: Optional[SleepFunc] = None):
        self._sleep = sleep or asyncio.sleep

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        name: str = "operation",
        state: Optional[RetryState] = None,
    ) -> T:
        state = state or RetryState(name=name)

        while True:
            state.attempts += 1
            try:
                return await func()
            except Exception as e:  # noqa: BLE001
                state.last_error = e
                if not is_retryable(e):
                    raise
                if state.attempts >= policy.max_attempts:
                    raise RetriesExhaustedError(name, state.attempts, e) from e

                delay = policy.delay_for_attempt(state.attempts + 1)
                logger.warning(
                    "Retrying after failure",
                    operation=name,
                    attempt=state.attempts,
                    max_attempts=policy.max_attempts,
                    delay_ms=int(delay * 1000),
                    error=e,
                )
                state.delays.append(delay)
                await self._sleep(delay)
