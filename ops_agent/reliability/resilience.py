"""
Circuit breaker + retry composition.

Every external call goes through ``breaker.call(retry(call))``: the breaker
sees the whole retry sequence as one logical call when counting
consecutive failures and successes.
"""

from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..models.conversation_types import ConversationMessage
from ..observability.logging import AgentLogger
from ..providers.base import ModelProvider
from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitBreakerManager, Clock
from .retry import RetryManager, RetryPolicy, SleepFunc

logger = AgentLogger("resilience")

T = TypeVar("T")


class ResilienceWrapper:
    """Guards fallible calls with a per-name circuit breaker and retry policy."""

    def __init__(
        self,
        breakers: Optional[CircuitBreakerManager] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[SleepFunc] = None,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.breakers = breakers or CircuitBreakerManager(breaker_config, clock=clock)
        self.policy = policy or RetryPolicy()
        self.retry_manager = RetryManager(sleep)
        self._policies: Dict[str, RetryPolicy] = {}

    def set_policy(self, name: str, policy: RetryPolicy) -> None:
        """Override the retry policy for one dependency."""
        self._policies[name] = policy

    def policy_for(self, name: str) -> RetryPolicy:
        return self._policies.get(name, self.policy)

    def breaker(self, name: str) -> CircuitBreaker:
        return self.breakers.get_or_create(name)

    async def call(self, name: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run ``func`` under the breaker and retry policy registered for ``name``."""
        policy = self.policy_for(name)

        async def with_retry() -> T:
            return await self.retry_manager.execute(func, policy, name=name)

        return await self.breaker(name).call(with_retry)

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        return self.breakers.get_all_stats()


class ResilientModelProvider(ModelProvider):
    """Model capability guarded by a :class:`ResilienceWrapper`.

    ``generate`` gets breaker and retry. ``stream`` is breaker-only since a
    partially consumed stream cannot be replayed.
    """

    def __init__(self, inner: ModelProvider, wrapper: ResilienceWrapper, name: Optional[str] = None):
        self.inner = inner
        self.wrapper = wrapper
        self.name = name or f"model:{inner.get_provider_name()}"

    def get_provider_name(self) -> str:
        return self.inner.get_provider_name()

    async def generate(self, messages: List[ConversationMessage]) -> ConversationMessage:
        return await self.wrapper.call(self.name, lambda: self.inner.generate(messages))

    async def stream(self, messages: List[ConversationMessage]) -> AsyncIterator[str]:
        breaker = self.wrapper.breaker(self.name)
        await breaker.before_call()

        chunks = self.inner.stream(messages)
        # None while undecided; a consumer closing early counts as success.
        succeeded: Optional[bool] = None
        try:
            async for chunk in chunks:
                yield chunk
            succeeded = True
        except GeneratorExit:
            succeeded = True
            raise
        except Exception as e:
            logger.warning("Model stream failed", dependency=self.name, error=e)
            succeeded = False
            raise
        finally:
            try:
                if succeeded is True:
                    await breaker.record_success()
                elif succeeded is False:
                    await breaker.record_failure()
            finally:
                aclose = getattr(chunks, "aclose", None)
                if aclose is not None:
                    await aclose()
