"""Reliability integration for tool invocation."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..models.tool_call import ToolCall
from ..reliability import (
    CircuitBreakerConfig,
    CircuitBreakerManager,
    ResilienceWrapper,
    RetryPolicy,
)
from ..reliability.circuit_breaker import Clock
from ..reliability.retry import SleepFunc
from ..observability.logging import AgentLogger
from .errors import ToolNotFoundError
from .tool_registry import ToolRegistry, invoke_tool

logger = AgentLogger("tools")


@dataclass
class ReliabilityConfig:
    """Retry and circuit breaker settings for tool calls."""

    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    breaker_config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)

    # Per-tool overrides, keyed by tool name
    tool_retry_policies: Dict[str, RetryPolicy] = field(default_factory=dict)
    tool_breaker_configs: Dict[str, CircuitBreakerConfig] = field(default_factory=dict)


class ReliableToolExecutor:
    """Looks tools up in the registry and invokes them under breaker + retry.

    Instances are callable with a :class:`ToolCall`, which makes them a
    ``ToolInvoker`` for :class:`ParallelExecutor`. Breakers are keyed by
    tool name and shared by every run that uses this executor.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: Optional[ReliabilityConfig] = None,
        wrapper: Optional[ResilienceWrapper] = None,
        sleep: Optional[SleepFunc] = None,
        clock: Optional[Clock] = None,
    ):
        self.registry = registry
        self.config = config or ReliabilityConfig()
        if wrapper is None:
            breakers = CircuitBreakerManager(self.config.breaker_config, clock=clock)
            wrapper = ResilienceWrapper(breakers, self.config.retry_policy, sleep=sleep)
        self.wrapper = wrapper
        for name, breaker_config in self.config.tool_breaker_configs.items():
            self.wrapper.breakers.configure(name, breaker_config)
        for name, policy in self.config.tool_retry_policies.items():
            self.wrapper.set_policy(name, policy)

    async def __call__(self, call: ToolCall) -> str:
        return await self.execute(call.name, call.input)

    async def execute(self, name: str, input: Dict[str, Any]) -> str:
        """
        Raises:
            ToolNotFoundError: Unknown or disabled tool (breaker untouched)
            ToolInputError: Input rejected by the tool's schema (breaker untouched)
            CircuitOpenError: The tool's breaker is open
            RetriesExhaustedError: Every attempt failed
        """
        tool = self.registry.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        tool.validate_input(input)
        return await self.wrapper.call(name, lambda: invoke_tool(tool, input))

    def get_circuit_breaker_status(self) -> Dict[str, Dict[str, Any]]:
        return self.wrapper.get_stats()

    def reset_circuit_breakers(self) -> None:
        self.wrapper.breakers.reset_all()
        logger.info("Reset all tool circuit breakers")
