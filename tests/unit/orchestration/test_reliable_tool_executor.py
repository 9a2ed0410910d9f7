"""Tests for registry-backed tool invocation under breaker and retry."""

import pytest

from ops_agent.models.tool_call import ToolCall
from ops_agent.orchestration import (
    ReliabilityConfig,
    ReliableToolExecutor,
    ToolExecutionError,
    ToolInputError,
    ToolNotFoundError,
    ToolRegistry,
)
from ops_agent.reliability import CircuitBreakerConfig, CircuitOpenError, RetriesExhaustedError, RetryPolicy
from tests.helpers.fakes import ScriptedTool


def make_executor(tool, recording_sleep, clock, **config):
    registry = ToolRegistry()
    registry.register(tool)
    reliability = ReliabilityConfig(
        retry_policy=config.pop("retry_policy", RetryPolicy(max_attempts=3)),
        breaker_config=config.pop("breaker_config", CircuitBreakerConfig(max_failures=2)),
        **config,
    )
    return registry, ReliableToolExecutor(registry, reliability, sleep=recording_sleep, clock=clock)


@pytest.mark.unit
class TestReliableToolExecutor:

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, recording_sleep, clock):
        tool = ScriptedTool("logs", "3 lines", errors=[RuntimeError("502"), RuntimeError("502")])
        _, executor = make_executor(tool, recording_sleep, clock)

        assert await executor(ToolCall(name="logs", input={"q": "x"})) == "3 lines"
        assert len(tool.calls) == 3
        assert recording_sleep.delays == [pytest.approx(0.1), pytest.approx(0.2)]

    @pytest.mark.asyncio
    async def test_unknown_and_disabled_tools(self, recording_sleep, clock):
        registry, executor = make_executor(ScriptedTool("logs"), recording_sleep, clock)

        with pytest.raises(ToolNotFoundError):
            await executor.execute("ghost", {})

        registry.disable("logs")
        with pytest.raises(ToolNotFoundError):
            await executor.execute("logs", {})
        assert executor.get_circuit_breaker_status() == {}

    @pytest.mark.asyncio
    async def test_invalid_input_never_reaches_tool(self, recording_sleep, clock):
        tool = ScriptedTool(
            "logs",
            parameters={"type": "object", "required": ["query"]},
        )
        _, executor = make_executor(tool, recording_sleep, clock)

        with pytest.raises(ToolInputError):
            await executor.execute("logs", {})
        assert tool.calls == []

    @pytest.mark.asyncio
    async def test_non_retryable_tool_error_is_not_retried(self, recording_sleep, clock):
        error = ToolExecutionError("logs", ValueError("bad json"), is_retryable=False)
        tool = ScriptedTool("logs", errors=[error])
        _, executor = make_executor(tool, recording_sleep, clock)

        with pytest.raises(ToolExecutionError):
            await executor.execute("logs", {})
        assert len(tool.calls) == 1

    @pytest.mark.asyncio
    async def test_breaker_opens_per_tool(self, recording_sleep, clock):
        tool = ScriptedTool("prom", errors=[RuntimeError("down")] * 10)
        _, executor = make_executor(
            tool, recording_sleep, clock, retry_policy=RetryPolicy(max_attempts=1)
        )

        for _ in range(2):
            with pytest.raises(RetriesExhaustedError):
                await executor.execute("prom", {})
        with pytest.raises(CircuitOpenError):
            await executor.execute("prom", {})

        assert len(tool.calls) == 2
        assert executor.get_circuit_breaker_status()["prom"]["state"] == "open"

        executor.reset_circuit_breakers()
        assert executor.get_circuit_breaker_status()["prom"]["state"] == "closed"

    @pytest.mark.asyncio
    async def test_per_tool_overrides(self, recording_sleep, clock):
        tool = ScriptedTool("docs", errors=[RuntimeError("io")] * 5)
        _, executor = make_executor(
            tool,
            recording_sleep,
            clock,
            tool_retry_policies={"docs": RetryPolicy(max_attempts=2)},
            tool_breaker_configs={"docs": CircuitBreakerConfig(max_failures=1)},
        )

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await executor.execute("docs", {})

        assert exc_info.value.attempts == 2
        assert executor.get_circuit_breaker_status()["docs"]["state"] == "open"
