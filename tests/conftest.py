"""Shared pytest fixtures for ops agent tests."""

import pytest
from dotenv import load_dotenv

# Load environment variables from .env file for tests
load_dotenv()

from ops_agent.config.settings import AgentSettings
from ops_agent.orchestration import ToolCategory, ToolRegistry
from ops_agent.reliability import CircuitBreakerConfig, RetryPolicy
from tests.helpers.fakes import ConcurrencyProbe, ManualClock, RecordingSleep, ScriptedTool


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests that wire several components together")
    config.addinivalue_line("markers", "slow: tests that take noticeably longer")


@pytest.fixture
def clock():
    """Manually advanced monotonic clock."""
    return ManualClock()


@pytest.fixture
def recording_sleep():
    """Sleep replacement that records requested delays and returns immediately."""
    return RecordingSleep()


@pytest.fixture
def fast_retry_policy():
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def breaker_config():
    return CircuitBreakerConfig(max_failures=3, reset_timeout=30.0, half_open_attempts=2)


@pytest.fixture
def probe():
    return ConcurrencyProbe()


@pytest.fixture
def registry():
    """Registry holding a few scripted tools."""
    reg = ToolRegistry()
    reg.register_category(
        ToolCategory.OBSERVABILITY,
        [ScriptedTool("logs", "log lines"), ScriptedTool("metrics", "metric samples")],
        caller_types=["chat", "plan_execute"],
    )
    reg.register_category(ToolCategory.UTILITY, [ScriptedTool("clock", "12:00")])
    return reg


@pytest.fixture
def settings(tmp_path):
    """Settings that never reach real backends."""
    return AgentSettings(
        planner="rules",
        docs_dir=str(tmp_path),
        loki_url="http://loki.test",
        prometheus_url="http://prom.test",
        retry_base_delay_s=0.0,
        retry_max_delay_s=0.0,
        batch_pause_s=0.0,
    )
