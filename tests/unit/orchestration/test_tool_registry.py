"""Tests for the tool registry."""

import asyncio

import pytest

from ops_agent.orchestration import (
    CallerType,
    FunctionTool,
    ToolCategory,
    ToolExecutionError,
    ToolInputError,
    ToolMetadata,
    ToolNotFoundError,
    ToolRegistry,
    invoke_tool,
)
from tests.helpers.fakes import ScriptedTool


@pytest.mark.unit
class TestToolRegistry:
    """Registration, lookup and enable/disable."""

    def test_register_and_get(self):
        registry = ToolRegistry()
        tool = ScriptedTool("query_logs")

        registry.register(tool)

        assert registry.get("query_logs") is tool
        assert registry.has_tool("query_logs")
        assert registry.count() == 1

    def test_get_unknown_returns_none(self):
        assert ToolRegistry().get("nope") is None

    def test_register_rejects_non_tool(self):
        with pytest.raises(TypeError):
            ToolRegistry().register(object())

    def test_metadata_name_must_match(self):
        with pytest.raises(ValueError):
            ToolRegistry().register(ScriptedTool("a"), ToolMetadata(name="b"))

    def test_last_registration_wins(self):
        registry = ToolRegistry()
        first, second = ScriptedTool("dup", "first"), ScriptedTool("dup", "second")

        registry.register(first)
        registry.register(second)

        assert registry.get("dup") is second
        assert registry.count() == 1

    def test_disable_hides_tool_but_keeps_it_registered(self):
        registry = ToolRegistry()
        registry.register(ScriptedTool("logs"))

        registry.disable("logs")

        assert registry.get("logs") is None
        assert registry.has_tool("logs")
        assert registry.get_all() == []
        assert registry.count_enabled() == 0

        registry.enable("logs")
        assert registry.get("logs") is not None

    def test_enable_unknown_raises(self):
        registry = ToolRegistry()
        with pytest.raises(ToolNotFoundError):
            registry.enable("ghost")
        with pytest.raises(ToolNotFoundError):
            registry.disable("ghost")

    def test_disable_is_idempotent(self):
        registry = ToolRegistry()
        registry.register(ScriptedTool("logs"))
        registry.disable("logs")
        registry.disable("logs")
        assert registry.get_metadata("logs").enabled is False

    def test_get_all_filters_by_caller_type(self, registry):
        chat_tools = {t.name for t in registry.get_all(CallerType.CHAT.value)}
        knowledge_tools = {t.name for t in registry.get_all("knowledge")}

        assert chat_tools == {"logs", "metrics", "clock"}
        assert knowledge_tools == {"clock"}
        assert {t.name for t in registry.get_all()} == {"logs", "metrics", "clock"}

    def test_get_all_is_sorted(self, registry):
        assert [t.name for t in registry.get_all()] == ["clock", "logs", "metrics"]

    def test_filter_by_category_and_prefix(self, registry):
        observability = registry.filter_by_category(ToolCategory.OBSERVABILITY)
        assert [t.name for t in observability] == ["logs", "metrics"]
        assert [t.name for t in registry.filter_by_category("utility")] == ["clock"]
        assert [t.name for t in registry.get_by_prefix("me")] == ["metrics"]

    def test_unregister(self, registry):
        assert registry.unregister("logs") is True
        assert registry.unregister("logs") is False
        assert not registry.has_tool("logs")

    def test_clear(self, registry):
        registry.clear()
        assert registry.count() == 0

    def test_snapshot_is_stable_during_mutation(self, registry):
        tools = registry.get_all()
        registry.register(ScriptedTool("new_tool"))
        registry.disable("logs")

        assert [t.name for t in tools] == ["clock", "logs", "metrics"]

    def test_catalog_describes_visible_tools(self, registry):
        registry.disable("metrics")
        catalog = registry.catalog("plan_execute")

        assert [entry["name"] for entry in catalog] == ["clock", "logs"]
        assert catalog[0]["parameters"] == {"type": "object"}

    def test_register_function(self):
        registry = ToolRegistry()
        registry.register_function(
            "echo",
            lambda payload: payload["text"],
            description="Echo text",
            caller_types=[CallerType.CHAT],
        )

        metadata = registry.get_metadata("echo")
        assert metadata.allowed_caller_types == ("chat",)
        assert metadata.allows("chat")
        assert not metadata.allows("plan_execute")
        assert metadata.allows(None)


@pytest.mark.unit
class TestToolInvocation:
    """Input validation and error wrapping."""

    def test_validate_input_against_schema(self):
        tool = ScriptedTool(
            "search",
            parameters={
                "type": "object",
                "properties": {"query": {"type": "string"}},
                "required": ["query"],
            },
        )

        tool.validate_input({"query": "disk full"})
        with pytest.raises(ToolInputError) as exc_info:
            tool.validate_input({"query": 42})
        assert "query" in str(exc_info.value)
        with pytest.raises(ToolInputError):
            tool.validate_input({})

    def test_validate_input_rejects_non_object(self):
        with pytest.raises(ToolInputError):
            ScriptedTool("t").validate_input(["not", "a", "dict"])

    @pytest.mark.asyncio
    async def test_function_tool_supports_sync_and_async(self):
        async def shout(payload):
            return payload["text"].upper()

        assert await FunctionTool("sync", lambda p: 42).invoke({}) == "42"
        assert await FunctionTool("async", shout).invoke({"text": "hi"}) == "HI"

    @pytest.mark.asyncio
    async def test_invoke_tool_wraps_failures(self):
        tool = ScriptedTool("flaky", errors=[RuntimeError("boom")])

        with pytest.raises(ToolExecutionError) as exc_info:
            await invoke_tool(tool, {})

        assert exc_info.value.tool_name == "flaky"
        assert isinstance(exc_info.value.original_error, RuntimeError)
        assert exc_info.value.is_retryable is True

    @pytest.mark.asyncio
    async def test_invoke_tool_passes_timeouts_through(self):
        tool = ScriptedTool("slow", errors=[asyncio.TimeoutError()])
        with pytest.raises(asyncio.TimeoutError):
            await invoke_tool(tool, {})

    @pytest.mark.asyncio
    async def test_invoke_tool_keeps_non_retryable_errors(self):
        error = ToolInputError("t", "bad")
        tool = ScriptedTool("t", errors=[error])
        with pytest.raises(ToolInputError):
            await invoke_tool(tool, {})
