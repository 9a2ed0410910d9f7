"""Process-level wiring for the ops agent."""

from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from .config.settings import AgentSettings
from .models.conversation_types import ConversationMessage
from .models.plan import OrchestrationOutput
from .models.tool_call import ToolCall
from .observability.metrics import InMemoryMetricsSink, MetricsSink
from .orchestration.orchestrator import Orchestrator
from .orchestration.parallel_executor import Dependencies
from .orchestration.planning import (
    LLMPlanner,
    LLMReplanner,
    Planner,
    Replanner,
    ResultSummaryReplanner,
    RuleBasedPlanner,
    RuleStep,
    default_ops_rules,
)
from .orchestration.reliability import ReliableToolExecutor
from .orchestration.tool_registry import ToolRegistry
from .providers.base import ModelProvider, ProviderError
from .providers.openai.adapter import OpenAIChatProvider
from .reliability import ResilienceWrapper, ResilientModelProvider
from .tools import register_standard_tools

CHAT_SYSTEM_PROMPT = (
    "You are an operations assistant. Answer concisely and say which data you "
    "would check when you are unsure."
)


class OpsAgentClient:
    """High-level entry point: registry, resilience, planning and the run loop.

    One client is built at process start and shared by every request. Tool
    and model breakers live in a single ``ResilienceWrapper`` so their state
    is visible through :meth:`circuit_breakers`.
    """

    def __init__(
        self,
        settings: Optional[AgentSettings] = None,
        registry: Optional[ToolRegistry] = None,
        model: Optional[ModelProvider] = None,
        planner: Optional[Planner] = None,
        replanner: Optional[Replanner] = None,
        metrics_sink: Optional[MetricsSink] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        resilience: Optional[ResilienceWrapper] = None,
    ):
        self.settings = settings or AgentSettings.from_env()
        if registry is None:
            registry = register_standard_tools(ToolRegistry(), self.settings, http_client)
        self.registry = registry

        self.resilience = resilience or ResilienceWrapper(
            policy=self.settings.retry_policy(),
            breaker_config=self.settings.breaker_config(),
        )
        self.tool_executor = ReliableToolExecutor(self.registry, wrapper=self.resilience)

        if model is None and self.settings.planner == "llm":
            model = OpenAIChatProvider.from_settings(self.settings)
        self.model: Optional[ModelProvider] = (
            ResilientModelProvider(model, self.resilience) if model is not None else None
        )

        if planner is None or replanner is None:
            default_planner, default_replanner = self._default_planning()
            planner = planner or default_planner
            replanner = replanner or default_replanner

        self.metrics_sink = metrics_sink or InMemoryMetricsSink()
        self.orchestrator = Orchestrator(
            self.registry,
            planner,
            replanner,
            config=self.settings.orchestrator_config(),
            tool_executor=self.tool_executor,
            metrics_sink=self.metrics_sink,
        )

    def _default_planning(self):
        if self.settings.planner == "llm" and self.model is not None:
            return LLMPlanner(self.model, self.registry), LLMReplanner(self.model, self.registry)
        docs_fallback = [RuleStep("query_internal_docs", input_builder=lambda objective: {"query": objective})]
        return RuleBasedPlanner(default_ops_rules(), default_steps=docs_fallback), ResultSummaryReplanner()

    async def diagnose(
        self,
        objective: str,
        max_iterations: Optional[int] = None,
        timeout_s: Optional[float] = None,
        request_id: Optional[str] = None,
        cancel_event=None,
    ) -> OrchestrationOutput:
        """Run the plan/execute/replan loop for one objective."""
        overrides: Dict[str, Any] = {}
        if max_iterations is not None:
            overrides["max_iterations"] = max_iterations
        if timeout_s is not None:
            overrides["timeout_s"] = timeout_s
        if request_id is not None:
            overrides["request_id"] = request_id
        config = self.orchestrator.config
        if overrides:
            config = config.model_validate({**config.model_dump(), **overrides})
        return await self.orchestrator.orchestrate(objective, config=config, cancel_event=cancel_event)

    async def execute_tool_batch(
        self,
        calls: Sequence[ToolCall],
        dependencies: Dependencies = None,
        concurrency_limit: Optional[int] = None,
    ) -> List[ToolCall]:
        return await self.orchestrator.execute_tool_batch(calls, dependencies, concurrency_limit)

    async def chat_stream(
        self,
        message: str,
        history: Optional[List[ConversationMessage]] = None,
    ) -> AsyncIterator[str]:
        """Stream a direct model reply (no tools)."""
        if self.model is None:
            raise ProviderError("No model configured", provider="none")
        messages = [ConversationMessage.system(CHAT_SYSTEM_PROMPT)]
        messages.extend(history or [])
        messages.append(ConversationMessage.user(message))
        async for chunk in self.model.stream(messages):
            yield chunk

    def list_tools(self) -> List[Dict[str, Any]]:
        tools = []
        for meta in self.registry.list_metadata():
            tools.append({
                "name": meta.name,
                "category": meta.category.value,
                "enabled": meta.enabled,
                "caller_types": list(meta.allowed_caller_types),
                "description": meta.description,
            })
        return tools

    def enable_tool(self, name: str) -> None:
        self.registry.enable(name)

    def disable_tool(self, name: str) -> None:
        self.registry.disable(name)

    def circuit_breakers(self) -> Dict[str, Dict[str, Any]]:
        return self.resilience.get_stats()
