"""Built-in read-only operational tools."""

from typing import Optional

import httpx

from ..config.settings import AgentSettings
from ..orchestration.tool_registry import CallerType, ToolCategory, ToolRegistry
from .base import HttpTool
from .clock import CurrentTimeTool
from .docs import InternalDocsTool, search_docs
from .loki import LokiQueryTool
from .prometheus import PrometheusAlertsTool, PrometheusQueryTool


def register_standard_tools(
    registry: ToolRegistry,
    settings: Optional[AgentSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> ToolRegistry:
    """Register the built-in tools with their categories and caller types."""
    settings = settings or AgentSettings()
    agents = [CallerType.CHAT, CallerType.PLAN_EXECUTE]

    registry.register_category(
        ToolCategory.OBSERVABILITY,
        [
            LokiQueryTool(settings.loki_url, client=client),
            PrometheusQueryTool(settings.prometheus_url, client=client),
            PrometheusAlertsTool(settings.prometheus_url, client=client),
        ],
        caller_types=agents,
    )
    registry.register_category(
        ToolCategory.KNOWLEDGE,
        [InternalDocsTool(settings.docs_dir)],
        caller_types=agents + [CallerType.KNOWLEDGE],
    )
    registry.register_category(ToolCategory.UTILITY, [CurrentTimeTool()], caller_types=[CallerType.ALL])
    return registry


__all__ = [
    "HttpTool",
    "LokiQueryTool",
    "PrometheusQueryTool",
    "PrometheusAlertsTool",
    "InternalDocsTool",
    "CurrentTimeTool",
    "search_docs",
    "register_standard_tools",
]
