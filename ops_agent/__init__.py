"""
Ops Agent - plan/execute/replan orchestration over operational tools.

This package drives an objective ("why is checkout returning 502s?") through
a bounded loop:
- A planner turns the objective into a set of tool calls
- The parallel executor runs them under a concurrency cap and dependency order
- A replanner decides whether to finish, continue or abort

Features:
- Tool registry with per-caller visibility and runtime enable/disable
- Circuit breakers and exponential-backoff retry around every tool and model call
- LLM-backed or rule-based planning
- Loki, Prometheus and internal docs tools out of the box
"""

__version__ = "0.1.0"

from .config.settings import AgentSettings
from .main import OpsAgentClient
from .models.conversation_types import ConversationMessage, TurnRole
from .models.plan import (
    OrchestrationOutput,
    OrchestrationPhase,
    OrchestrationState,
    Plan,
    ReplanAction,
    ReplanDecision,
    RunStatus,
)
from .models.tool_call import ToolCall
from .orchestration import (
    CallerType,
    DependencyGraph,
    FunctionTool,
    Orchestrator,
    OrchestratorConfig,
    ParallelExecutor,
    ParallelExecutorConfig,
    ReliableToolExecutor,
    Tool,
    ToolCategory,
    ToolRegistry,
    execute_tool_batch,
)
from .reliability import (
    CircuitBreaker,
    CircuitBreakerConfig,
    ResilienceWrapper,
    RetryPolicy,
)

__all__ = [
    # Main client
    "OpsAgentClient",
    "AgentSettings",

    # Models
    "ConversationMessage",
    "TurnRole",
    "ToolCall",
    "Plan",
    "ReplanAction",
    "ReplanDecision",
    "OrchestrationPhase",
    "OrchestrationState",
    "OrchestrationOutput",
    "RunStatus",

    # Orchestration
    "Tool",
    "FunctionTool",
    "ToolCategory",
    "CallerType",
    "ToolRegistry",
    "DependencyGraph",
    "ParallelExecutor",
    "ParallelExecutorConfig",
    "execute_tool_batch",
    "ReliableToolExecutor",
    "Orchestrator",
    "OrchestratorConfig",

    # Reliability
    "RetryPolicy",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "ResilienceWrapper",
]
