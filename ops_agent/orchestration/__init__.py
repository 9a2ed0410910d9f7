"""Agent task orchestration: tool registry, scheduling, planning and the run loop."""

from .errors import (
    OrchestratorError,
    ToolNotFoundError,
    ToolInputError,
    ToolExecutionError,
    CyclicDependencyError,
    MissingDependencyError,
    BatchTimeoutError,
    BatchCancelledError,
    BatchAbortedError,
    PlannerError,
    ReplannerError,
    IterationLimitExceeded,
    RunAbortedError,
    RunCancelledError,
)
from .tool_registry import (
    CallerType,
    FunctionTool,
    Tool,
    ToolCategory,
    ToolMetadata,
    ToolRegistry,
    invoke_tool,
)
from .dependency_graph import DependencyGraph, ToolDependency
from .parallel_executor import ParallelExecutor, ParallelExecutorConfig, execute_tool_batch
from .reliability import ReliabilityConfig, ReliableToolExecutor
from .orchestrator import Orchestrator, OrchestratorConfig

__all__ = [
    # Errors
    "OrchestratorError",
    "ToolNotFoundError",
    "ToolInputError",
    "ToolExecutionError",
    "CyclicDependencyError",
    "MissingDependencyError",
    "BatchTimeoutError",
    "BatchCancelledError",
    "BatchAbortedError",
    "PlannerError",
    "ReplannerError",
    "IterationLimitExceeded",
    "RunAbortedError",
    "RunCancelledError",
    # Registry
    "Tool",
    "FunctionTool",
    "ToolCategory",
    "CallerType",
    "ToolMetadata",
    "ToolRegistry",
    "invoke_tool",
    # Scheduling
    "ToolDependency",
    "DependencyGraph",
    "ParallelExecutor",
    "ParallelExecutorConfig",
    "execute_tool_batch",
    # Reliability
    "ReliabilityConfig",
    "ReliableToolExecutor",
    # Loop
    "Orchestrator",
    "OrchestratorConfig",
]
