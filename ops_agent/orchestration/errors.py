"""Orchestration-specific error definitions."""

from typing import Optional, Dict, Any, Sequence


class OrchestratorError(Exception):
    """Base exception for orchestration errors."""

    is_retryable = False


class ToolNotFoundError(OrchestratorError):
    """The tool was never registered, or is disabled."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")


class ToolInputError(OrchestratorError):
    """Tool input failed schema validation; the tool was not invoked."""

    def __init__(self, tool_name: str, reason: str):
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(f"Invalid input for tool '{tool_name}': {reason}")


class ToolExecutionError(OrchestratorError):
    """Exception raised when a tool invocation fails."""

    def __init__(
        self,
        tool_name: str,
        original_error: BaseException,
        is_retryable: bool = True,
        metadata: Optional[Dict[str, Any]] = None
    ):
        self.tool_name = tool_name
        self.original_error = original_error
        self.is_retryable = is_retryable
        self.metadata = metadata or {}

        detail = str(original_error) or type(original_error).__name__
        super().__init__(f"Tool '{tool_name}' failed: {detail}")


class CyclicDependencyError(OrchestratorError):
    """The dependency graph has a cycle; nothing in the batch runs."""

    def __init__(self, tool_name: str, cycle: Optional[Sequence[str]] = None):
        self.tool_name = tool_name
        self.cycle = list(cycle or [])
        message = f"Cyclic dependency detected at tool '{tool_name}'"
        if self.cycle:
            message += f" ({' -> '.join(self.cycle)})"
        super().__init__(message)


class MissingDependencyError(OrchestratorError):
    """A call depends on a tool that is not part of the batch."""

    def __init__(self, tool_name: str, missing: Sequence[str]):
        self.tool_name = tool_name
        self.missing = list(missing)
        super().__init__(
            f"Tool '{tool_name}' depends on tools not in the batch: {', '.join(self.missing)}"
        )


class BatchTimeoutError(OrchestratorError):
    """The batch deadline elapsed before this call finished."""

    def __init__(self, tool_name: str, timeout: float, started: bool):
        self.tool_name = tool_name
        self.timeout = timeout
        self.started = started
        state = "cancelled in flight" if started else "not started"
        super().__init__(f"Tool '{tool_name}' {state}: batch deadline of {timeout}s exceeded")


class BatchCancelledError(OrchestratorError):
    """The batch was cancelled before this call finished."""

    def __init__(self, tool_name: str, started: bool):
        self.tool_name = tool_name
        self.started = started
        state = "cancelled in flight" if started else "cancelled before start"
        super().__init__(f"Tool '{tool_name}' {state}")


class BatchAbortedError(OrchestratorError):
    """Fail-fast mode stopped the batch after another call failed."""

    def __init__(self, tool_name: str, cause_tool: str):
        self.tool_name = tool_name
        self.cause_tool = cause_tool
        super().__init__(f"Tool '{tool_name}' aborted: '{cause_tool}' failed in fail-fast mode")


class PlannerError(OrchestratorError):
    """The planner could not produce a usable plan."""
    pass


class ReplannerError(OrchestratorError):
    """The replanner could not reach a decision."""
    pass


class IterationLimitExceeded(OrchestratorError):
    """The run reached its planning iteration ceiling."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"iteration limit exceeded ({limit})")


class RunAbortedError(OrchestratorError):
    """The replanner chose to abort the run."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class RunCancelledError(OrchestratorError):
    """The run's cancel signal was set."""

    def __init__(self, reason: str = "cancelled"):
        self.reason = reason
        super().__init__(reason)
