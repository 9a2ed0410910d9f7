"""Plans, replanning decisions and orchestration run state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .tool_call import ToolCall


class Plan(BaseModel):
    """Tool calls for one execution pass plus the dependencies between them.

    ``dependencies`` maps a tool name to the names it must wait for.
    """

    calls: List[ToolCall] = Field(default_factory=list)
    dependencies: Dict[str, List[str]] = Field(default_factory=dict)
    rationale: Optional[str] = None

    @property
    def tool_names(self) -> List[str]:
        return [call.name for call in self.calls]

    def is_empty(self) -> bool:
        return not self.calls

    def summary(self) -> Dict[str, Any]:
        return {
            "steps": [{"name": c.name, "input": c.input} for c in self.calls],
            "dependencies": {k: list(v) for k, v in self.dependencies.items()},
            "rationale": self.rationale,
        }


class ReplanAction(str, Enum):
    CONTINUE = "continue"
    COMPLETE = "complete"
    ABORT = "abort"


class ReplanDecision(BaseModel):
    """Outcome of a replanning pass."""

    action: ReplanAction
    plan: Optional[Plan] = None
    final_answer: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def replan(cls, plan: Optional[Plan] = None, reason: Optional[str] = None) -> "ReplanDecision":
        """Go around again, with ``plan`` if given, otherwise via the planner."""
        return cls(action=ReplanAction.CONTINUE, plan=plan, reason=reason)

    @classmethod
    def complete(cls, final_answer: str) -> "ReplanDecision":
        return cls(action=ReplanAction.COMPLETE, final_answer=final_answer)

    @classmethod
    def abort(cls, reason: str) -> "ReplanDecision":
        return cls(action=ReplanAction.ABORT, reason=reason)


class OrchestrationPhase(str, Enum):
    """States of the plan/execute/replan loop."""
    PLANNING = "planning"
    EXECUTING = "executing"
    REPLANNING = "replanning"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OrchestrationPhase.DONE, OrchestrationPhase.FAILED)


class RunStatus(str, Enum):
    DONE = "done"
    FAILED = "failed"


class IterationTrace(BaseModel):
    """What happened during one planning pass."""

    iteration: int
    plan: Dict[str, Any] = Field(default_factory=dict)
    results: List[Dict[str, Any]] = Field(default_factory=list)
    decision: Optional[ReplanAction] = None
    reason: Optional[str] = None


@dataclass
class OrchestrationState:
    """Per-run state owned by a single orchestration loop.

    Completed results are append-only; ``completed_results`` exposes them as
    a tuple so callers cannot rewrite history.
    """

    objective: str
    phase: OrchestrationPhase = OrchestrationPhase.PLANNING
    iteration_count: int = 0
    plan: Optional[Plan] = None
    pending_plan: Optional[Plan] = None
    final_answer: Optional[str] = None
    failure_reason: Optional[str] = None
    error: Optional[BaseException] = None
    traces: List[IterationTrace] = field(default_factory=list)
    _results: List[ToolCall] = field(default_factory=list, repr=False)

    @property
    def terminal(self) -> bool:
        return self.phase.is_terminal

    @property
    def completed_results(self) -> Tuple[ToolCall, ...]:
        return tuple(self._results)

    def record_results(self, results: List[ToolCall]) -> None:
        for call in results:
            if not call.done:
                raise ValueError(f"Cannot record unfinished call '{call.name}'")
        self._results.extend(results)

    def transition(self, phase: OrchestrationPhase) -> None:
        if self.terminal:
            raise RuntimeError(
                f"Run already finished in state '{self.phase.value}'; "
                f"cannot move to '{phase.value}'"
            )
        self.phase = phase

    def finish(self, final_answer: str) -> None:
        self.transition(OrchestrationPhase.DONE)
        self.final_answer = final_answer

    def fail(self, reason: str, error: Optional[BaseException] = None) -> None:
        self.transition(OrchestrationPhase.FAILED)
        self.failure_reason = reason
        self.error = error


class OrchestrationOutput(BaseModel):
    """Result of an orchestration run. Either a final answer or a failure reason."""

    status: RunStatus = Field(..., description="done or failed")
    final_answer: Optional[str] = Field(default=None)
    failure_reason: Optional[str] = Field(default=None)
    error_type: Optional[str] = Field(default=None, description="Exception class that ended the run")
    iterations: List[IterationTrace] = Field(default_factory=list)
    results: List[Dict[str, Any]] = Field(default_factory=list, description="All tool results in completion order")
    elapsed_ms: int = Field(default=0)
    request_id: Optional[str] = Field(default=None)

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.DONE

    @property
    def iteration_count(self) -> int:
        return len(self.iterations)
