"""Planner and replanner interfaces."""

from abc import ABC, abstractmethod
from typing import Sequence

from ...models.plan import OrchestrationState, Plan, ReplanDecision
from ...models.tool_call import ToolCall
from ..dependency_graph import graph_for_calls
from ..errors import CyclicDependencyError, PlannerError


class Planner(ABC):
    """Turns an objective (plus results so far) into a :class:`Plan`."""

    @abstractmethod
    async def plan(self, objective: str, history: Sequence[ToolCall]) -> Plan:
        """
        Produce the next plan.

        Args:
            objective: What the operator asked for
            history: Every tool result from earlier passes, oldest first

        Raises:
            PlannerError: If no usable plan can be produced
        """
        pass


class Replanner(ABC):
    """Decides whether to go around again, finish, or give up."""

    @abstractmethod
    async def replan(self, state: OrchestrationState) -> ReplanDecision:
        """
        Inspect cumulative results and decide.

        Raises:
            ReplannerError: If no decision can be reached
        """
        pass


def check_plan(plan: Plan) -> Plan:
    """Reject plans whose dependency graph cannot be scheduled."""
    for call in plan.calls:
        if call.done:
            raise PlannerError(f"Plan step '{call.name}' is already done")
    try:
        graph_for_calls(plan.tool_names, plan.dependencies).resolve()
    except CyclicDependencyError as e:
        raise PlannerError(f"Plan has a dependency cycle: {e}") from e
    return plan
