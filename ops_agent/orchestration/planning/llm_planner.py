"""Model-backed planner and replanner."""

import json
from typing import Any, Dict, List, Optional, Sequence

from ...models.conversation_types import ConversationMessage
from ...models.plan import OrchestrationState, Plan, ReplanAction, ReplanDecision
from ...models.tool_call import ToolCall
from ...observability.logging import AgentLogger
from ...providers.base import ModelProvider
from ..errors import PlannerError, ReplannerError
from ..tool_registry import CallerType, ToolRegistry
from .parsing import parse_decision, parse_plan
from .planner import Planner, Replanner, check_plan

logger = AgentLogger("planner")

DEFAULT_MAX_STEPS = 8
DEFAULT_RESULT_CHARS = 4000

PLANNER_SYSTEM_PROMPT = """You are an operations assistant that diagnoses incidents using read-only tools.
Plan the next tool calls needed to make progress on the objective.

Available tools (JSON schema for each input):
{catalog}

Reply with a single JSON object:
{{"rationale": "<short reasoning>",
  "steps": [{{"tool": "<tool name>", "input": {{...}}, "depends_on": ["<tool name>", ...]}}]}}
Use depends_on only when a step needs another step's output. Use at most {max_steps} steps."""

REPLANNER_SYSTEM_PROMPT = """You are an operations assistant reviewing tool results for an incident diagnosis.
Decide whether the objective is answered.

Available tools (JSON schema for each input):
{catalog}

Reply with a single JSON object, one of:
{{"action": "complete", "answer": "<final answer for the operator>"}}
{{"action": "continue", "reason": "<what is missing>", "steps": [{{"tool": "...", "input": {{...}}, "depends_on": []}}]}}
{{"action": "abort", "reason": "<why the objective cannot be met>"}}
Tool failures are information, not a reason to abort by themselves."""


def render_results(results: Sequence[ToolCall], max_chars: int = DEFAULT_RESULT_CHARS) -> str:
    """JSON list of tool outcomes with long outputs truncated."""
    rendered: List[Dict[str, Any]] = []
    for call in results:
        item = call.summary()
        text = item.get("result")
        if text is not None and len(text) > max_chars:
            item["result"] = text[:max_chars] + f"... [truncated {len(text) - max_chars} chars]"
        rendered.append(item)
    return json.dumps(rendered, ensure_ascii=False, default=str)


class _ModelBacked:
    def __init__(
        self,
        model: ModelProvider,
        registry: ToolRegistry,
        caller_type: str = CallerType.PLAN_EXECUTE.value,
        max_steps: int = DEFAULT_MAX_STEPS,
        max_result_chars: int = DEFAULT_RESULT_CHARS,
    ):
        self.model = model
        self.registry = registry
        self.caller_type = caller_type
        self.max_steps = max_steps
        self.max_result_chars = max_result_chars

    def _catalog(self) -> str:
        return json.dumps(self.registry.catalog(self.caller_type), ensure_ascii=False, indent=1)

    async def _ask(self, system: str, user: str) -> str:
        messages = [ConversationMessage.system(system), ConversationMessage.user(user)]
        reply = await self.model.generate(messages)
        return reply.content


class LLMPlanner(_ModelBacked, Planner):
    """Asks the model for a JSON plan over the enabled tool catalog."""

    async def plan(self, objective: str, history: Sequence[ToolCall]) -> Plan:
        system = PLANNER_SYSTEM_PROMPT.format(catalog=self._catalog(), max_steps=self.max_steps)
        user = f"Objective: {objective}"
        if history:
            user += "\n\nResults so far:\n" + render_results(history, self.max_result_chars)

        try:
            reply = await self._ask(system, user)
        except Exception as e:
            raise PlannerError(f"Planner model call failed: {e}") from e

        try:
            plan = parse_plan(reply)
        except ValueError as e:
            logger.warning("Unparseable plan reply", reply_chars=len(reply), error=e)
            raise PlannerError(f"Planner reply is not a valid plan: {e}") from e

        if len(plan.calls) > self.max_steps:
            raise PlannerError(f"Plan has {len(plan.calls)} steps; limit is {self.max_steps}")

        logger.info("Plan produced", steps=len(plan.calls), tools=",".join(plan.tool_names) or None)
        return check_plan(plan)


class LLMReplanner(_ModelBacked, Replanner):
    """Asks the model whether results answer the objective."""

    async def replan(self, state: OrchestrationState) -> ReplanDecision:
        system = REPLANNER_SYSTEM_PROMPT.format(catalog=self._catalog())
        plan_text = json.dumps(state.plan.summary() if state.plan else {}, ensure_ascii=False)
        user = (
            f"Objective: {state.objective}\n"
            f"Iteration: {state.iteration_count}\n"
            f"Last plan: {plan_text}\n"
            f"All results:\n{render_results(state.completed_results, self.max_result_chars)}"
        )

        try:
            reply = await self._ask(system, user)
        except Exception as e:
            raise ReplannerError(f"Replanner model call failed: {e}") from e

        try:
            decision = parse_decision(reply)
        except ValueError as e:
            logger.warning("Unparseable replanner reply", reply_chars=len(reply), error=e)
            raise ReplannerError(f"Replanner reply is not a valid decision: {e}") from e

        if decision.action == ReplanAction.CONTINUE and decision.plan is not None:
            if len(decision.plan.calls) > self.max_steps:
                raise ReplannerError(
                    f"Replanned step count {len(decision.plan.calls)} exceeds limit {self.max_steps}"
                )
        logger.info("Replanner decided", action=decision.action.value, iteration=state.iteration_count)
        return decision
