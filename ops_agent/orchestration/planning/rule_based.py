"""Rule-based planning for model-free operation.

Rules match the objective text with a regular expression and expand to a
fixed set of steps. The companion :class:`ResultSummaryReplanner` finishes
after one pass with a plain-text digest of the results.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence
from dataclasses import dataclass, field
import re

from ...models.plan import OrchestrationState, Plan, ReplanDecision
from ...models.tool_call import ToolCall
from ..errors import PlannerError
from .planner import Planner, Replanner, check_plan

InputBuilder = Callable[[str], Dict[str, Any]]


@dataclass
class RuleStep:
    """One tool call produced by a rule."""
    tool: str
    input: Dict[str, Any] = field(default_factory=dict)
    depends_on: List[str] = field(default_factory=list)

    # Builds the input from the objective; overrides ``input`` when set
    input_builder: Optional[InputBuilder] = None

    def build_call(self, objective: str) -> ToolCall:
        payload = self.input_builder(objective) if self.input_builder else dict(self.input)
        return ToolCall(name=self.tool, input=payload)


@dataclass
class PlanningRule:
    """A single planning rule."""

    # Rule name for debugging
    name: str

    # Case-insensitive regular expression searched in the objective
    pattern: str

    steps: List[RuleStep] = field(default_factory=list)

    # Priority (higher = evaluated first)
    priority: int = 0

    def matches(self, objective: str) -> bool:
        return bool(re.search(self.pattern, objective, re.IGNORECASE))

    def build_plan(self, objective: str) -> Plan:
        dependencies = {s.tool: list(s.depends_on) for s in self.steps if s.depends_on}
        return Plan(
            calls=[s.build_call(objective) for s in self.steps],
            dependencies=dependencies,
            rationale=f"matched rule '{self.name}'",
        )


class RuleBasedPlanner(Planner):
    """Selects steps from the highest-priority rule that matches.

    With ``combine=True`` the steps of every matching rule are merged
    (first occurrence of each tool wins).
    """

    def __init__(
        self,
        rules: Optional[Sequence[PlanningRule]] = None,
        default_steps: Optional[Sequence[RuleStep]] = None,
        combine: bool = False,
    ):
        self.rules: List[PlanningRule] = []
        self.default_steps = list(default_steps or [])
        self.combine = combine
        for rule in rules or []:
            self.add_rule(rule)

    def add_rule(self, rule: PlanningRule) -> None:
        self.rules.append(rule)
        self.rules.sort(key=lambda r: -r.priority)

    def remove_rule(self, name: str) -> bool:
        before = len(self.rules)
        self.rules = [r for r in self.rules if r.name != name]
        return len(self.rules) < before

    async def plan(self, objective: str, history: Sequence[ToolCall]) -> Plan:
        matched = [rule for rule in self.rules if rule.matches(objective)]
        if not matched:
            if not self.default_steps:
                raise PlannerError(f"No planning rule matches objective: {objective!r}")
            matched = [PlanningRule(name="default", pattern="", steps=self.default_steps)]

        if not self.combine:
            return check_plan(matched[0].build_plan(objective))

        steps: List[RuleStep] = []
        seen = set()
        for rule in matched:
            for step in rule.steps:
                if step.tool not in seen:
                    seen.add(step.tool)
                    steps.append(step)
        combined = PlanningRule(
            name="+".join(r.name for r in matched), pattern="", steps=steps
        )
        return check_plan(combined.build_plan(objective))


class ResultSummaryReplanner(Replanner):
    """Completes with a digest of every result.

    Aborts instead when ``abort_when_all_failed`` is set and every call of
    the latest pass failed.
    """

    def __init__(self, max_result_chars: int = 500, abort_when_all_failed: bool = False):
        self.max_result_chars = max_result_chars
        self.abort_when_all_failed = abort_when_all_failed

    async def replan(self, state: OrchestrationState) -> ReplanDecision:
        results = state.completed_results
        latest = results[-len(state.plan.calls):] if state.plan and state.plan.calls else ()
        if self.abort_when_all_failed and latest and all(r.error is not None for r in latest):
            return ReplanDecision.abort("all tool calls failed")
        return ReplanDecision.complete(self.summarize(state.objective, results))

    def summarize(self, objective: str, results: Sequence[ToolCall]) -> str:
        lines = [f"Objective: {objective}"]
        if not results:
            lines.append("No tools were run.")
        for call in results:
            if call.error is not None:
                lines.append(f"- {call.name}: FAILED ({call.error_message})")
                continue
            text = (call.result or "").strip()
            if len(text) > self.max_result_chars:
                text = text[:self.max_result_chars] + "..."
            lines.append(f"- {call.name}: {text or '(empty)'}")
        return "\n".join(lines)


def _docs_query(objective: str) -> Dict[str, Any]:
    words = re.findall(r"[\w\-]{3,}", objective.lower())
    return {"query": " ".join(words[:6]) or objective}


def default_ops_rules() -> List[PlanningRule]:
    """Rules covering the built-in observability, docs and clock tools."""
    log_errors = RuleStep(
        "query_loki_logs",
        input={"query": '{job=~".+"} |~ "(?i)(error|exception|panic|timeout)"', "limit": 200},
    )
    return [
        PlanningRule(
            name="alerts",
            pattern=r"\balert|firing|incident|on-?call",
            priority=30,
            steps=[
                RuleStep("get_current_time"),
                RuleStep("query_prometheus_alerts"),
                RuleStep("query_loki_logs", input=dict(log_errors.input), depends_on=["query_prometheus_alerts"]),
            ],
        ),
        PlanningRule(
            name="errors",
            pattern=r"\berror|exception|fail|crash|5\d\d|log",
            priority=20,
            steps=[RuleStep("get_current_time"), log_errors],
        ),
        PlanningRule(
            name="metrics",
            pattern=r"\bcpu|memory|latency|slow|metric|qps|load|down\b|\bup\b",
            priority=10,
            steps=[
                RuleStep("query_prometheus", input={"query": "up == 0"}),
                RuleStep("query_prometheus_alerts"),
            ],
        ),
        PlanningRule(
            name="docs",
            pattern=r"\bhow|runbook|doc|guide|what is",
            priority=0,
            steps=[RuleStep("query_internal_docs", input_builder=_docs_query)],
        ),
    ]
