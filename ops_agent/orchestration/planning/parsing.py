"""Parsing of model replies into plans and replanning decisions.

Models are asked for a JSON object. Replies wrapped in Markdown code
fences, or with prose around the object, are tolerated.
"""

import json
import re
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ...models.plan import Plan, ReplanDecision
from ...models.tool_call import ToolCall

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class StepSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tool: str = Field(..., min_length=1, alias="name")
    input: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list)


class PlanSpec(BaseModel):
    steps: List[StepSpec] = Field(default_factory=list)
    rationale: Optional[str] = None

    def to_plan(self) -> Plan:
        return plan_from_steps(self.steps, self.rationale)


class DecisionSpec(BaseModel):
    action: Literal["continue", "complete", "abort"]
    answer: Optional[str] = None
    reason: Optional[str] = None
    steps: Optional[List[StepSpec]] = None


def plan_from_steps(steps: Sequence[StepSpec], rationale: Optional[str] = None) -> Plan:
    dependencies: Dict[str, List[str]] = {}
    for step in steps:
        if step.depends_on:
            merged = dependencies.setdefault(step.tool, [])
            merged.extend(d for d in step.depends_on if d not in merged)
    return Plan(
        calls=[ToolCall(name=step.tool, input=step.input) for step in steps],
        dependencies=dependencies,
        rationale=rationale,
    )


def extract_json(text: str) -> Any:
    """Pull the first JSON object out of a model reply.

    Raises:
        ValueError: If no JSON object can be decoded
    """
    if not text or not text.strip():
        raise ValueError("empty reply")

    candidates = [m.group(1) for m in _FENCE_RE.finditer(text)]
    candidates.append(text)
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate.strip())
        except json.JSONDecodeError:
            continue
    raise ValueError("no JSON object found in reply")


def parse_plan(text: str) -> Plan:
    """
    Raises:
        ValueError: On malformed JSON or a reply that does not match the plan shape
    """
    data = extract_json(text)
    if isinstance(data, list):
        data = {"steps": data}
    return PlanSpec.model_validate(data).to_plan()


def parse_decision(text: str) -> ReplanDecision:
    data = extract_json(text)
    spec = DecisionSpec.model_validate(data)

    if spec.action == "complete":
        if not spec.answer:
            raise ValueError("'complete' decision without an answer")
        return ReplanDecision.complete(spec.answer)
    if spec.action == "abort":
        return ReplanDecision.abort(spec.reason or "aborted by replanner")
    plan = plan_from_steps(spec.steps) if spec.steps else None
    return ReplanDecision.replan(plan, reason=spec.reason)
