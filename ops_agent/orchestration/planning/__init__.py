"""Planning components for the plan/execute/replan loop."""

from .planner import Planner, Replanner, check_plan
from .parsing import extract_json, parse_decision, parse_plan
from .llm_planner import LLMPlanner, LLMReplanner
from .rule_based import (
    PlanningRule,
    ResultSummaryReplanner,
    RuleBasedPlanner,
    RuleStep,
    default_ops_rules,
)

__all__ = [
    "Planner",
    "Replanner",
    "check_plan",
    "extract_json",
    "parse_plan",
    "parse_decision",
    "LLMPlanner",
    "LLMReplanner",
    "PlanningRule",
    "RuleStep",
    "RuleBasedPlanner",
    "ResultSummaryReplanner",
    "default_ops_rules",
]
