"""Tests for rule-based planning."""

import pytest

from ops_agent.models.plan import OrchestrationState, Plan, ReplanAction
from ops_agent.models.tool_call import ToolCall
from ops_agent.orchestration import PlannerError
from ops_agent.orchestration.planning import (
    PlanningRule,
    ResultSummaryReplanner,
    RuleBasedPlanner,
    RuleStep,
    default_ops_rules,
)


@pytest.mark.unit
class TestRuleBasedPlanner:

    @pytest.mark.asyncio
    async def test_highest_priority_rule_wins(self):
        planner = RuleBasedPlanner([
            PlanningRule("low", r"checkout", [RuleStep("docs")], priority=1),
            PlanningRule("high", r"checkout", [RuleStep("logs")], priority=5),
        ])

        plan = await planner.plan("Checkout is failing", [])

        assert plan.tool_names == ["logs"]
        assert plan.rationale == "matched rule 'high'"

    @pytest.mark.asyncio
    async def test_combine_merges_matching_rules(self):
        planner = RuleBasedPlanner(
            [
                PlanningRule("a", r"db", [RuleStep("logs"), RuleStep("metrics")], priority=2),
                PlanningRule("b", r"db", [RuleStep("metrics"), RuleStep("docs")], priority=1),
            ],
            combine=True,
        )

        plan = await planner.plan("db latency", [])
        assert plan.tool_names == ["logs", "metrics", "docs"]

    @pytest.mark.asyncio
    async def test_default_steps_and_no_match(self):
        fallback = RuleBasedPlanner(default_steps=[RuleStep("docs", input_builder=lambda o: {"query": o})])
        plan = await fallback.plan("something odd", [])
        assert plan.calls[0].input == {"query": "something odd"}

        with pytest.raises(PlannerError):
            await RuleBasedPlanner().plan("something odd", [])

    @pytest.mark.asyncio
    async def test_dependencies_are_carried(self):
        planner = RuleBasedPlanner([
            PlanningRule("r", r".", [RuleStep("a"), RuleStep("b", depends_on=["a"])]),
        ])
        plan = await planner.plan("x", [])
        assert plan.dependencies == {"b": ["a"]}

    def test_add_and_remove_rule(self):
        planner = RuleBasedPlanner()
        planner.add_rule(PlanningRule("x", r"x"))
        assert planner.remove_rule("x") is True
        assert planner.remove_rule("x") is False

    @pytest.mark.asyncio
    async def test_default_ops_rules(self):
        planner = RuleBasedPlanner(default_ops_rules())

        alerts = await planner.plan("Which alerts are firing?", [])
        assert "query_prometheus_alerts" in alerts.tool_names
        assert alerts.dependencies == {"query_loki_logs": ["query_prometheus_alerts"]}

        errors = await planner.plan("exceptions in the payment service", [])
        assert "query_loki_logs" in errors.tool_names

        docs = await planner.plan("how do I rotate the TLS certs", [])
        assert docs.tool_names == ["query_internal_docs"]
        assert "rotate" in docs.calls[0].input["query"]


@pytest.mark.unit
class TestResultSummaryReplanner:

    def state(self, *results):
        state = OrchestrationState(objective="check api")
        state.plan = Plan(calls=[ToolCall(name=r.name) for r in results])
        state.record_results(list(results))
        return state

    @pytest.mark.asyncio
    async def test_completes_with_digest(self):
        state = self.state(
            ToolCall(name="logs").completed("x" * 20),
            ToolCall(name="metrics").failed(RuntimeError("prometheus down")),
        )

        decision = await ResultSummaryReplanner(max_result_chars=5).replan(state)

        assert decision.action == ReplanAction.COMPLETE
        assert "Objective: check api" in decision.final_answer
        assert "- logs: xxxxx..." in decision.final_answer
        assert "- metrics: FAILED (prometheus down)" in decision.final_answer

    @pytest.mark.asyncio
    async def test_abort_when_all_failed(self):
        state = self.state(ToolCall(name="logs").failed(RuntimeError("down")))
        decision = await ResultSummaryReplanner(abort_when_all_failed=True).replan(state)
        assert decision.action == ReplanAction.ABORT

    def test_summarize_without_results(self):
        assert "No tools were run." in ResultSummaryReplanner().summarize("x", [])
