"""Tests for the model-backed planner and replanner."""

import json

import pytest

from ops_agent.models.plan import OrchestrationState, Plan, ReplanAction
from ops_agent.models.tool_call import ToolCall
from ops_agent.models.conversation_types import TurnRole
from ops_agent.orchestration import PlannerError, ReplannerError
from ops_agent.orchestration.planning import LLMPlanner, LLMReplanner
from tests.helpers.fakes import FakeModel


@pytest.mark.unit
class TestLLMPlanner:

    @pytest.mark.asyncio
    async def test_plan_from_reply(self, registry):
        model = FakeModel(['{"steps": [{"tool": "logs"}, {"tool": "metrics", "depends_on": ["logs"]}]}'])
        planner = LLMPlanner(model, registry)

        plan = await planner.plan("why is checkout slow?", [])

        assert plan.tool_names == ["logs", "metrics"]
        assert plan.dependencies == {"metrics": ["logs"]}

        system, user = model.prompts[0]
        assert system.role == TurnRole.SYSTEM
        assert '"name": "logs"' in system.content
        assert "why is checkout slow?" in user.content

    @pytest.mark.asyncio
    async def test_catalog_respects_caller_type_and_enabled(self, registry):
        registry.disable("metrics")
        model = FakeModel(['{"steps": []}'])

        await LLMPlanner(model, registry, caller_type="knowledge").plan("x", [])

        catalog = model.prompts[0][0].content
        assert '"name": "clock"' in catalog
        assert '"name": "logs"' not in catalog

    @pytest.mark.asyncio
    async def test_history_is_rendered(self, registry):
        model = FakeModel(['{"steps": []}'])
        history = [
            ToolCall(name="logs").completed("x" * 50),
            ToolCall(name="metrics").failed(RuntimeError("timeout")),
        ]

        await LLMPlanner(model, registry, max_result_chars=10).plan("x", history)

        user = model.prompts[0][1].content
        assert "truncated 40 chars" in user
        assert "timeout" in user

    @pytest.mark.asyncio
    async def test_unparseable_reply(self, registry):
        with pytest.raises(PlannerError):
            await LLMPlanner(FakeModel(["I think you should check the logs."]), registry).plan("x", [])

    @pytest.mark.asyncio
    async def test_model_failure_becomes_planner_error(self, registry):
        with pytest.raises(PlannerError):
            await LLMPlanner(FakeModel([ConnectionError("down")]), registry).plan("x", [])

    @pytest.mark.asyncio
    async def test_step_limit(self, registry):
        steps = [{"tool": f"t{i}"} for i in range(4)]
        model = FakeModel([json.dumps({"steps": steps})])
        with pytest.raises(PlannerError):
            await LLMPlanner(model, registry, max_steps=3).plan("x", [])

    @pytest.mark.asyncio
    async def test_cyclic_plan_rejected(self, registry):
        reply = '{"steps": [{"tool": "a", "depends_on": ["b"]}, {"tool": "b", "depends_on": ["a"]}]}'
        with pytest.raises(PlannerError):
            await LLMPlanner(FakeModel([reply]), registry).plan("x", [])


@pytest.mark.unit
class TestLLMReplanner:

    def state_with_results(self):
        state = OrchestrationState(objective="find the 502s", iteration_count=1)
        state.plan = Plan(calls=[ToolCall(name="logs")])
        state.record_results([ToolCall(name="logs").completed("502 from upstream")])
        return state

    @pytest.mark.asyncio
    async def test_complete_decision(self, registry):
        model = FakeModel(['{"action": "complete", "answer": "upstream 502s"}'])

        decision = await LLMReplanner(model, registry).replan(self.state_with_results())

        assert decision.action == ReplanAction.COMPLETE
        assert "502 from upstream" in model.prompts[0][1].content

    @pytest.mark.asyncio
    async def test_bad_reply(self, registry):
        with pytest.raises(ReplannerError):
            await LLMReplanner(FakeModel(['{"action": "complete"}']), registry).replan(
                self.state_with_results()
            )

    @pytest.mark.asyncio
    async def test_replanned_step_limit(self, registry):
        steps = [{"tool": "logs"}] * 3
        model = FakeModel([json.dumps({"action": "continue", "steps": steps})])
        with pytest.raises(ReplannerError):
            await LLMReplanner(model, registry, max_steps=2).replan(self.state_with_results())
