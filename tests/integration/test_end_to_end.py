"""End-to-end integration tests for the ops agent."""

import asyncio
import json

import httpx
import pytest

from ops_agent import AgentSettings, OpsAgentClient, RunStatus, ToolCall
from ops_agent.observability.metrics import InMemoryMetricsSink
from tests.helpers.fakes import FakeModel

LOKI_BODY = {"status": "success", "data": {"result": [
    {"stream": {"job": "checkout"}, "values": [["1700000000000000000", "ERROR upstream timeout payments:8443"]]},
]}}
ALERTS_BODY = {"status": "success", "data": {"alerts": [
    {"labels": {"alertname": "CheckoutErrors", "severity": "page"}, "state": "firing",
     "annotations": {"summary": "checkout 5xx > 2%"}},
]}}


class Backends:
    """Loki and Prometheus stand-ins behind one mock transport."""

    def __init__(self, prometheus_up=True):
        self.prometheus_up = prometheus_up
        self.requests = []

    def __call__(self, request):
        self.requests.append((request.url.host, request.url.path))
        if request.url.host == "loki.test":
            return httpx.Response(200, json=LOKI_BODY)
        if not self.prometheus_up:
            return httpx.Response(503, text="prometheus unavailable")
        if request.url.path == "/api/v1/alerts":
            return httpx.Response(200, json=ALERTS_BODY)
        return httpx.Response(200, json={"status": "success", "data": {"resultType": "vector", "result": []}})


@pytest.fixture
def integration_settings(tmp_path):
    (tmp_path / "checkout.md").write_text(
        "# Checkout runbook\n\nCheckout errors usually mean the payments upstream is slow.\n"
    )
    return AgentSettings(
        planner="rules",
        docs_dir=str(tmp_path),
        loki_url="http://loki.test",
        prometheus_url="http://prom.test",
        retry_base_delay_s=0.0,
        retry_max_delay_s=0.0,
        breaker_max_failures=2,
    )


@pytest.mark.integration
class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_rule_based_alert_investigation(self, integration_settings):
        backends = Backends()
        async with httpx.AsyncClient(transport=httpx.MockTransport(backends)) as http_client:
            agent = OpsAgentClient(integration_settings, http_client=http_client)
            output = await agent.diagnose("Why is the CheckoutErrors alert firing?")

        assert output.status == RunStatus.DONE
        assert [r["name"] for r in output.results] == [
            "get_current_time", "query_prometheus_alerts", "query_loki_logs",
        ]
        assert all("error" not in r for r in output.results)
        assert "CheckoutErrors" in output.final_answer
        assert backends.requests.index(("prom.test", "/api/v1/alerts")) < backends.requests.index(
            ("loki.test", "/loki/api/v1/query_range")
        )

    @pytest.mark.asyncio
    async def test_llm_planned_multi_pass_run(self, integration_settings):
        model = FakeModel([
            json.dumps({"rationale": "start with alerts", "steps": [
                {"tool": "query_prometheus_alerts", "input": {"state": "firing"}},
                {"tool": "query_loki_logs", "input": {"query": '{job="checkout"} |= "ERROR"'},
                 "depends_on": ["query_prometheus_alerts"]},
            ]}),
            json.dumps({"action": "continue", "reason": "check the runbook", "steps": [
                {"tool": "query_internal_docs", "input": {"query": "payments upstream"}},
            ]}),
            json.dumps({"action": "complete", "answer": "Payments upstream timeouts; follow the checkout runbook."}),
        ])
        sink = InMemoryMetricsSink()

        async with httpx.AsyncClient(transport=httpx.MockTransport(Backends())) as http_client:
            agent = OpsAgentClient(
                integration_settings.model_copy(update={"planner": "llm"}),
                model=model,
                metrics_sink=sink,
                http_client=http_client,
            )
            output = await agent.diagnose("checkout is failing", request_id="inc-42")

        assert output.succeeded
        assert output.final_answer.startswith("Payments upstream timeouts")
        assert output.iteration_count == 2
        assert [r["name"] for r in output.results] == [
            "query_prometheus_alerts", "query_loki_logs", "query_internal_docs",
        ]
        assert "checkout.md" in output.results[2]["result"]
        # One planner call and two replanner calls
        assert len(model.prompts) == 3
        assert sink.get_metrics()[0].request_id == "inc-42"

    @pytest.mark.asyncio
    async def test_breaker_opens_across_runs(self, integration_settings):
        backends = Backends(prometheus_up=False)
        async with httpx.AsyncClient(transport=httpx.MockTransport(backends)) as http_client:
            agent = OpsAgentClient(integration_settings, http_client=http_client)
            for _ in range(3):
                output = await agent.diagnose("cpu usage on the api nodes")
                assert output.status == RunStatus.DONE

        stats = agent.circuit_breakers()
        assert stats["query_prometheus"]["state"] == "open"
        assert stats["query_prometheus"]["rejected"] >= 1
        assert "FAILED" in output.final_answer
        prom_calls = [r for r in backends.requests if r == ("prom.test", "/api/v1/query")]
        # Two runs of three attempts each before the breaker opened
        assert len(prom_calls) == 6

    @pytest.mark.asyncio
    async def test_disabled_tool_becomes_failed_result(self, integration_settings):
        async with httpx.AsyncClient(transport=httpx.MockTransport(Backends())) as http_client:
            agent = OpsAgentClient(integration_settings, http_client=http_client)
            agent.disable_tool("query_loki_logs")
            output = await agent.diagnose("exceptions in checkout logs")

        failed = {r["name"]: r.get("error_type") for r in output.results}
        assert failed["query_loki_logs"] == "ToolNotFoundError"
        assert output.status == RunStatus.DONE

    @pytest.mark.asyncio
    async def test_batch_with_concurrency_limit(self, integration_settings):
        async with httpx.AsyncClient(transport=httpx.MockTransport(Backends())) as http_client:
            agent = OpsAgentClient(integration_settings, http_client=http_client)
            calls = [ToolCall(name="query_prometheus", input={"query": f"up{{job=\"j{i}\"}}"}) for i in range(10)]
            results = await agent.execute_tool_batch(calls, concurrency_limit=3)

        assert len(results) == 10
        assert all(r.succeeded for r in results)

    @pytest.mark.asyncio
    async def test_cancel_event_ends_run(self, integration_settings):
        async def hang(request):
            await asyncio.sleep(10)
            return httpx.Response(200, json=LOKI_BODY)

        cancel = asyncio.Event()
        async with httpx.AsyncClient(transport=httpx.MockTransport(hang)) as http_client:
            agent = OpsAgentClient(integration_settings, http_client=http_client)
            asyncio.get_running_loop().call_later(0.05, cancel.set)
            output = await agent.diagnose("errors in checkout", cancel_event=cancel)

        assert output.status == RunStatus.FAILED
        assert output.failure_reason == "cancelled"
