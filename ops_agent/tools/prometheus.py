"""Prometheus instant queries and active alerts."""

from typing import Any, Dict, List, Optional

import httpx

from ..config import constants as c
from ..orchestration.errors import ToolExecutionError
from .base import HttpTool, to_json


class PrometheusError(Exception):
    """Prometheus answered with ``status: error``."""


class _PrometheusTool(HttpTool):
    def __init__(
        self,
        base_url: str = c.DEFAULT_PROMETHEUS_URL,
        timeout: float = c.PROMETHEUS_QUERY_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, timeout, client)

    async def api_get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        raw = await self.get_json(path, params)
        if not isinstance(raw, dict) or raw.get("status") != "success":
            detail = raw.get("error") if isinstance(raw, dict) else None
            raise ToolExecutionError(
                self.name, PrometheusError(detail or "unexpected response"), is_retryable=False
            )
        return raw.get("data") or {}


class PrometheusQueryTool(_PrometheusTool):
    """``query_prometheus``: evaluate a PromQL expression at one instant."""

    @property
    def name(self) -> str:
        return "query_prometheus"

    @property
    def description(self) -> str:
        return "Evaluate a PromQL instant query (e.g. error rates, latency, up == 0)."

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "minLength": 1, "description": "PromQL expression"},
                "time": {"type": "number", "description": "Evaluation time (unix seconds). Defaults to now."},
            },
            "required": ["query"],
            "additionalProperties": False,
        }

    async def invoke(self, input: Dict[str, Any]) -> str:
        params: Dict[str, Any] = {"query": input["query"]}
        if input.get("time") is not None:
            params["time"] = input["time"]
        data = await self.api_get("/api/v1/query", params)
        result = data.get("result") or []
        return to_json({
            "success": True,
            "query": input["query"],
            "result_type": data.get("resultType"),
            "count": len(result),
            "result": result,
        })


class PrometheusAlertsTool(_PrometheusTool):
    """``query_prometheus_alerts``: list pending and firing alerts."""

    @property
    def name(self) -> str:
        return "query_prometheus_alerts"

    @property
    def description(self) -> str:
        return "List currently active Prometheus alerts with their labels and state."

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "state": {"type": "string", "enum": ["firing", "pending"]},
            },
            "additionalProperties": False,
        }

    async def invoke(self, input: Dict[str, Any]) -> str:
        data = await self.api_get("/api/v1/alerts")
        alerts: List[Dict[str, Any]] = []
        for alert in data.get("alerts") or []:
            if input.get("state") and alert.get("state") != input["state"]:
                continue
            labels = alert.get("labels") or {}
            annotations = alert.get("annotations") or {}
            alerts.append({
                "name": labels.get("alertname"),
                "state": alert.get("state"),
                "severity": labels.get("severity"),
                "active_at": alert.get("activeAt"),
                "summary": annotations.get("summary") or annotations.get("description"),
                "labels": labels,
            })
        return to_json({"success": True, "count": len(alerts), "alerts": alerts})
