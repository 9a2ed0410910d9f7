"""LogQL range queries against Loki."""

import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..config import constants as c
from .base import HttpTool, to_json


def normalize_unix_to_ns(value: int) -> int:
    """Scale second, millisecond or microsecond timestamps up to nanoseconds."""
    if value <= 0:
        return value
    if value < 10**11:
        return value * 10**9
    if value < 10**14:
        return value * 10**6
    if value < 10**17:
        return value * 10**3
    return value


def extract_lines(raw: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flatten Loki stream results into ``{ts, line, meta}`` records."""
    lines: List[Dict[str, Any]] = []
    data = raw.get("data") if isinstance(raw, dict) else None
    results = data.get("result") if isinstance(data, dict) else None
    for item in results or []:
        if not isinstance(item, dict):
            continue
        stream = item.get("stream") or {}
        for pair in item.get("values") or []:
            if not isinstance(pair, (list, tuple)) or len(pair) < 2:
                continue
            lines.append({"ts": str(pair[0]), "line": str(pair[1]), "meta": stream})
    lines.sort(key=lambda entry: int(entry["ts"]) if entry["ts"].isdigit() else 0)
    return lines


class LokiQueryTool(HttpTool):
    """``query_loki_logs``: fetch log lines for a LogQL query and time range."""

    def __init__(
        self,
        base_url: str = c.DEFAULT_LOKI_URL,
        timeout: float = c.LOKI_QUERY_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__(base_url, timeout, client)
        self._clock = clock or time.time

    @property
    def name(self) -> str:
        return "query_loki_logs"

    @property
    def description(self) -> str:
        return (
            "Query logs from Loki using LogQL and a time range. Use this tool to fetch "
            "error logs, tracebacks, or specific service logs."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "minLength": 1,
                    "description": 'LogQL query, e.g. {job="api", stream="error"} |= "ERROR"',
                },
                "start": {"type": "integer", "description": "Start time (unix s/ms/us/ns). Defaults to one hour ago."},
                "end": {"type": "integer", "description": "End time (unix s/ms/us/ns). Defaults to now."},
                "limit": {"type": "integer", "description": "Max lines. Default 200, max 2000."},
            },
            "required": ["query"],
            "additionalProperties": False,
        }

    def time_range(self, start: Optional[int], end: Optional[int]) -> Dict[str, int]:
        now_ns = int(self._clock() * 10**9)
        end_ns = normalize_unix_to_ns(end) if end and end > 0 else now_ns
        if start and start > 0:
            start_ns = normalize_unix_to_ns(start)
        else:
            start_ns = end_ns - c.LOKI_DEFAULT_LOOKBACK_SECONDS * 10**9
        max_range_ns = c.LOKI_MAX_RANGE_SECONDS * 10**9
        if end_ns - start_ns > max_range_ns:
            start_ns = end_ns - max_range_ns
        return {"start": start_ns, "end": end_ns}

    async def invoke(self, input: Dict[str, Any]) -> str:
        query = input["query"].strip()
        limit = input.get("limit") or c.LOKI_DEFAULT_LIMIT
        limit = max(1, min(int(limit), c.LOKI_MAX_LIMIT))
        window = self.time_range(input.get("start"), input.get("end"))

        raw = await self.get_json(
            "/loki/api/v1/query_range",
            params={"query": query, "start": window["start"], "end": window["end"], "limit": limit},
        )
        lines = extract_lines(raw)
        return to_json({"success": True, "query": query, "count": len(lines), "lines": lines})
