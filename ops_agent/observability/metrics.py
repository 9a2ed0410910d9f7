from __future__ import annotations

import asyncio
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Protocol


@dataclass
class RunMetrics:
    """One record per orchestration run."""
    request_id: Optional[str]
    status: str
    latency_ms: int
    iterations: int
    tool_calls: int
    tool_failures: int
    error_class: Optional[str] = None
    tools_used: List[str] = field(default_factory=list)


class MetricsSink(Protocol):
    async def record(self, metrics: RunMetrics) -> None: ...
    async def flush(self) -> None: ...


class InMemoryMetricsSink:
    """
    Bounded in-memory metrics store.

    Useful for tests, local runs and the ``/reliability`` debug view.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._metrics: Deque[RunMetrics] = deque(maxlen=max_size)
        self._lock = asyncio.Lock()

    async def record(self, metrics: RunMetrics) -> None:
        async with self._lock:
            self._metrics.append(metrics)

    async def flush(self) -> None:
        return None

    def get_metrics(self, status: Optional[str] = None) -> List[RunMetrics]:
        items = list(self._metrics)
        if status is not None:
            items = [m for m in items if m.status == status]
        return items

    def summary(self) -> Dict[str, object]:
        items = list(self._metrics)
        if not items:
            return {"runs": 0}

        latencies = sorted(m.latency_ms for m in items)
        errors = Counter(m.error_class for m in items if m.error_class)
        tools = Counter(t for m in items for t in m.tools_used)
        return {
            "runs": len(items),
            "failed": sum(1 for m in items if m.status != "done"),
            "avg_latency_ms": sum(latencies) / len(latencies),
            "p50_latency_ms": latencies[len(latencies) // 2],
            "tool_calls": sum(m.tool_calls for m in items),
            "tool_failures": sum(m.tool_failures for m in items),
            "errors": dict(errors),
            "tools": dict(tools),
        }

    def clear(self) -> None:
        self._metrics.clear()
