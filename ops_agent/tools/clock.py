from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
import time

from ..orchestration.tool_registry import Tool
from .base import to_json


class CurrentTimeTool(Tool):
    """``get_current_time``: wall-clock time for building query ranges."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time

    @property
    def name(self) -> str:
        return "get_current_time"

    @property
    def description(self) -> str:
        return "Current UTC time as ISO-8601 and unix seconds, milliseconds and nanoseconds."

    @property
    def parameters(self) -> Dict[str, Any]:
        return {"type": "object", "properties": {}, "additionalProperties": False}

    async def invoke(self, input: Dict[str, Any]) -> str:
        now = self._clock()
        return to_json({
            "iso": datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
            "unix": int(now),
            "unix_ms": int(now * 1000),
            "unix_ns": int(now * 10**9),
            "timezone": "UTC",
        })
