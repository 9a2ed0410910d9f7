"""Tool call record passed between planners and the parallel executor."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolCall(BaseModel):
    """A single invocation of a named tool.

    Instances are frozen. The executor never mutates a call in place; it
    returns a finished copy from :meth:`completed` or :meth:`failed`. A call
    with ``done=True`` cannot be finished a second time.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1, description="Registered tool name")
    input: Dict[str, Any] = Field(default_factory=dict, description="Structured tool input")
    result: Optional[str] = Field(default=None, description="Text output on success")
    error: Optional[BaseException] = Field(default=None, description="Failure, if any")
    done: bool = Field(default=False)
    duration_ms: Optional[int] = Field(default=None, ge=0)

    @property
    def succeeded(self) -> bool:
        return self.done and self.error is None

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__

    def completed(self, result: str, duration_ms: Optional[int] = None) -> "ToolCall":
        self._ensure_pending()
        return self.model_copy(
            update={"result": result, "error": None, "done": True, "duration_ms": duration_ms}
        )

    def failed(self, error: BaseException, duration_ms: Optional[int] = None) -> "ToolCall":
        self._ensure_pending()
        return self.model_copy(
            update={"result": None, "error": error, "done": True, "duration_ms": duration_ms}
        )

    def _ensure_pending(self) -> None:
        if self.done:
            raise ValueError(f"Tool call '{self.name}' is already done")

    def summary(self) -> Dict[str, Any]:
        """JSON-safe view used in traces, prompts and API responses."""
        data: Dict[str, Any] = {
            "name": self.name,
            "input": self.input,
            "done": self.done,
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error_message
            data["error_type"] = type(self.error).__name__
        if self.duration_ms is not None:
            data["duration_ms"] = self.duration_ms
        return data
