"""FastAPI HTTP endpoints for the ops agent.

Mount the router returned by :func:`create_router` on an application.
Requires FastAPI to be installed.
"""

from typing import Any, Dict, Optional

try:
    from fastapi import APIRouter, HTTPException
    from fastapi.responses import StreamingResponse
except ImportError:
    raise ImportError(
        "FastAPI is required for HTTP endpoints. "
        "Please install with: pip install fastapi"
    )
from pydantic import BaseModel, Field

from ..config import constants as c
from ..main import OpsAgentClient
from ..orchestration.errors import ToolNotFoundError
from ..providers.base import ProviderError


class AiOpsRequest(BaseModel):
    objective: str = Field(..., min_length=1, description="What the agent should find out")
    max_iterations: Optional[int] = Field(default=None, ge=1, le=c.MAX_ITERATIONS_CEILING)
    timeout_s: Optional[float] = Field(default=None, gt=0)
    request_id: Optional[str] = None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


def create_router(client: OpsAgentClient) -> APIRouter:
    """Build the API routes around one shared client."""
    router = APIRouter()

    @router.post("/ai-ops")
    async def ai_ops(request: AiOpsRequest) -> Dict[str, Any]:
        """Run one diagnosis. Failed runs are returned with status ``failed``."""
        if not request.objective.strip():
            raise HTTPException(status_code=422, detail="objective must not be blank")
        output = await client.diagnose(
            request.objective,
            max_iterations=request.max_iterations,
            timeout_s=request.timeout_s,
            request_id=request.request_id,
        )
        return output.model_dump(mode="json")

    @router.get("/tools")
    async def list_tools():
        return {"tools": client.list_tools()}

    @router.post("/tools/{name}/enable")
    async def enable_tool(name: str):
        try:
            client.enable_tool(name)
        except ToolNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"name": name, "enabled": True}

    @router.post("/tools/{name}/disable")
    async def disable_tool(name: str):
        try:
            client.disable_tool(name)
        except ToolNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"name": name, "enabled": False}

    @router.get("/reliability/circuit-breakers")
    async def circuit_breakers():
        return {"circuit_breakers": client.circuit_breakers()}

    @router.get("/metrics/runs")
    async def run_metrics():
        summary = getattr(client.metrics_sink, "summary", None)
        return {"runs": summary() if summary else {}}

    @router.post("/chat/stream")
    async def chat_stream(request: ChatRequest):
        """Stream a plain model reply as server-sent events."""
        if client.model is None:
            raise HTTPException(status_code=503, detail="No model configured")

        async def generate_stream():
            try:
                async for chunk in client.chat_stream(request.message):
                    yield f"data: {chunk}\n\n"
            except ProviderError as e:
                yield f"event: error\ndata: {e}\n\n"
            yield "data: [DONE]\n\n"

        return StreamingResponse(
            generate_stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"}
        )

    return router
