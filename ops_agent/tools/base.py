"""Shared plumbing for HTTP-backed tools."""

import json
from typing import Any, Dict, Optional

import httpx

from ..orchestration.errors import ToolExecutionError
from ..orchestration.tool_registry import Tool
from ..providers.errors import ErrorMapper


def to_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)


class HttpTool(Tool):
    """Tool that issues GET requests against one base URL.

    Pass a shared ``httpx.AsyncClient`` to reuse connections; otherwise a
    short-lived client is opened per request. Transport errors and 5xx/429
    responses are raised as retryable ``ToolExecutionError``; other 4xx
    responses and malformed bodies are not retryable.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ToolExecutionError(self.name, e, is_retryable=True) from e

        if response.status_code // 100 != 2:
            body = response.text[:500]
            error = httpx.HTTPStatusError(
                f"HTTP {response.status_code} from {url}: {body}",
                request=response.request,
                response=response,
            )
            retryable = response.status_code in ErrorMapper.RETRYABLE_STATUS_CODES
            raise ToolExecutionError(
                self.name, error, is_retryable=retryable, metadata={"status_code": response.status_code}
            )

        try:
            return response.json()
        except ValueError as e:
            raise ToolExecutionError(self.name, e, is_retryable=False) from e
