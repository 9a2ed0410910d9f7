"""
Error mapping for model endpoints.

Converts SDK and transport exceptions into :class:`ProviderError` with the
``is_retryable`` flag the retry layer relies on.
"""

from typing import Optional

import httpx
import openai

from .base import ProviderError


RATE_LIMIT_PHRASES = ("rate limit", "too many requests", "quota exceeded", "too_many_requests")


class ErrorMapper:
    """Maps endpoint-specific errors to standardized ProviderError."""

    # HTTP status codes that indicate a transient failure
    RETRYABLE_STATUS_CODES = {408, 409, 429, 500, 502, 503, 504}

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        status_code = getattr(error, "status_code", None)
        if status_code is not None and status_code in ErrorMapper.RETRYABLE_STATUS_CODES:
            return True

        if isinstance(error, (openai.APIConnectionError, openai.APITimeoutError)):
            return True
        if isinstance(error, (httpx.TimeoutException, httpx.ConnectError)):
            return True

        error_msg = str(error).lower()
        return any(phrase in error_msg for phrase in RATE_LIMIT_PHRASES)

    @staticmethod
    def get_retry_after(error: BaseException) -> Optional[float]:
        response = getattr(error, "response", None)
        headers = getattr(response, "headers", None)
        if headers is not None:
            retry_after = headers.get("retry-after")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass
        return None

    @staticmethod
    def map_openai_error(error: BaseException, provider: str = "openai") -> ProviderError:
        """Map an ``openai`` SDK (or httpx) exception to ProviderError."""
        if isinstance(error, ProviderError):
            return error

        status_code = getattr(error, "status_code", None)
        detail = getattr(error, "message", None) or str(error) or type(error).__name__
        return ProviderError(
            f"{provider} API error: {detail}",
            provider=provider,
            status_code=status_code,
            retry_after=ErrorMapper.get_retry_after(error),
            is_retryable=ErrorMapper.is_retryable(error),
            original_error=error,
        )

    @staticmethod
    def categorize(error: ProviderError) -> str:
        """Coarse category for logs and metrics."""
        if error.status_code:
            if error.status_code in (401, 403):
                return "authentication"
            if error.status_code == 429:
                return "rate_limit"
            if error.status_code >= 500:
                return "server_error"
            if error.status_code >= 400:
                return "client_error"

        msg = str(error).lower()
        if "timeout" in msg or "timed out" in msg:
            return "timeout"
        if "connection" in msg or "network" in msg:
            return "network"
        return "unknown"
