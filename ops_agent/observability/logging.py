"""
Structured logging for agent components.

Every component logs through :class:`AgentLogger`, which renders standard
fields as a ``[component=... key=value]`` prefix so log lines from the
executor, the breakers and the orchestrator can be grepped together.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional


class AgentLogger:
    """Structured logger bound to one component name."""

    def __init__(self, component: str):
        self.component = component
        self.logger = logging.getLogger(f"ops_agent.{component}")

    def _format_message(self, message: str, **kwargs: Any) -> str:
        fields = [f"component={self.component}"]
        for key, value in kwargs.items():
            if value is not None:
                fields.append(f"{key}={value}")
        return f"[{' '.join(fields)}] {message}"

    def debug(self, message: str, **kwargs: Any) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, error: Optional[BaseException] = None, **kwargs: Any) -> None:
        if error is not None:
            kwargs["error_type"] = type(error).__name__
            kwargs["error_msg"] = str(error)
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, error: Optional[BaseException] = None, **kwargs: Any) -> None:
        if error is not None:
            kwargs["error_type"] = type(error).__name__
            kwargs["error_msg"] = str(error)
        self.logger.error(self._format_message(message, **kwargs))

    @contextmanager
    def track(self, operation: str, request_id: Optional[str] = None, **fields: Any) -> Iterator[Dict[str, Any]]:
        """
        Time an operation and log its start, completion or failure.

        Yields a metadata dict (``request_id``, ``operation``, ``start_time``).
        Exceptions are logged and re-raised.
        """
        if request_id is None:
            request_id = str(uuid.uuid4())[:8]

        start_time = time.monotonic()
        self.debug(f"Starting {operation}", request_id=request_id, **fields)
        metadata = {"request_id": request_id, "operation": operation, "start_time": start_time}

        try:
            yield metadata
        except Exception as e:
            self.error(
                f"Failed {operation}",
                request_id=request_id,
                duration_ms=int((time.monotonic() - start_time) * 1000),
                error=e,
                **fields,
            )
            raise
        else:
            self.info(
                f"Completed {operation}",
                request_id=request_id,
                duration_ms=int((time.monotonic() - start_time) * 1000),
                **fields,
            )


def configure_logging(level: str = "INFO") -> None:
    """Basic console logging for the CLI and local runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
