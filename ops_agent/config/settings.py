"""Process-level settings for the ops agent.

Values come from keyword arguments or from the environment (``OPS_AGENT_*``
plus the observability variables used by the ops-portal deployment).
``.env`` files are loaded by the entry points, not here.
"""

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import constants as c


class AgentSettings(BaseModel):
    """Typed configuration shared by the CLI, the HTTP router and tests."""

    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    # Parallel executor
    max_concurrency: int = Field(
        default=c.DEFAULT_MAX_CONCURRENCY,
        ge=1,
        le=256,
        description="Maximum tool calls executing at once within a batch"
    )
    batch_timeout_s: float = Field(
        default=c.DEFAULT_BATCH_TIMEOUT_SECONDS,
        gt=0,
        description="Deadline for a whole tool batch in seconds"
    )
    batch_pause_s: float = Field(
        default=c.DEFAULT_BATCH_PAUSE_SECONDS,
        ge=0,
        description="Pause between chunks when batching is enabled"
    )
    batch_size: Optional[int] = Field(
        default=None,
        ge=1,
        description="Chunk size for burst-limited execution (None disables chunking)"
    )
    continue_on_error: bool = Field(
        default=c.DEFAULT_CONTINUE_ON_ERROR,
        description="Keep running sibling calls when one call fails"
    )

    # Orchestration loop
    max_iterations: int = Field(
        default=c.DEFAULT_MAX_ITERATIONS,
        ge=1,
        le=c.MAX_ITERATIONS_CEILING,
        description="Ceiling on planning passes per run"
    )
    run_timeout_s: Optional[float] = Field(
        default=None,
        gt=0,
        description="Deadline for a whole orchestration run"
    )
    planner: str = Field(
        default="llm",
        description="Planning mode: 'llm' or 'rules'"
    )

    # Retry
    retry_max_attempts: int = Field(default=c.DEFAULT_RETRY_MAX_ATTEMPTS, ge=1, le=20)
    retry_base_delay_s: float = Field(default=c.DEFAULT_RETRY_BASE_DELAY_SECONDS, ge=0)
    retry_max_delay_s: float = Field(default=c.DEFAULT_RETRY_MAX_DELAY_SECONDS, ge=0)
    retry_multiplier: float = Field(default=c.DEFAULT_RETRY_MULTIPLIER, ge=1.0)

    # Circuit breaker
    breaker_max_failures: int = Field(default=c.DEFAULT_BREAKER_MAX_FAILURES, ge=1)
    breaker_reset_timeout_s: float = Field(default=c.DEFAULT_BREAKER_RESET_TIMEOUT_SECONDS, gt=0)
    breaker_half_open_attempts: int = Field(default=c.DEFAULT_BREAKER_HALF_OPEN_ATTEMPTS, ge=1)

    # Observability backends
    loki_url: str = Field(default=c.DEFAULT_LOKI_URL)
    prometheus_url: str = Field(default=c.DEFAULT_PROMETHEUS_URL)
    docs_dir: str = Field(default=c.DEFAULT_DOCS_DIR)

    # Model endpoint (any OpenAI-compatible API)
    model_name: str = Field(default=c.DEFAULT_MODEL_NAME)
    model_api_key: Optional[str] = Field(default=None, repr=False)
    model_base_url: Optional[str] = Field(default=None)
    model_temperature: float = Field(default=c.DEFAULT_MODEL_TEMPERATURE, ge=0.0, le=2.0)
    model_timeout_s: float = Field(default=c.DEFAULT_MODEL_TIMEOUT_SECONDS, gt=0)

    @field_validator("planner")
    @classmethod
    def validate_planner(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("llm", "rules"):
            raise ValueError("planner must be 'llm' or 'rules'")
        return v

    @field_validator("loki_url", "prometheus_url", "model_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip().rstrip("/")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "AgentSettings":
        """Build settings from environment variables.

        ``OPS_AGENT_<FIELD>`` maps onto each field (e.g. ``OPS_AGENT_MAX_CONCURRENCY``).
        ``OBS_LOKI_URL``, ``OBS_PROM_URL`` and ``OPS_PORTAL_DOCS_DIR`` are honored
        when the prefixed form is absent. Explicit ``overrides`` win over both.
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        legacy = {
            "loki_url": c.ENV_LOKI_URL,
            "prometheus_url": c.ENV_PROMETHEUS_URL,
            "docs_dir": c.ENV_DOCS_DIR,
        }
        for name in cls.model_fields:
            raw = env.get(c.ENV_PREFIX + name.upper())
            if raw is None and name in legacy:
                raw = env.get(legacy[name])
            if raw is None or raw == "":
                continue
            values[name] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def retry_policy(self):
        from ..reliability.retry import RetryPolicy

        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_s,
            max_delay=self.retry_max_delay_s,
            multiplier=self.retry_multiplier,
        )

    def breaker_config(self):
        from ..reliability.circuit_breaker import CircuitBreakerConfig

        return CircuitBreakerConfig(
            max_failures=self.breaker_max_failures,
            reset_timeout=self.breaker_reset_timeout_s,
            half_open_attempts=self.breaker_half_open_attempts,
        )

    def executor_config(self):
        from ..orchestration.parallel_executor import ParallelExecutorConfig

        return ParallelExecutorConfig(
            max_concurrency=self.max_concurrency,
            timeout=self.batch_timeout_s,
            continue_on_error=self.continue_on_error,
            batch_size=self.batch_size,
            batch_pause=self.batch_pause_s,
        )

    def orchestrator_config(self):
        from ..orchestration.orchestrator import OrchestratorConfig

        return OrchestratorConfig(
            max_iterations=self.max_iterations,
            max_concurrency=self.max_concurrency,
            batch_timeout_s=self.batch_timeout_s,
            continue_on_error=self.continue_on_error,
            batch_size=self.batch_size,
            timeout_s=self.run_timeout_s,
        )
