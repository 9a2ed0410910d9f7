"""
Runtime defaults for the ops agent.

Every value here can be overridden through ``AgentSettings`` (see
``ops_agent/config/settings.py``) or the matching environment variable.
"""

# Parallel executor
DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_BATCH_TIMEOUT_SECONDS = 300.0  # 5 minutes
DEFAULT_BATCH_PAUSE_SECONDS = 0.1
DEFAULT_CONTINUE_ON_ERROR = True

# Orchestration loop
DEFAULT_MAX_ITERATIONS = 1000
MAX_ITERATIONS_CEILING = 1_000_000

# Retry policy
DEFAULT_RETRY_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY_SECONDS = 0.1
DEFAULT_RETRY_MAX_DELAY_SECONDS = 5.0
DEFAULT_RETRY_MULTIPLIER = 2.0

# Circuit breaker
DEFAULT_BREAKER_MAX_FAILURES = 5
DEFAULT_BREAKER_RESET_TIMEOUT_SECONDS = 60.0
DEFAULT_BREAKER_HALF_OPEN_ATTEMPTS = 3

# Observability backends
DEFAULT_LOKI_URL = "http://127.0.0.1:3100"
DEFAULT_PROMETHEUS_URL = "http://127.0.0.1:9090"
DEFAULT_DOCS_DIR = "docs"

LOKI_QUERY_TIMEOUT_SECONDS = 12.0
PROMETHEUS_QUERY_TIMEOUT_SECONDS = 10.0

LOKI_DEFAULT_LIMIT = 200
LOKI_MAX_LIMIT = 2000
LOKI_DEFAULT_LOOKBACK_SECONDS = 3600
LOKI_MAX_RANGE_SECONDS = 24 * 3600

DOCS_DEFAULT_LIMIT = 8
DOCS_SNIPPET_CHARS = 240

# Model endpoint
DEFAULT_MODEL_NAME = "gpt-4o-mini"
DEFAULT_MODEL_TEMPERATURE = 0.2
DEFAULT_MODEL_TIMEOUT_SECONDS = 60.0

# Environment variable names kept from the ops-portal deployment
ENV_LOKI_URL = "OBS_LOKI_URL"
ENV_PROMETHEUS_URL = "OBS_PROM_URL"
ENV_DOCS_DIR = "OPS_PORTAL_DOCS_DIR"
ENV_PREFIX = "OPS_AGENT_"
