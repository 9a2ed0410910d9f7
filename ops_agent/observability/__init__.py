"""Observability layer: structured logging and run metrics."""

from .logging import AgentLogger, configure_logging
from .metrics import InMemoryMetricsSink, MetricsSink, RunMetrics

__all__ = [
    "AgentLogger",
    "configure_logging",
    "RunMetrics",
    "MetricsSink",
    "InMemoryMetricsSink",
]
