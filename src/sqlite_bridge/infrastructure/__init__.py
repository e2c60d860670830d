"""Infrastructure layer - cross-cutting concerns."""

from sqlite_bridge.infrastructure.config import DriverConfig, get_config
from sqlite_bridge.infrastructure.logging import setup_logging, get_logger
from sqlite_bridge.infrastructure.metrics import setup_metrics, get_metrics, MetricsRegistry
from sqlite_bridge.infrastructure.tracing import setup_tracing, get_tracer, trace_span

__all__ = [
    "DriverConfig",
    "get_config",
    "setup_logging",
    "get_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "trace_span",
]
