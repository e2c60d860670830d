"""Prometheus metrics for the driver."""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Info,
    start_http_server,
)


class MetricsRegistry:
    """Registry of all driver metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Statement metrics
        self.statements_prepared_total = Counter(
            "sqlite_statements_prepared_total",
            "Total number of statements compiled by the engine",
            registry=self._registry,
        )

        self.statement_steps_total = Counter(
            "sqlite_statement_steps_total",
            "Total number of statement steps",
            ["outcome"],  # row, done, error
            registry=self._registry,
        )

        self.errors_total = Counter(
            "sqlite_errors_total",
            "Total number of driver errors raised",
            ["kind"],
            registry=self._registry,
        )

        # Callback bridge metrics
        self.callback_invocations_total = Counter(
            "sqlite_callback_invocations_total",
            "Total number of host callbacks invoked by the engine",
            ["kind"],  # function, aggregate_step, aggregate_final, collation, tokenizer_create, tokenizer
            registry=self._registry,
        )

        self.callback_failures_total = Counter(
            "sqlite_callback_failures_total",
            "Total number of host callbacks that raised",
            ["kind"],
            registry=self._registry,
        )

        self.callback_contexts_live = Gauge(
            "sqlite_callback_contexts_live",
            "Number of callback contexts currently owned by the engine",
            registry=self._registry,
        )

        # Transaction metrics
        self.transactions_total = Counter(
            "sqlite_transactions_total",
            "Total number of helper-managed transactions",
            ["status"],  # commit, rollback
            registry=self._registry,
        )

        # Backup metrics
        self.backup_steps_total = Counter(
            "sqlite_backup_steps_total",
            "Total number of backup steps",
            registry=self._registry,
        )

        self.info = Info(
            "sqlite_bridge",
            "Driver information",
            registry=self._registry,
        )


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(port: int | None = None, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up the Prometheus metrics server.

    Args:
        port: Port for the metrics HTTP server (config default when omitted)
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    from sqlite_bridge import __version__
    from sqlite_bridge.infrastructure.config import get_config

    _metrics = MetricsRegistry(registry)
    _metrics.info.info({"version": __version__})

    start_http_server(port or get_config().observability.metrics_port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
