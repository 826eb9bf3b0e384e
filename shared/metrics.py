"""
Shared metrics configuration for the Offline Edge Cache.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Each collector owns a registry so repeated service construction never
        # collides on metric names.
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_edge_metrics()

    def _setup_edge_metrics(self):
        """Set up edge-cache-specific metrics."""
        self._metrics["edge_cache_lookups_total"] = Counter(
            "edge_cache_lookups_total",
            "Cache lookups performed by caching strategies",
            ["strategy", "result"],
            registry=self.registry
        )

        self._metrics["edge_network_fetches_total"] = Counter(
            "edge_network_fetches_total",
            "Network fetches issued against the origin",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["edge_storage_failures_total"] = Counter(
            "edge_storage_failures_total",
            "Cache store operations that failed and were ignored",
            ["operation"],
            registry=self.registry
        )

        self._metrics["edge_fallbacks_total"] = Counter(
            "edge_fallbacks_total",
            "Offline fallbacks served instead of a network response",
            ["kind"],
            registry=self.registry
        )

        self._metrics["edge_namespaces_deleted_total"] = Counter(
            "edge_namespaces_deleted_total",
            "Orphaned cache namespaces reclaimed at activation",
            registry=self.registry
        )

        self._metrics["edge_fetch_duration_seconds"] = Histogram(
            "edge_fetch_duration_seconds",
            "Origin fetch duration in seconds",
            registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        if labels:
            metric = metric.labels(**labels)
        metric.inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        if labels:
            metric = metric.labels(**labels)
        metric.observe(value)

    def sample_value(self, metric_name: str, **labels) -> float:
        """Read the current value of a counter sample (``<name>_total``)."""
        sample_name = metric_name if metric_name.endswith("_total") else f"{metric_name}_total"
        value = self.registry.get_sample_value(sample_name, labels or None)
        return value or 0.0


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
