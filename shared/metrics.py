"""
Shared metrics configuration for the rate limit gate.
"""

from typing import Dict, Any, Optional, Callable, Awaitable
import functools

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, generate_latest


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
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

        if self.service_name == "ratelimit":
            self._setup_ratelimit_metrics()

    def _setup_ratelimit_metrics(self):
        """Set up gate-specific metrics."""
        self._metrics["permit_decisions_total"] = Counter(
            "permit_decisions_total",
            "Total permit decisions",
            ["verdict"],
            registry=self.registry
        )

        self._metrics["permit_duration_seconds"] = Histogram(
            "permit_duration_seconds",
            "Permit evaluation duration in seconds",
            registry=self.registry
        )

        self._metrics["store_requests_total"] = Counter(
            "store_requests_total",
            "Total Pod store requests",
            ["operation", "outcome"],
            registry=self.registry
        )

    def render(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)

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

    def record_permit(self, verdict: str, duration: float):
        """Record a permit decision and how long it took."""
        if "permit_decisions_total" in self._metrics:
            self._metrics["permit_decisions_total"].labels(verdict=verdict).inc()
            self._metrics["permit_duration_seconds"].observe(duration)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)


def count_calls(metric_name: str, collector_attr: str = "metrics", **labels):
    """Decorator to count coroutine method calls, labelled with their outcome.

    The collector is looked up on ``self`` through ``collector_attr`` so the
    decorator can be applied at class definition time.
    """
    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            collector: Optional[MetricsCollector] = getattr(self, collector_attr, None)
            outcome = "error"
            try:
                result = await func(self, *args, **kwargs)
                outcome = "success"
                return result
            finally:
                if collector is not None:
                    collector.increment_counter(metric_name, outcome=outcome, **labels)

        return wrapper
    return decorator
