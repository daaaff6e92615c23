"""Prometheus metrics collection and export.

Metric Types:
    Counters (always increase):
        - http_requests_total: HTTP requests by status, path, method
        - rpc_calls_total: RPC procedure calls by path, type, status
        - cron_sweeps_total: Cron sweep runs by status
        - products_launched_total: Products flipped to launched by the sweep
        - votes_toggled_total: Vote toggles by action (added/removed)
        - errors_total: Errors by type and component

    Histograms (track distributions):
        - http_request_duration_seconds: HTTP request latency
        - rpc_call_duration_seconds: RPC procedure latency

Usage:
    ```python
    from launchhub.metrics import votes_toggled_total

    votes_toggled_total.labels(action="added").inc()
    ```

    The FastAPI app serves ``generate_metrics_output()`` at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry: only metrics registered here are exported
registry = CollectorRegistry()

# Latency bucket definitions (in seconds)
HTTP_LATENCY_BUCKETS = (
    0.005,  # 5ms
    0.01,   # 10ms
    0.025,  # 25ms
    0.05,   # 50ms
    0.1,    # 100ms
    0.25,   # 250ms
    0.5,    # 500ms
    1.0,    # 1s
    2.5,    # 2.5s
)


# ========== COUNTER METRICS (always increase) ==========

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    labelnames=["status", "path", "method"],
    registry=registry,
)
"""Labels: status ("200", "404"), path (route template), method ("GET", "POST")."""

rpc_calls_total = Counter(
    "rpc_calls_total",
    "Total number of RPC procedure calls",
    labelnames=["path", "type", "status"],
    registry=registry,
)
"""Labels: path ("product.toggleVote"), type ("query"/"mutation"), status (error code or "OK")."""

cron_sweeps_total = Counter(
    "cron_sweeps_total",
    "Total number of cron sweep runs",
    labelnames=["status"],
    registry=registry,
)

products_launched_total = Counter(
    "products_launched_total",
    "Total number of products marked launched by the cron sweep",
    registry=registry,
)

votes_toggled_total = Counter(
    "votes_toggled_total",
    "Total number of vote toggles",
    labelnames=["action"],
    registry=registry,
)

errors_total = Counter(
    "errors_total",
    "Total number of errors encountered",
    labelnames=["error_type", "component"],
    registry=registry,
)
"""Labels: error_type (exception class name), component ("rpc", "cron", "http")."""


# ========== HISTOGRAM METRICS (track distributions) ==========

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "Duration of HTTP requests in seconds",
    labelnames=["status", "path", "method"],
    buckets=HTTP_LATENCY_BUCKETS,
    registry=registry,
)

rpc_call_duration_seconds = Histogram(
    "rpc_call_duration_seconds",
    "Duration of RPC procedure calls in seconds",
    labelnames=["path", "type"],
    buckets=HTTP_LATENCY_BUCKETS,
    registry=registry,
)


# ========== HELPER FUNCTIONS ==========


def generate_metrics_output() -> bytes:
    """Render all registered metrics in Prometheus exposition format."""
    return generate_latest(registry)


def sample_value(name: str, labels: dict[str, str] | None = None) -> float:
    """Read the current value of a sample (0.0 if it was never recorded).

    Example:
        >>> sample_value("votes_toggled_total", {"action": "added"})
        3.0
    """
    value = registry.get_sample_value(name, labels or {})
    return value if value is not None else 0.0


__all__ = [
    "CONTENT_TYPE_LATEST",
    "registry",
    "http_requests_total",
    "rpc_calls_total",
    "cron_sweeps_total",
    "products_launched_total",
    "votes_toggled_total",
    "errors_total",
    "http_request_duration_seconds",
    "rpc_call_duration_seconds",
    "generate_metrics_output",
    "sample_value",
]
