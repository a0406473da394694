"""Prometheus metrics collection and export.

This module provides Prometheus instrumentation for PublishDB, covering
coordinator operations, transactions, lifecycle hooks and the connection pool.

Metric Types:
    Counters (always increase):
        - database_operations_total: Coordinator operations by name, entity, status
        - transactions_total: Transaction scopes by label and outcome
        - hook_failures_total: afterCreate hook failures by entity
        - errors_total: Errors by type and component

    Gauges (can go up or down):
        - active_database_connections: Connections currently checked out

    Histograms (track distributions):
        - database_query_duration_seconds: Coordinator operation latency

Usage:
    ```python
    from publishdb.metrics import database_operations_total

    database_operations_total.labels(
        operation="create_content_with_tags", entity="Content", status="success"
    ).inc()
    ```

    Exposing a metrics endpoint from the boundary layer:

    ```python
    from publishdb.metrics import generate_metrics_output

    body = generate_metrics_output()  # text exposition format
    ```
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry for explicit metric control
# This avoids default process/platform metrics unless explicitly added
registry = CollectorRegistry()

# Latency bucket definitions (in seconds), 1ms to 5s
DEFAULT_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
)


# ========== COUNTER METRICS (always increase) ==========

database_operations_total = Counter(
    "database_operations_total",
    "Total number of coordinator operations",
    labelnames=["operation", "entity", "status"],
    registry=registry,
)
"""Counter for coordinator operations.

Labels:
    operation: Operation name (e.g., "create_content_with_tags", "list_content")
    entity: Entity kind (e.g., "Content", "Account")
    status: "success" or the error class name (e.g., "NotFoundError")
"""

transactions_total = Counter(
    "transactions_total",
    "Total number of transaction scopes by outcome",
    labelnames=["label", "outcome"],
    registry=registry,
)
"""Counter for transaction scopes.

Labels:
    label: Scope label (usually the operation name)
    outcome: "committed" or "rolled_back"
"""

hook_failures_total = Counter(
    "hook_failures_total",
    "Total number of afterCreate hook failures",
    labelnames=["entity", "hook"],
    registry=registry,
)
"""Counter for lifecycle hook failures (never propagated to callers)."""

errors_total = Counter(
    "errors_total",
    "Total number of errors encountered",
    labelnames=["error_type", "component"],
    registry=registry,
)
"""Counter for errors by type and component.

Labels:
    error_type: Exception class name (e.g., "ValidationError", "IntegrityError")
    component: Component where it surfaced (e.g., "writes", "reads", "hooks")
"""


# ========== GAUGE METRICS (can go up or down) ==========

active_database_connections = Gauge(
    "active_database_connections",
    "Current number of checked-out database connections",
    registry=registry,
)
"""Gauge driven by the engine's pool checkout/checkin events."""


# ========== HISTOGRAM METRICS (track distributions) ==========

database_query_duration_seconds = Histogram(
    "database_query_duration_seconds",
    "Duration of coordinator operations in seconds",
    labelnames=["operation", "entity"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=registry,
)
"""Histogram for coordinator operation latency.

Labels:
    operation: Operation name
    entity: Entity kind
"""


# ========== HELPER FUNCTIONS ==========


def generate_metrics_output() -> bytes:
    """Generate Prometheus metrics output in text format.

    Returns:
        Metrics output as bytes (suitable for an HTTP response body)

    Note:
        This uses the custom registry, so only explicitly registered metrics are included.
    """
    return generate_latest(registry)


def sample_value(name: str, labels: dict[str, str] | None = None) -> float:
    """Read the current value of one sample from the registry.

    Returns 0.0 when the labelled series has not been touched yet.

    Example:
        >>> sample_value("hook_failures_total", {"entity": "Content", "hook": "log"})
        0.0
    """
    value = registry.get_sample_value(name, labels or {})
    return value if value is not None else 0.0


# Export public API
__all__ = [
    "registry",
    "database_operations_total",
    "transactions_total",
    "hook_failures_total",
    "errors_total",
    "active_database_connections",
    "database_query_duration_seconds",
    "generate_metrics_output",
    "sample_value",
    "DEFAULT_LATENCY_BUCKETS",
]
