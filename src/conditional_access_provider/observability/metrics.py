"""
Prometheus metrics for the Conditional Access provider.

Tracks Graph API traffic, eventual-consistency retries, polling and lifecycle
operation outcomes. Metrics live in a dedicated registry so that embedding
hosts can expose or ignore them without touching the global default registry.
"""

import logging
import time
from contextlib import asynccontextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

logger = logging.getLogger(__name__)

METRICS_REGISTRY = CollectorRegistry()

GRAPH_REQUESTS_TOTAL = Counter(
    "conditional_access_provider_graph_requests_total",
    "Total number of Microsoft Graph requests",
    ["method", "entity", "status"],
    registry=METRICS_REGISTRY,
)

GRAPH_RETRIES_TOTAL = Counter(
    "conditional_access_provider_graph_retries_total",
    "Total number of retried Microsoft Graph requests",
    ["method", "entity", "reason"],
    registry=METRICS_REGISTRY,
)

POLL_PROBES_TOTAL = Counter(
    "conditional_access_provider_poll_probes_total",
    "Total number of state refresh probes by observed state",
    ["state"],
    registry=METRICS_REGISTRY,
)

POLL_WAITS_TOTAL = Counter(
    "conditional_access_provider_poll_waits_total",
    "Total number of state waits by outcome",
    ["result"],
    registry=METRICS_REGISTRY,
)

OPERATIONS_TOTAL = Counter(
    "conditional_access_provider_operations_total",
    "Total number of resource lifecycle operations",
    ["resource_type", "operation", "result"],
    registry=METRICS_REGISTRY,
)

OPERATION_DURATION = Histogram(
    "conditional_access_provider_operation_duration_seconds",
    "Time spent on resource lifecycle operations",
    ["resource_type", "operation"],
    buckets=[0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
    registry=METRICS_REGISTRY,
)


class MetricsCollector:
    """Records lifecycle and Graph metrics."""

    @asynccontextmanager
    async def track_operation(self, resource_type: str, operation: str):
        """
        Context manager to track a lifecycle operation.

        Args:
            resource_type: Type of resource being managed
            operation: create, read, update or delete
        """
        start_time = time.time()
        result = "error"

        try:
            yield
            result = "success"
        finally:
            OPERATIONS_TOTAL.labels(
                resource_type=resource_type, operation=operation, result=result
            ).inc()
            OPERATION_DURATION.labels(
                resource_type=resource_type, operation=operation
            ).observe(time.time() - start_time)

    def record_request(self, method: str, entity: str, status: int | str) -> None:
        GRAPH_REQUESTS_TOTAL.labels(
            method=method, entity=entity, status=str(status)
        ).inc()

    def record_retry(self, method: str, entity: str, reason: str) -> None:
        GRAPH_RETRIES_TOTAL.labels(method=method, entity=entity, reason=reason).inc()

    def record_probe(self, state: str) -> None:
        POLL_PROBES_TOTAL.labels(state=state).inc()

    def record_wait(self, result: str) -> None:
        POLL_WAITS_TOTAL.labels(result=result).inc()

    def export(self) -> bytes:
        """Render all provider metrics in the Prometheus text format."""
        return generate_latest(METRICS_REGISTRY)


metrics_collector = MetricsCollector()
