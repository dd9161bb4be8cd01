"""
OpenTelemetry tracing for the Conditional Access provider.

Only the OpenTelemetry API is used here: spans are no-ops until the embedding
host installs a tracer provider. This module provides:
- Spans around resource lifecycle operations
- Spans around individual Graph requests
- W3C trace context propagation into outgoing request headers
"""

import contextlib
from collections.abc import Iterator

from opentelemetry import propagate, trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer


def get_tracer(name: str = __name__) -> Tracer:
    """Get a tracer instance (no-op if no provider is configured)."""
    return trace.get_tracer(name)


@contextlib.contextmanager
def traced_operation(
    name: str,
    attributes: dict[str, str] | None = None,
    kind: SpanKind = SpanKind.INTERNAL,
    tracer_name: str = __name__,
) -> Iterator[Span]:
    """
    Run the enclosed block inside a span.

    Exceptions are recorded on the span and re-raised; the span status is set
    to OK when the block completes.

    Example:
        with traced_operation("named_location.update", {"resource.id": location_id}):
            ...
    """
    tracer = get_tracer(tracer_name)
    with tracer.start_as_current_span(
        name, kind=kind, attributes=attributes or {}
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
        span.set_status(Status(StatusCode.OK))


def inject_trace_context(headers: dict[str, str]) -> dict[str, str]:
    """Inject the current trace context into ``headers`` (modified in place)."""
    propagate.inject(headers)
    return headers
