"""OpenTelemetry distributed tracing integration.

Every RPC call runs inside a span named after its procedure path, carrying
the request context from ``launchhub.logging``. Spans are exported over OTLP
when ``settings.enable_tracing`` is on and an endpoint is configured;
otherwise the global no-op provider makes tracing free.

Usage:
    ```python
    from launchhub.telemetry import get_tracer, add_span_attributes

    tracer = get_tracer(__name__)

    with tracer.start_as_current_span("cron.sweep") as span:
        add_span_attributes(span, {"updated": 3})
    ```

Environment Variables:
    - OTEL_SERVICE_NAME: Service name for traces (default: "launchhub")
"""

from __future__ import annotations

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode, Tracer
from opentelemetry.trace.span import Span

from launchhub import __version__
from launchhub.config import settings
from launchhub.logging import logger, operation_var, request_id_var, user_id_var

_tracer_provider: TracerProvider | None = None
_initialized: bool = False


def initialize_telemetry() -> None:
    """Install the global tracer provider (idempotent).

    Only does work when tracing is enabled in settings.

    Raises:
        ValueError: If the OTLP exporter cannot be created for the endpoint
    """
    global _tracer_provider, _initialized

    if _initialized or not settings.enable_tracing:
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", "launchhub")
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
            "deployment.environment": settings.environment.value,
        }
    )
    _tracer_provider = TracerProvider(resource=resource)

    if settings.otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        try:
            exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        except Exception as e:
            logger.error(f"Failed to initialize OTLP exporter: {e}")
            raise ValueError(f"Invalid OTLP endpoint: {settings.otlp_endpoint}") from e
        _tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
        logger.info(f"Initialized OTLP span exporter ({settings.otlp_endpoint})")

    trace.set_tracer_provider(_tracer_provider)
    _initialized = True
    logger.info(f"Telemetry initialized for {service_name}")


def get_tracer(name: str) -> Tracer:
    """Get a tracer for the calling module.

    Returns the global (possibly no-op) tracer, so module-level tracers work
    whether or not tracing is enabled.
    """
    return trace.get_tracer(name)


def add_span_attributes(span: Span, attributes: dict[str, Any]) -> None:
    """Add attributes to a span, stringifying lists/dicts and skipping None."""
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (list, dict)):
            value = str(value)
        span.set_attribute(key, value)


def record_exception_in_span(span: Span, exception: BaseException) -> None:
    """Record an exception and mark the span as errored."""
    span.record_exception(exception)
    span.set_status(Status(StatusCode.ERROR, str(exception)))


def sync_logging_context_to_span(span: Span) -> None:
    """Copy request_id, user_id and operation from the log context to the span."""
    add_span_attributes(
        span,
        {
            "request_id": request_id_var.get(),
            "user_id": user_id_var.get(),
            "operation": operation_var.get(),
        },
    )


def shutdown_telemetry() -> None:
    """Flush pending spans and shut the provider down."""
    global _tracer_provider, _initialized

    if _tracer_provider and _initialized:
        _tracer_provider.shutdown()
        _initialized = False
        logger.info("Telemetry shut down")


__all__ = [
    "initialize_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "add_span_attributes",
    "record_exception_in_span",
    "sync_logging_context_to_span",
]
