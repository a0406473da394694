"""OpenTelemetry distributed tracing integration.

Every coordinator operation runs inside a span (see
:func:`publishdb.decorators.instrumented`). Until :func:`initialize_telemetry`
is called the global no-op tracer provider is in effect, so spans cost
nothing in tests and in processes that leave tracing disabled.

Environment Variables:
    - OTEL_SERVICE_NAME: Service name for traces (default: "publishdb")
    - Controlled by settings.enable_tracing / settings.otlp_endpoint

Usage:
    ```python
    from publishdb.telemetry import initialize_telemetry, shutdown_telemetry

    initialize_telemetry()
    try:
        ...  # run the application
    finally:
        shutdown_telemetry()
    ```
"""

from __future__ import annotations

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode, Tracer
from opentelemetry.trace.span import Span

from publishdb import __version__
from publishdb.config import settings
from publishdb.logging import logger

_tracer_provider: TracerProvider | None = None
_initialized: bool = False


def initialize_telemetry() -> None:
    """Initialize the global OpenTelemetry tracer provider.

    Adds an OTLP exporter when tracing is enabled and an endpoint is set,
    and a console exporter in development. Idempotent.

    Raises:
        ValueError: If the OTLP exporter cannot be built for the endpoint
    """
    global _tracer_provider, _initialized

    if _initialized:
        logger.debug("Telemetry already initialized, skipping")
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", "publishdb")

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
            "deployment.environment": settings.environment.value,
        }
    )

    _tracer_provider = TracerProvider(resource=resource)

    if settings.enable_tracing and settings.otlp_endpoint:
        try:
            otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
            _tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
            logger.info(f"Initialized OTLP span exporter at {settings.otlp_endpoint}")
        except Exception as e:
            logger.error(f"Failed to initialize OTLP exporter: {e}")
            raise ValueError(f"Invalid OTLP endpoint: {settings.otlp_endpoint}") from e

    if settings.is_development and settings.enable_tracing:
        _tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.debug("Initialized console span exporter for development")

    trace.set_tracer_provider(_tracer_provider)
    _initialized = True

    logger.info(
        f"Telemetry initialized (service={service_name}, "
        f"environment={settings.environment.value}, tracing={settings.enable_tracing})"
    )


def get_tracer(name: str) -> Tracer:
    """Get a tracer for the given module name."""
    return trace.get_tracer(name, __version__)


def add_span_attributes(span: Span, attributes: dict[str, Any]) -> None:
    """Add attributes to a span, stringifying values OpenTelemetry cannot hold."""
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, dict, set)):
            value = str(value)
        span.set_attribute(key, value)


def record_exception_in_span(
    span: Span,
    exception: BaseException,
    set_status: bool = True,
) -> None:
    """Record an exception in a span and optionally set error status."""
    span.record_exception(exception)
    if set_status:
        span.set_status(Status(StatusCode.ERROR, str(exception)))


def shutdown_telemetry() -> None:
    """Shutdown the tracer provider and flush all pending spans."""
    global _tracer_provider, _initialized

    if _tracer_provider and _initialized:
        _tracer_provider.shutdown()
        _initialized = False
        logger.info("Telemetry shut down successfully")


__all__ = [
    "initialize_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "add_span_attributes",
    "record_exception_in_span",
]
