"""OpenTelemetry tracing for tenant reconciles.

Spans are only recorded once ``initialize_tracing`` ran; before that every
helper is a no-op so unit tests and local runs need no collector.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Tracer

from . import __version__, config
from .constants import CONTROLLER_NAME

logger = logging.getLogger(__name__)

_tracer: Tracer | None = None


def initialize_tracing(service_name: str = CONTROLLER_NAME) -> None:
    """Install an OTLP exporting tracer provider.

    Disabled with OTEL_TRACES_ENABLED=false. The exporter endpoint comes from
    OTEL_EXPORTER_OTLP_ENDPOINT and the service name from OTEL_SERVICE_NAME.
    """
    global _tracer

    if not config.config_flag("OTEL_TRACES_ENABLED", default=True):
        logger.info("Tracing disabled")
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", service_name)
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    try:
        provider = TracerProvider(
            resource=Resource.create({"service.name": service_name, "service.version": __version__})
        )
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(provider)
        _tracer = trace.get_tracer(service_name)
    except Exception as e:
        # A broken collector config must not keep the operator from starting
        logger.warning(f"Failed to initialize tracing: {e}")


def get_tracer() -> Tracer | None:
    return _tracer


def tenant_attributes(tenant: dict[str, Any]) -> dict[str, str]:
    """Span attributes identifying a tenant."""
    meta = tenant.get("metadata", {})
    return {
        "tenant.name": meta.get("name") or "",
        "tenant.namespace": meta.get("namespace") or "",
    }


@contextmanager
def trace_span(
    name: str,
    kind: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span | None]:
    """Run a block inside a span; exceptions mark the span as failed.

    Args:
        name: Span name
        kind: Resource kind stored as resource.kind
        attributes: Additional span attributes

    Yields:
        The active span, or None when tracing is not initialized
    """
    tracer = get_tracer()
    if tracer is None:
        yield None
        return

    attrs = dict(attributes or {})
    if kind:
        attrs["resource.kind"] = kind

    with tracer.start_as_current_span(name, attributes=attrs) as span:
        yield span


def add_span_attribute(key: str, value: Any) -> None:
    """Attach an attribute to the current span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(key, value)
