"""
Distributed Tracing with OpenTelemetry.

The library only creates spans; hosts that want them exported call
setup_tracing() once at startup.
"""

from typing import Any

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from playstore_validator.config import Settings, get_settings


def setup_tracing(settings: Settings | None = None) -> None:
    """
    Configure OpenTelemetry tracing with OTLP export.

    Sets up a TracerProvider with the service resource and an OTLP exporter.
    """
    settings = settings or get_settings()
    if not settings.tracing_enabled:
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.service_version,
        }
    )

    provider = TracerProvider(resource=resource)
    otlp_exporter = OTLPSpanExporter(
        endpoint=settings.otlp_endpoint,
        insecure=settings.otlp_insecure,
    )
    provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    trace.set_tracer_provider(provider)


def get_tracer(name: str) -> Tracer:
    """Get a tracer instance for manual span creation."""
    return trace.get_tracer(name)


def add_span_attributes(span: Span, **attributes: Any) -> None:
    """Add non-None attributes to a span, stringifying non-primitive values."""
    for key, value in attributes.items():
        if value is not None:
            if isinstance(value, (str, int, float, bool)):
                span.set_attribute(key, value)
            else:
                span.set_attribute(key, str(value))


def set_span_error(span: Span, error: BaseException) -> None:
    """Mark span as error and record exception."""
    span.set_status(Status(StatusCode.ERROR, str(error)))
    span.record_exception(error)


class trace_operation:
    """
    Context manager for creating traced operations.

    Usage:
        with trace_operation("google_play.verify_purchase", settings, product_id=pid) as span:
            span.set_attribute("order_id", order_id)

    When tracing is disabled the yielded span is a non-recording span.
    """

    def __init__(
        self, operation_name: str, settings: Settings | None = None, **attributes: Any
    ) -> None:
        self.operation_name = operation_name
        self.settings = settings
        self.attributes = attributes
        self.span: Span = trace.INVALID_SPAN
        self._token: Any = None

    def __enter__(self) -> Span:
        """Start span and make it current."""
        if not (self.settings or get_settings()).tracing_enabled:
            return self.span
        self.span = get_tracer("playstore_validator.operations").start_span(self.operation_name)
        add_span_attributes(self.span, **self.attributes)
        self._token = otel_context.attach(trace.set_span_in_context(self.span))
        return self.span

    def __exit__(self, exc_type: type, exc_val: BaseException, exc_tb: object) -> None:
        """End span and record any errors."""
        if self._token is None:
            return
        if exc_val:
            set_span_error(self.span, exc_val)
        otel_context.detach(self._token)
        self.span.end()
