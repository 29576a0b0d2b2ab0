"""
OpenTelemetry distributed tracing for kubewebhook.

This module provides:
- The Tracer collaborator used by the HTTP gateway and TracedWebhook
- A no-op Tracer (the default)
- An OpenTelemetry backed Tracer, with W3C trace context extraction from
  incoming admission requests
- Process level TracerProvider setup/shutdown

Usage:
    from kubewebhook.observability.tracing import OtelTracer, setup_tracing

    provider = setup_tracing(enabled=True, endpoint="http://collector:4317")
    tracer = OtelTracer(provider)
"""

import enum
import functools
import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol, TypeAlias

from aiohttp import web
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import SpanKind, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from opentelemetry.util.types import AttributeValue

from kubewebhook.constants import TRACER_NAME
from kubewebhook.context import ReviewContext

logger = logging.getLogger(__name__)

Handler: TypeAlias = Callable[[web.Request], Awaitable[web.StreamResponse]]
TracedFunc: TypeAlias = Callable[[ReviewContext], Awaitable[Mapping[str, Any] | None]]

# Module-level state
_tracer_provider: TracerProvider | None = None
_initialized: bool = False


class Tracer(Protocol):
    """Span lifecycle collaborator."""

    def with_values(self, values: Mapping[str, Any]) -> "Tracer": ...

    def new_trace(self, ctx: ReviewContext, name: str) -> ReviewContext: ...

    def end_trace(self, ctx: ReviewContext, err: BaseException | None) -> None: ...

    def add_trace_values(self, ctx: ReviewContext, values: Mapping[str, Any]) -> None: ...

    def add_trace_event(
        self, ctx: ReviewContext, event: str, values: Mapping[str, Any]
    ) -> None: ...

    def trace_id(self, ctx: ReviewContext) -> str: ...

    async def trace_func(
        self, ctx: ReviewContext, name: str, func: TracedFunc
    ) -> None: ...

    def trace_http_handler(self, name: str, handler: Handler) -> Handler: ...


class NoopTracer:
    """Tracer that does nothing."""

    def with_values(self, values: Mapping[str, Any]) -> "NoopTracer":
        return self

    def new_trace(self, ctx: ReviewContext, name: str) -> ReviewContext:
        return ctx

    def end_trace(self, ctx: ReviewContext, err: BaseException | None) -> None:
        pass

    def add_trace_values(self, ctx: ReviewContext, values: Mapping[str, Any]) -> None:
        pass

    def add_trace_event(
        self, ctx: ReviewContext, event: str, values: Mapping[str, Any]
    ) -> None:
        pass

    def trace_id(self, ctx: ReviewContext) -> str:
        return ""

    async def trace_func(self, ctx: ReviewContext, name: str, func: TracedFunc) -> None:
        await func(ctx)

    def trace_http_handler(self, name: str, handler: Handler) -> Handler:
        return handler


NOOP_TRACER = NoopTracer()


def _homogeneous(values: Sequence[Any], kind: type) -> bool:
    if kind is int:
        return all(isinstance(v, int) and not isinstance(v, bool) for v in values)
    return all(isinstance(v, kind) for v in values)


def to_attribute_value(value: Any) -> AttributeValue:
    """
    Convert an arbitrary value into an OpenTelemetry attribute value.

    Scalars and homogeneous sequences of scalars are kept, enums use their
    value, None becomes "<nil>" and anything else is JSON (or str) encoded.
    """
    if value is None:
        return "<nil>"
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, list | tuple):
        items = list(value)
        for kind in (bool, int, float, str):
            if _homogeneous(items, kind):
                return items
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


def to_attributes(values: Mapping[str, Any] | None) -> dict[str, AttributeValue]:
    return {k: to_attribute_value(v) for k, v in (values or {}).items()}


class OtelTracer:
    """Tracer backed by OpenTelemetry."""

    def __init__(
        self,
        tracer_provider: trace.TracerProvider | None = None,
        propagator: TextMapPropagator | None = None,
        values: Mapping[str, Any] | None = None,
    ):
        self.tracer_provider = tracer_provider or trace.get_tracer_provider()
        self.tracer = self.tracer_provider.get_tracer(TRACER_NAME)
        self.propagator = propagator or TraceContextTextMapPropagator()
        self.values = dict(values or {})

    def with_values(self, values: Mapping[str, Any]) -> "OtelTracer":
        return OtelTracer(self.tracer_provider, self.propagator, values)

    def _span(self, ctx: ReviewContext) -> trace.Span | None:
        span = ctx.span if ctx.span is not None else trace.get_current_span()
        if not span.is_recording():
            return None
        return span

    def trace_id(self, ctx: ReviewContext) -> str:
        span = self._span(ctx)
        if span is None:
            return ""
        return trace.format_trace_id(span.get_span_context().trace_id)

    def new_trace(self, ctx: ReviewContext, name: str) -> ReviewContext:
        parent = trace.set_span_in_context(ctx.span) if ctx.span is not None else None
        span = self.tracer.start_span(
            name, context=parent, attributes=to_attributes(self.values)
        )
        return ctx.with_span(span)

    def end_trace(self, ctx: ReviewContext, err: BaseException | None) -> None:
        span = self._span(ctx)
        if span is None:
            return

        if err is not None:
            span.record_exception(err)
            span.set_status(Status(StatusCode.ERROR, str(err)))
        else:
            span.set_status(Status(StatusCode.OK))
        span.end()

    def add_trace_values(self, ctx: ReviewContext, values: Mapping[str, Any]) -> None:
        span = self._span(ctx)
        if span is None:
            return
        span.set_attributes(to_attributes(values))

    def add_trace_event(
        self, ctx: ReviewContext, event: str, values: Mapping[str, Any]
    ) -> None:
        span = self._span(ctx)
        if span is None:
            return
        span.add_event(event, attributes=to_attributes(values))

    async def trace_func(self, ctx: ReviewContext, name: str, func: TracedFunc) -> None:
        """Run func inside its own span; errors are recorded and re-raised."""
        ctx = self.new_trace(ctx, name)
        try:
            values = await func(ctx)
        except Exception as e:
            self.end_trace(ctx, e)
            raise
        self.add_trace_values(ctx, values or {})
        self.end_trace(ctx, None)

    def trace_http_handler(self, name: str, handler: Handler) -> Handler:
        """Wrap an aiohttp handler in a SERVER span continuing the caller's trace."""

        @functools.wraps(handler)
        async def traced(request: web.Request) -> web.StreamResponse:
            parent = self.propagator.extract(request.headers)
            attributes = to_attributes(self.values)
            attributes.update(
                {
                    "http.request.method": request.method,
                    "url.path": request.path,
                }
            )
            with self.tracer.start_as_current_span(
                name, context=parent, kind=SpanKind.SERVER, attributes=attributes
            ) as span:
                response = await handler(request)
                span.set_attribute("http.response.status_code", response.status)
                if response.status >= 500:
                    span.set_status(Status(StatusCode.ERROR))
                return response

        return traced


def setup_tracing(
    enabled: bool = False,
    endpoint: str = "http://localhost:4317",
    service_name: str = "kubewebhook",
    sample_rate: float = 1.0,
    insecure: bool = True,
    headers: dict[str, str] | None = None,
    use_simple_processor: bool = False,
) -> TracerProvider | None:
    """
    Initialize OpenTelemetry tracing for the webhook server.

    Args:
        enabled: Enable tracing (if False, returns None and does nothing)
        endpoint: OTLP collector endpoint (gRPC)
        service_name: Service name for traces
        sample_rate: Sampling rate (0.0-1.0, 1.0 = 100% of traces)
        insecure: Use insecure connection (no TLS)
        headers: Additional headers for OTLP exporter
        use_simple_processor: Use SimpleSpanProcessor instead of BatchSpanProcessor

    Returns:
        TracerProvider if enabled, None otherwise
    """
    global _tracer_provider, _initialized

    if _initialized:
        logger.debug("Tracing already initialized, skipping")
        return _tracer_provider

    if not enabled:
        logger.info("OpenTelemetry tracing is disabled")
        _initialized = True
        return None

    logger.info(
        f"Initializing OpenTelemetry tracing: endpoint={endpoint}, "
        f"service={service_name}, sample_rate={sample_rate}"
    )

    resource = Resource.create(
        {
            "service.name": service_name,
            "deployment.environment": "kubernetes",
        }
    )

    # ParentBased respects the API server's sampling decision
    sampler = ParentBased(root=TraceIdRatioBased(sample_rate))
    _tracer_provider = TracerProvider(resource=resource, sampler=sampler)

    exporter = OTLPSpanExporter(
        endpoint=endpoint,
        insecure=insecure,
        headers=headers or {},
    )
    if use_simple_processor:
        processor = SimpleSpanProcessor(exporter)
    else:
        processor = BatchSpanProcessor(exporter)
    _tracer_provider.add_span_processor(processor)

    trace.set_tracer_provider(_tracer_provider)

    _initialized = True
    logger.info("OpenTelemetry tracing initialized successfully")

    return _tracer_provider


def shutdown_tracing() -> None:
    """Shutdown tracing and flush any pending spans."""
    global _tracer_provider, _initialized

    if _tracer_provider is not None:
        logger.info("Shutting down OpenTelemetry tracing")
        _tracer_provider.shutdown()
        _tracer_provider = None

    _initialized = False


def is_tracing_enabled() -> bool:
    """Check if tracing is currently enabled and initialized."""
    return _initialized and _tracer_provider is not None
