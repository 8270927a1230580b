from __future__ import annotations

"""
eventhook.observability.tracing
===============================

OpenTelemetry instrumentation bootstrap.

- `setup_tracing()` configures a service-wide tracer provider, exporting over
  OTLP gRPC when an endpoint is given.
- `trace()` decorates sync or async callables with a span.

Until setup_tracing() is called the global provider is OpenTelemetry's no-op
one, so decorated code runs untraced.

Usage:
    setup_tracing(service_name="eventhook", otlp_endpoint="http://otelcol:4317")

    @trace("eventhook.dispatch")
    async def dispatch(ctx): ...
"""

import functools
import inspect
import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace as otel_trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ..core.log import get_logger, warn_once

__all__ = ["setup_tracing", "trace"]

_log = get_logger("observability.tracing")
_F = TypeVar("_F", bound=Callable[..., Any])


def setup_tracing(*, service_name: str, otlp_endpoint: str | None = None) -> TracerProvider:
    """
    Configure OpenTelemetry tracing (global tracer provider).

    Args:
        service_name: logical service name for resources.
        otlp_endpoint: OTLP gRPC endpoint (e.g. "http://otelcol:4317"); if None,
                       spans are recorded but not exported.

    OpenTelemetry only accepts the first global provider; later calls log a
    warning from the SDK and keep the existing one.
    """
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if otlp_endpoint:
        try:
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)))
            _log.info("otel tracing configured (otlp)", endpoint=otlp_endpoint)
        except Exception:
            warn_once(_log, "tracing.otlp_init_failed", "Failed to initialize OTLP exporter", level=logging.ERROR)
    otel_trace.set_tracer_provider(provider)
    return provider


def trace(name: str) -> Callable[[_F], _F]:
    """Decorator tracing each call of a sync or async callable with a span named `name`."""

    def _decorator(func: _F) -> _F:
        tracer = otel_trace.get_tracer("eventhook")

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def _aw(*args: Any, **kwargs: Any):
                with tracer.start_as_current_span(name):
                    return await func(*args, **kwargs)

            return cast(_F, _aw)

        @functools.wraps(func)
        def _sw(*args: Any, **kwargs: Any):
            with tracer.start_as_current_span(name):
                return func(*args, **kwargs)

        return cast(_F, _sw)

    return _decorator
