from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from taskflow.config import Settings


logger = logging.getLogger(__name__)

_PROVIDER: TracerProvider | None = None


@dataclass(frozen=True)
class TraceContext:
    trace_id: str
    span_id: str

    def as_log_fields(self) -> dict[str, str]:
        return {"trace_id": self.trace_id, "span_id": self.span_id}


TraceContextAccessor = Callable[[], "TraceContext | None"]


def current_trace_context() -> TraceContext | None:
    """Identifiers of the active OpenTelemetry span, or None outside a trace."""

    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None
    return TraceContext(
        trace_id=format(span_context.trace_id, "032x"),
        span_id=format(span_context.span_id, "016x"),
    )


def setup_tracing(settings: Settings) -> TracerProvider | None:
    """Install the SDK tracer provider with an OTLP/HTTP exporter.

    Safe to call multiple times (no-op after first successful call).
    """

    global _PROVIDER
    if _PROVIDER is not None or settings.otel_sdk_disabled:
        return _PROVIDER

    try:
        resource = Resource.create(
            {
                SERVICE_NAME: settings.service_name,
                "deployment.environment": settings.environment,
            }
        )
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.traces_endpoint)))
        trace.set_tracer_provider(provider)
    except Exception:
        logger.exception("otel_sdk_start_failed")
        return None

    _PROVIDER = provider
    logger.info("otel_sdk_started", extra={"otlp_endpoint": settings.traces_endpoint})
    return provider


def shutdown_tracing() -> None:
    global _PROVIDER
    if _PROVIDER is None:
        return

    try:
        _PROVIDER.shutdown()
    except Exception:
        logger.exception("otel_sdk_shutdown_failed")
    else:
        logger.info("otel_sdk_stopped")
    finally:
        _PROVIDER = None


def instrument_app(app: FastAPI, tracer_provider: TracerProvider | None = None) -> None:
    # Scrapes would otherwise produce one span every few seconds.
    FastAPIInstrumentor.instrument_app(app, excluded_urls="metrics", tracer_provider=tracer_provider)
