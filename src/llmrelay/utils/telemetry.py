"""OpenTelemetry tracing helpers for llmrelay.

The library only depends on the OpenTelemetry API. Without a configured SDK
``get_tracer()`` hands out no-op tracers, so instrumented calls cost next to
nothing unless an application opts in.

Usage::

    from llmrelay.utils.telemetry import get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("llmrelay.chat") as span:
        span.set_attribute(ATTR_MODEL, "claude-sonnet-4-5")

Applications that want real spans call :func:`configure_telemetry` once at
startup with an OTLP endpoint (requires the ``otel`` extra).
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace

# ---------------------------------------------------------------------------
# Span attribute keys
# ---------------------------------------------------------------------------

ATTR_PROVIDER = "llmrelay.provider"
ATTR_MODEL = "llmrelay.model"
ATTR_OPERATION = "llmrelay.operation"
ATTR_ENDPOINT = "llmrelay.endpoint"
ATTR_STOP_REASON = "llmrelay.stop_reason"
ATTR_TOKENS_INPUT = "llmrelay.tokens.input"
ATTR_TOKENS_OUTPUT = "llmrelay.tokens.output"
ATTR_TOKENS_TOTAL = "llmrelay.tokens.total"
ATTR_EMBEDDING_COUNT = "llmrelay.embeddings.count"
ATTR_ERROR_KIND = "llmrelay.error.kind"

_INSTRUMENTATION_NAME = "llmrelay"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a :class:`~opentelemetry.trace.Tracer` for *name* (no-op until configured)."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    otlp_endpoint: str | None = None,
    console: bool = False,
    service_name: str = _INSTRUMENTATION_NAME,
) -> Any:
    """Install an SDK tracer provider so client spans are exported.

    Requires the ``otel`` extra. At least one destination is needed: an OTLP
    collector (gRPC, batched) or the console (printed as each span ends).

    Returns:
        The installed ``TracerProvider``, for callers that want to flush or
        shut it down.

    Raises:
        ImportError: ``opentelemetry-sdk`` (or, for OTLP, the exporter) is missing.
        ValueError: neither ``otlp_endpoint`` nor ``console`` was given.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import export  # pyright: ignore[reportMissingImports]
    except ImportError as exc:
        raise ImportError(
            "opentelemetry-sdk is required for configure_telemetry(); install llm-relay[otel]"
        ) from exc

    processors: list[Any] = []
    if otlp_endpoint:
        processors.append(export.BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))
    if console:
        processors.append(export.SimpleSpanProcessor(export.ConsoleSpanExporter()))
    if not processors:
        raise ValueError("configure_telemetry() needs an otlp_endpoint or console=True")

    from llmrelay import __version__

    resource = Resource.create({"service.name": service_name, "service.version": __version__})
    provider = TracerProvider(resource=resource)
    for processor in processors:
        provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    return provider


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter  # pyright: ignore[reportMissingImports]
    except ImportError as exc:
        raise ImportError(
            "opentelemetry-exporter-otlp is required for OTLP export; install llm-relay[otel]"
        ) from exc
    return OTLPSpanExporter(endpoint=endpoint)
