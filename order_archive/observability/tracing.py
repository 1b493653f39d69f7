"""OpenTelemetry setup with key-material redaction."""
import logging
import re
from typing import Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.sdk.trace import ReadableSpan, Span, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from order_archive.settings import Settings

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"


class ArchiveSpanProcessor(SpanProcessor):
    """
    SpanProcessor that redacts key material from spans before they are exported.
    Wraps the exporting processor so the delegate only ever sees redacted spans.
    """
    def __init__(self, processor: SpanProcessor):
        self._processor = processor
        self._sensitive_keys = {"authorization", "cookie", "set-cookie"}
        self._sensitive_patterns = [
            re.compile(r"http\.request\.header\..*", re.IGNORECASE),
            re.compile(r"http\.response\.header\..*", re.IGNORECASE),
            re.compile(r".*(key|signature|salt|nonce|ciphertext|secret|token).*", re.IGNORECASE),
        ]

    def on_start(self, span: Span, parent_context: Optional[Context] = None) -> None:
        self._processor.on_start(span, parent_context=parent_context)

    def on_end(self, span: ReadableSpan) -> None:
        if span.attributes:
            redacted = {
                key: REDACTED if self._should_redact(key) else value
                for key, value in span.attributes.items()
            }
            # Attributes are read-only once a span has ended.
            if hasattr(span, "_attributes"):
                span._attributes = redacted
        self._processor.on_end(span)

    def shutdown(self) -> None:
        self._processor.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._processor.force_flush(timeout_millis)

    def _should_redact(self, key: str) -> bool:
        key_lower = key.lower()
        if key_lower in self._sensitive_keys:
            return True
        return any(p.match(key_lower) for p in self._sensitive_patterns)


def setup_tracing(app: FastAPI, settings: Settings) -> Optional[TracerProvider]:
    if not settings.tracing_enabled:
        return None

    provider = TracerProvider()

    if settings.otel_exporter_otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        processor = BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
        )
    elif settings.dev_mode:
        processor = BatchSpanProcessor(ConsoleSpanExporter())
    else:
        processor = None

    if processor:
        provider.add_span_processor(ArchiveSpanProcessor(processor))

    trace.set_tracer_provider(provider)

    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

    # Exclude health checks from tracing to reduce noise
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls="health/*")
    # Statement capture disabled: bound parameters include signatures and salts
    SQLAlchemyInstrumentor().instrument(tracer_provider=provider, db_statement_enabled=False)

    logger.info("OpenTelemetry tracing enabled")
    return provider
