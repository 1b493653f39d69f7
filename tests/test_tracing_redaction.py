"""Tests for span attribute redaction."""
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from order_archive.observability.tracing import ArchiveSpanProcessor


def test_key_material_attributes_redacted():
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(ArchiveSpanProcessor(SimpleSpanProcessor(exporter)))
    tracer = provider.get_tracer(__name__)

    with tracer.start_as_current_span("archive.encrypt") as span:
        span.set_attribute("order.id", "ORD-1")
        span.set_attribute("archive.size_bytes", 120)
        span.set_attribute("wallet.signature", "0xdeadbeef")
        span.set_attribute("encryption_salt", "f00d")
        span.set_attribute("envelope.nonce", "AAAA")

    (finished,) = exporter.get_finished_spans()
    attrs = dict(finished.attributes)
    assert attrs["order.id"] == "ORD-1"
    assert attrs["archive.size_bytes"] == 120
    assert attrs["wallet.signature"] == "[REDACTED]"
    assert attrs["encryption_salt"] == "[REDACTED]"
    assert attrs["envelope.nonce"] == "[REDACTED]"
