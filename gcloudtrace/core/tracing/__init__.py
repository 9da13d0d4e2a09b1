"""OpenTelemetry integration and upload adapters."""

from .otel_converter import (
    otel_attributes_to_tags,
    otel_event_to_log,
    otel_span_kind_to_tag,
    otel_span_to_raw_span,
    split_trace_id,
)
from .span_exporter import CloudTraceSpanExporter

__all__ = [
    # Exporters
    "CloudTraceSpanExporter",
    # Converters
    "otel_span_to_raw_span",
    "otel_attributes_to_tags",
    "otel_event_to_log",
    "otel_span_kind_to_tag",
    "split_trace_id",
]
