"""Translation of finished spans into Cloud Trace records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .labels import build_labels
from .timeutil import format_rfc3339_nano
from .types import (
    SPAN_KIND_RPC_CLIENT,
    SPAN_KIND_RPC_SERVER,
    SPAN_KIND_TAG,
    TraceRecord,
    TraceSpanKind,
    TraceSpanRecord,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .types import RawSpan, SpanContext

# Bundler weight of one record: 1 trace + 1 span
TRACE_RECORD_WEIGHT = 2

_UINT64_MASK = (1 << 64) - 1


def format_trace_id(context: SpanContext) -> str:
    """
    Format a trace id as 32 lowercase hex characters.

    When the tracer supplies the upper 64 bits they form the first half.
    Tracers with 64-bit ids get the low half repeated, which is what
    Cloud Trace has always received from this recorder.
    """
    low = context.trace_id & _UINT64_MASK
    high = low if context.trace_id_high is None else context.trace_id_high & _UINT64_MASK
    return f"{high:016x}{low:016x}"


def convert_span_kind(tags: Mapping[str, Any]) -> TraceSpanKind:
    """Derive the Cloud Trace span kind from the ``span.kind`` tag."""
    kind = tags.get(SPAN_KIND_TAG)
    if kind == SPAN_KIND_RPC_SERVER:
        return TraceSpanKind.RPC_SERVER
    if kind == SPAN_KIND_RPC_CLIENT:
        return TraceSpanKind.RPC_CLIENT
    return TraceSpanKind.UNSPECIFIED


def translate_span(span: RawSpan, project_id: str) -> TraceRecord | None:
    """
    Build a Cloud Trace record for a finished span.

    Args:
        span: The finished span
        project_id: Google Cloud project the trace belongs to

    Returns:
        The trace record, or None when the span was not sampled
    """
    if not span.context.sampled:
        return None

    start_ns = span.start_time_ns
    end_ns = start_ns + span.duration_ns

    trace_span = TraceSpanRecord(
        span_id=span.context.span_id,
        kind=convert_span_kind(span.tags),
        name=span.operation,
        start_time=format_rfc3339_nano(start_ns),
        end_time=format_rfc3339_nano(end_ns),
        parent_span_id=span.parent_span_id,
        labels=build_labels(span),
    )

    return TraceRecord(
        project_id=project_id,
        trace_id=format_trace_id(span.context),
        spans=(trace_span,),
    )
