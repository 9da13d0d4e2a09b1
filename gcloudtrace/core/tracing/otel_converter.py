"""Conversion of OpenTelemetry spans into recorder RawSpans."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from opentelemetry.trace import SpanKind as OTelSpanKind

from ..types import (
    HTTP_METHOD_TAG,
    HTTP_STATUS_CODE_TAG,
    HTTP_URL_TAG,
    PEER_HOSTNAME_TAG,
    SPAN_KIND_RPC_CLIENT,
    SPAN_KIND_RPC_SERVER,
    SPAN_KIND_TAG,
    LogRecord,
    RawSpan,
    SpanContext,
)

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import Event, ReadableSpan

_UINT64_MASK = (1 << 64) - 1

# OpenTelemetry semantic attributes and the tag each one stands in for
OTEL_TAG_ALIASES: Mapping[str, str] = {
    "http.request.method": HTTP_METHOD_TAG,
    "http.response.status_code": HTTP_STATUS_CODE_TAG,
    "url.full": HTTP_URL_TAG,
    "server.address": PEER_HOSTNAME_TAG,
    "net.peer.name": PEER_HOSTNAME_TAG,
}

EVENT_NAME_FIELD = "event"


def split_trace_id(trace_id: int) -> tuple[int, int]:
    """Split a 128-bit trace id into its (high, low) 64-bit halves."""
    return (trace_id >> 64) & _UINT64_MASK, trace_id & _UINT64_MASK


def otel_span_kind_to_tag(kind: Any) -> str | None:
    """Map an OpenTelemetry span kind to the ``span.kind`` tag value, if it has one."""
    if isinstance(kind, int):
        try:
            kind = OTelSpanKind(kind)
        except ValueError:
            return None
    if kind == OTelSpanKind.SERVER:
        return SPAN_KIND_RPC_SERVER
    if kind == OTelSpanKind.CLIENT:
        return SPAN_KIND_RPC_CLIENT
    return None


def otel_attributes_to_tags(attributes: Mapping[str, Any] | None, kind: Any = None) -> dict[str, Any]:
    """
    Copy span attributes into tags.

    Semantic-convention attributes are renamed to the tag keys the label
    converter knows, unless that tag is already set explicitly.
    """
    tags: dict[str, Any] = dict(attributes or {})
    for otel_key, tag_key in OTEL_TAG_ALIASES.items():
        if otel_key in tags and tag_key not in tags:
            tags[tag_key] = tags.pop(otel_key)

    kind_tag = otel_span_kind_to_tag(kind)
    if kind_tag is not None and SPAN_KIND_TAG not in tags:
        tags[SPAN_KIND_TAG] = kind_tag
    return tags


def otel_event_to_log(event: Event) -> LogRecord:
    """Convert a span event to a log record; the event name becomes the first field."""
    fields: list[tuple[str, Any]] = [(EVENT_NAME_FIELD, event.name)]
    fields.extend((key, value) for key, value in (event.attributes or {}).items())
    return LogRecord(timestamp_ns=event.timestamp, fields=fields)


def otel_span_to_raw_span(span: ReadableSpan) -> RawSpan:
    """
    Convert a finished OpenTelemetry span to a RawSpan.

    Args:
        span: The finished span

    Returns:
        RawSpan carrying both halves of the 128-bit trace id
    """
    otel_context = span.context
    high, low = split_trace_id(otel_context.trace_id)

    start_ns = span.start_time or 0
    end_ns = span.end_time or start_ns

    return RawSpan(
        context=SpanContext(
            trace_id=low,
            trace_id_high=high,
            span_id=otel_context.span_id,
            sampled=otel_context.trace_flags.sampled,
        ),
        operation=span.name,
        start_time_ns=start_ns,
        duration_ns=max(end_ns - start_ns, 0),
        parent_span_id=span.parent.span_id if span.parent is not None else 0,
        tags=otel_attributes_to_tags(span.attributes, span.kind),
        logs=[otel_event_to_log(event) for event in span.events],
    )
