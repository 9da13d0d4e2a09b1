"""Core types and data structures for the Cloud Trace recorder."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# Tag keys understood by the recorder (OpenTracing semantic conventions)
SPAN_KIND_TAG = "span.kind"
SPAN_KIND_RPC_SERVER = "server"
SPAN_KIND_RPC_CLIENT = "client"

PEER_HOSTNAME_TAG = "peer.hostname"
HTTP_METHOD_TAG = "http.method"
HTTP_STATUS_CODE_TAG = "http.status_code"
HTTP_URL_TAG = "http.url"


class TraceSpanKind(str, Enum):
    """
    Span kind as understood by Cloud Trace.
    Maps to the TraceSpan.kind enum of the cloudtrace v1 API.
    """

    UNSPECIFIED = "SPAN_KIND_UNSPECIFIED"
    RPC_SERVER = "RPC_SERVER"
    RPC_CLIENT = "RPC_CLIENT"


@dataclass(frozen=True)
class SpanContext:
    """Identity and sampling state of a finished span."""

    trace_id: int
    span_id: int
    sampled: bool = True
    # Upper 64 bits of the trace id, when the tracer uses 128-bit ids
    trace_id_high: Optional[int] = None
    baggage: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LogRecord:
    """A timestamped structured log event attached to a span."""

    timestamp_ns: int
    fields: List[Tuple[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class RawSpan:
    """
    A completed span as handed over by the tracer.
    This is the input representation consumed by the recorder.
    """

    context: SpanContext
    operation: str
    start_time_ns: int
    duration_ns: int
    parent_span_id: int = 0
    tags: Dict[str, Any] = field(default_factory=dict)
    logs: List[LogRecord] = field(default_factory=list)


@dataclass(frozen=True)
class TraceSpanRecord:
    """A single span entry of a Cloud Trace trace."""

    span_id: int
    kind: TraceSpanKind
    name: str
    start_time: str
    end_time: str
    parent_span_id: int = 0
    labels: Dict[str, str] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        """Render the span in the cloudtrace v1 JSON shape."""
        result: Dict[str, Any] = {
            # uint64 fields travel as decimal strings in the JSON API
            "spanId": str(self.span_id),
            "kind": self.kind.value,
            "name": self.name,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.parent_span_id:
            result["parentSpanId"] = str(self.parent_span_id)
        if self.labels:
            result["labels"] = dict(self.labels)
        return result


@dataclass(frozen=True)
class TraceRecord:
    """
    Destination-shaped trace holding one translated span.
    Immutable once built; ownership moves to the bundler on enqueue.
    """

    project_id: str
    trace_id: str
    spans: Tuple[TraceSpanRecord, ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {
            "projectId": self.project_id,
            "traceId": self.trace_id,
            "spans": [span.to_json() for span in self.spans],
        }
