"""Conversion of span tags and logs into Cloud Trace labels."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .timeutil import format_rfc3339_nano
from .types import HTTP_METHOD_TAG, HTTP_STATUS_CODE_TAG, HTTP_URL_TAG, PEER_HOSTNAME_TAG

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .types import LogRecord, RawSpan

# Well-known tag keys rewritten to their Cloud Trace label equivalents
LABEL_MAP: Mapping[str, str] = MappingProxyType(
    {
        PEER_HOSTNAME_TAG: "trace.cloud.google.com/http/host",
        HTTP_METHOD_TAG: "trace.cloud.google.com/http/method",
        HTTP_STATUS_CODE_TAG: "trace.cloud.google.com/http/status_code",
        HTTP_URL_TAG: "trace.cloud.google.com/http/url",
    }
)

EVENT_LABEL_PREFIX = "event_"


def convert_tags(tags: Mapping[str, Any]) -> dict[str, str]:
    """
    Convert span tags to string labels.

    Integers are rendered in base 10 and strings pass through. Every other
    value type is dropped from the result.
    """
    labels: dict[str, str] = {}
    for key, value in tags.items():
        # bool is an int subclass but is not an integer tag
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            labels[key] = str(value)
        elif isinstance(value, str):
            labels[key] = value
    return labels


def transpose_labels(labels: dict[str, str]) -> None:
    """Rewrite well-known tag keys into Cloud Trace labels, in place."""
    for key, target in LABEL_MAP.items():
        if key in labels:
            labels[target] = labels.pop(key)


def format_log_event(log: LogRecord) -> str:
    """Render a log event as ``<timestamp> key=value key=value``."""
    parts = [format_rfc3339_nano(log.timestamp_ns)]
    parts.extend(f"{key}={value}" for key, value in log.fields)
    return " ".join(parts)


def add_logs(labels: dict[str, str], logs: Iterable[LogRecord]) -> None:
    """Copy span log events into labels named ``event_<index>``."""
    for index, log in enumerate(logs):
        labels[f"{EVENT_LABEL_PREFIX}{index}"] = format_log_event(log)


def build_labels(span: RawSpan) -> dict[str, str]:
    """Build the full label set for a span: tags, rewritten keys and logs."""
    labels = convert_tags(span.tags)
    transpose_labels(labels)
    add_logs(labels, span.logs)
    return labels
