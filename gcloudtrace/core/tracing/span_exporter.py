"""OpenTelemetry SpanExporter that feeds finished spans to a Recorder."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING
from typing_extensions import override

from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from .otel_converter import otel_span_to_raw_span

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan

    from ..recorder import Recorder

logger = logging.getLogger(__name__)


class CloudTraceSpanExporter(SpanExporter):
    """
    Bridges the OpenTelemetry SDK to the Cloud Trace recorder.

    Use it with a SimpleSpanProcessor: the recorder already batches, so an
    OpenTelemetry BatchSpanProcessor in front of it only adds latency.
    """

    def __init__(self, recorder: Recorder) -> None:
        self._recorder = recorder
        self._shutdown = False

    @property
    def recorder(self) -> Recorder:
        return self._recorder

    @override
    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        if self._shutdown:
            logger.warning("Exporter already shut down, ignoring %d span(s)", len(spans))
            return SpanExportResult.FAILURE

        for span in spans:
            self._recorder.record_span(otel_span_to_raw_span(span))
        return SpanExportResult.SUCCESS

    @override
    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._recorder.flush(timeout=timeout_millis / 1000)

    @override
    def shutdown(self) -> None:
        if self._shutdown:
            return
        self._shutdown = True
        self._recorder.close()
