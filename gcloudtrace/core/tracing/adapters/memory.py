"""In-memory upload adapter for testing and development."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING
from typing_extensions import override

from .base import ExportResult, TraceUploadAdapter

if TYPE_CHECKING:
    from ...types import TraceRecord


class InMemoryTraceAdapter(TraceUploadAdapter):
    """
    Stores uploaded traces in memory - useful for testing and development.

    Keeps each upload call as a separate batch so tests can assert on how
    records were bundled. Set ``fail_with`` to make uploads fail.
    """

    def __init__(self) -> None:
        self._batches: list[list[TraceRecord]] = []
        self._lock = threading.Lock()
        self.fail_with: Exception | None = None

    def __repr__(self) -> str:
        return f"InMemoryTraceAdapter(batches={len(self._batches)}, traces={len(self.get_all_traces())})"

    @property
    @override
    def name(self) -> str:
        return "in-memory"

    def get_batches(self) -> list[list[TraceRecord]]:
        """Get every uploaded batch, in upload order."""
        with self._lock:
            return [list(batch) for batch in self._batches]

    def get_all_traces(self) -> list[TraceRecord]:
        """Get all uploaded traces, flattened."""
        with self._lock:
            return [trace for batch in self._batches for trace in batch]

    def get_traces_by_trace_id(self, trace_id: str) -> list[TraceRecord]:
        return [trace for trace in self.get_all_traces() if trace.trace_id == trace_id]

    def clear(self) -> None:
        with self._lock:
            self._batches.clear()

    @override
    async def upload_traces(self, traces: list[TraceRecord]) -> ExportResult:
        if self.fail_with is not None:
            return ExportResult.failed(self.fail_with)
        with self._lock:
            self._batches.append(list(traces))
        return ExportResult.success()

    @override
    async def shutdown(self) -> None:
        """Shutdown keeps the stored traces so tests can inspect them afterwards."""
        return None
