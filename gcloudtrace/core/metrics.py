"""Upload counters for the recorder."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace


@dataclass
class UploadMetrics:
    """Counters describing what happened to recorded spans."""

    traces_uploaded: int = 0
    traces_failed: int = 0
    bundles_uploaded: int = 0
    bundles_failed: int = 0
    # Enqueues rejected because the buffered weight limit was reached
    overflows: int = 0
    # Single-record uploads performed on the caller's thread after an overflow
    fallback_uploads: int = 0
    spans_dropped: int = 0
    spans_unsampled: int = 0

    @property
    def failure_rate(self) -> float:
        attempted = self.traces_uploaded + self.traces_failed
        if attempted == 0:
            return 0.0
        return self.traces_failed / attempted


class MetricsCollector:
    """Thread-safe collector; bundler handler threads and callers both report here."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics = UploadMetrics()

    def record_upload(self, trace_count: int, success: bool) -> None:
        with self._lock:
            if success:
                self._metrics.traces_uploaded += trace_count
                self._metrics.bundles_uploaded += 1
            else:
                self._metrics.traces_failed += trace_count
                self._metrics.bundles_failed += 1

    def record_overflow(self) -> None:
        with self._lock:
            self._metrics.overflows += 1

    def record_fallback_upload(self) -> None:
        with self._lock:
            self._metrics.fallback_uploads += 1

    def record_dropped(self, count: int = 1) -> None:
        with self._lock:
            self._metrics.spans_dropped += count

    def record_unsampled(self) -> None:
        with self._lock:
            self._metrics.spans_unsampled += 1

    def snapshot(self) -> UploadMetrics:
        """Return a copy of the current counters."""
        with self._lock:
            return replace(self._metrics)

    def reset(self) -> None:
        with self._lock:
            self._metrics = UploadMetrics()
