"""Recorder that ships finished spans to Google Cloud Trace."""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import weakref
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from .bundler import Bundler
from .errors import BundleOverflowError, BundlerError
from .logger import configure_logger
from .metrics import MetricsCollector, UploadMetrics
from .tracing.adapters.base import ExportResult
from .translator import TRACE_RECORD_WEIGHT, translate_span

if TYPE_CHECKING:
    from .config import RecorderConfig
    from .tracing.adapters.base import TraceUploadAdapter
    from .types import RawSpan, TraceRecord

logger = logging.getLogger(__name__)


class Recorder:
    """
    Records finished spans into Google Cloud Trace.

    Spans are translated to trace records and batched by a Bundler, which
    uploads them in the background. When the bundler is full the record is
    uploaded immediately on the caller's thread instead.

    Upload failures never reach record_span callers: they are reported to
    the configured logger and counted in ``metrics``.
    """

    def __init__(
        self,
        config: RecorderConfig,
        adapter: TraceUploadAdapter | None = None,
        register_atexit: bool = True,
    ) -> None:
        """
        Initialize the recorder.

        Args:
            config: Recorder settings; validated here
            adapter: Upload destination. Defaults to the Cloud Trace API,
                which requires ``config.credentials``
            register_atexit: Drain pending spans at interpreter exit

        Raises:
            ConfigurationError: config is invalid or no adapter can be built
        """
        config.validate()
        self._config = config
        self._project_id = config.project_id
        if config.logger is None:
            configure_logger(log_level=config.log_level, prefix="GCloudTrace")
        self._log = config.logger or logger
        self._metrics = MetricsCollector()

        if adapter is None:
            adapter = self._create_default_adapter(config)
        self._adapter = adapter

        # One event loop per thread that drives async adapter calls
        self._loops = threading.local()
        self._all_loops: list[asyncio.AbstractEventLoop] = []
        self._loops_lock = threading.Lock()

        self._bundler: Bundler[TraceRecord] = Bundler(
            self._upload_bundle,
            config.bundler,
            name="gcloudtrace-recorder",
        )
        self._closed = False
        self._close_lock = threading.Lock()

        if register_atexit:
            _register_exit_drain(self)

        logger.debug(
            "Recorder started for project %s via %s adapter", self._project_id, self._adapter.name
        )

    def __enter__(self) -> Recorder:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @staticmethod
    def _create_default_adapter(config: RecorderConfig) -> TraceUploadAdapter:
        from .errors import InvalidCredentialsError
        from .tracing.adapters.api import create_api_adapter

        if config.credentials is None:
            raise InvalidCredentialsError(
                "service account credentials are required to upload to the Cloud Trace API"
            )
        return create_api_adapter(
            project_id=config.project_id,
            credentials=config.credentials,
            api_base_url=config.api_base_url,
            timeout_seconds=config.timeout_seconds,
        )

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def adapter(self) -> TraceUploadAdapter:
        return self._adapter

    @property
    def bundler(self) -> Bundler[TraceRecord]:
        return self._bundler

    @property
    def metrics(self) -> UploadMetrics:
        return self._metrics.snapshot()

    def record_span(self, span: RawSpan) -> None:
        """Translate a finished span and queue it for upload. Unsampled spans are ignored."""
        trace = translate_span(span, self._project_id)
        if trace is None:
            self._metrics.record_unsampled()
            return

        try:
            self._bundler.add(trace, TRACE_RECORD_WEIGHT)
        except BundleOverflowError:
            self._metrics.record_overflow()
            self._log.error("trace upload bundle too full. uploading immediately")
            self._metrics.record_fallback_upload()
            result = self.upload([trace])
            if not result.ok:
                self._log.error("error uploading trace: %s", result.error)
        except BundlerError as e:
            self._metrics.record_dropped()
            self._log.error("dropping span %s: %s", span.operation, e)

    def upload(self, traces: list[TraceRecord]) -> ExportResult:
        """
        Upload traces synchronously through the adapter.

        Never raises; adapter exceptions become a failed ExportResult.
        """
        try:
            result = self._call_adapter(self._adapter.upload_traces, traces) or ExportResult.success()
        except Exception as e:
            result = ExportResult.failed(e)

        self._metrics.record_upload(len(traces), result.ok)
        return result

    def _upload_bundle(self, traces: list[TraceRecord]) -> None:
        result = self.upload(traces)
        if not result.ok:
            self._log.error(
                "failed to upload %d traces to the Cloud Trace server. (err = %s)",
                len(traces),
                result.error,
            )
        else:
            logger.debug("Uploaded %d traces via %s", len(traces), self._adapter.name)

    def flush(self, timeout: float | None = None) -> bool:
        """Upload everything pending now and wait for in-flight uploads."""
        return self._bundler.flush(timeout=timeout)

    def close(self, timeout: float | None = None) -> None:
        """Drain pending spans and shut the adapter down. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self._bundler.close(timeout=timeout)
        try:
            self._call_adapter(self._adapter.shutdown)
        except Exception as e:
            logger.error("Error shutting down %s adapter: %s", self._adapter.name, e)

        self._close_loops()
        logger.debug("Recorder closed. %s", self._metrics.snapshot())

    def _call_adapter(self, method: Callable[..., Any], *args: Any) -> Any:
        """Call an adapter method that may be sync or async."""
        if inspect.iscoroutinefunction(method):
            return self._run_sync(method(*args))
        return method(*args)

    def _run_sync(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """
        Run an adapter coroutine to completion from synchronous code.

        Each thread reuses its own event loop across uploads. If the calling
        thread is already running a loop (record_span called from async code)
        the coroutine runs on a helper thread instead.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return self._thread_loop().run_until_complete(coro)

        outcome: dict[str, Any] = {}

        def runner() -> None:
            try:
                outcome["result"] = asyncio.run(coro)
            except BaseException as e:
                outcome["error"] = e

        thread = threading.Thread(target=runner, name="gcloudtrace-sync-upload", daemon=True)
        thread.start()
        thread.join()
        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("result")

    def _thread_loop(self) -> asyncio.AbstractEventLoop:
        loop: asyncio.AbstractEventLoop | None = getattr(self._loops, "loop", None)
        if loop is None or loop.is_closed():
            loop = asyncio.new_event_loop()
            self._loops.loop = loop
            with self._loops_lock:
                self._all_loops.append(loop)
        return loop

    def _close_loops(self) -> None:
        with self._loops_lock:
            loops = self._all_loops
            self._all_loops = []

        for loop in loops:
            # Still busy with an upload that outlived the close timeout
            if loop.is_running() or loop.is_closed():
                continue
            try:
                loop.run_until_complete(loop.shutdown_default_executor())
            except RuntimeError as e:
                logger.debug("Could not shut down event loop executor: %s", e)
            finally:
                loop.close()


def _register_exit_drain(recorder: Recorder) -> None:
    """
    Close the recorder when the interpreter exits.

    Thread-shutdown hooks run before concurrent.futures stops accepting work,
    so the final uploads can still use the handler pool, aiohttp's resolver
    and asyncio.to_thread. Plain atexit callbacks run after that point.
    """
    ref = weakref.ref(recorder)

    def drain() -> None:
        live = ref()
        if live is not None:
            live.close()

    threading._register_atexit(drain)
