"""Tests for recorder.py - span recording, batching and overflow fallback."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import sys
import textwrap
import threading
from pathlib import Path

import pytest

from gcloudtrace.core.bundler import BundlerConfig
from gcloudtrace.core.config import JWTCredentials, RecorderConfig
from gcloudtrace.core.errors import InvalidCredentialsError, InvalidProjectIdError
from gcloudtrace.core.logger import get_log_level
from gcloudtrace.core.recorder import Recorder
from gcloudtrace.core.tracing.adapters import CloudTraceApiAdapter, ExportResult, InMemoryTraceAdapter
from tests.utils import create_test_record, create_test_span, wait_for


def _make_recorder(adapter, log=None, **bundler_overrides) -> Recorder:
    bundler_values = {"delay_threshold_seconds": 60.0}
    bundler_values.update(bundler_overrides)
    config = RecorderConfig(
        project_id="test-project",
        logger=log,
        bundler=BundlerConfig(**bundler_values),
    )
    return Recorder(config, adapter=adapter, register_atexit=False)


class TestRecorderConstruction:
    """Tests for Recorder construction and configuration."""

    def test_empty_project_id_fails_fast(self, in_memory_adapter):
        with pytest.raises(InvalidProjectIdError):
            Recorder(RecorderConfig(project_id=""), adapter=in_memory_adapter, register_atexit=False)

    def test_default_adapter_requires_credentials(self):
        with pytest.raises(InvalidCredentialsError):
            Recorder(RecorderConfig(project_id="p"), register_atexit=False)

    def test_builds_api_adapter_from_credentials(self):
        credentials = JWTCredentials(email="svc@p.iam.gserviceaccount.com", private_key="key", private_key_id="kid")
        recorder = Recorder(RecorderConfig(project_id="p", credentials=credentials), register_atexit=False)

        assert isinstance(recorder.adapter, CloudTraceApiAdapter)
        assert recorder.adapter.url == "https://cloudtrace.googleapis.com/v1/projects/p/traces"
        recorder.close()

    def test_exit_hook_closes_recorder(self, mocker, in_memory_adapter):
        register = mocker.patch("gcloudtrace.core.recorder.threading._register_atexit")

        recorder = Recorder(
            RecorderConfig(project_id="p", bundler=BundlerConfig(delay_threshold_seconds=60.0)),
            adapter=in_memory_adapter,
        )
        register.assert_called_once()
        recorder.record_span(create_test_span())

        drain = register.call_args.args[0]
        drain()
        drain()

        assert len(in_memory_adapter.get_all_traces()) == 1
        assert recorder.metrics.traces_uploaded == 1

    def test_pending_spans_are_delivered_at_interpreter_exit(self, tmp_path):
        """A recorder that is never closed still uploads its pending bundle when the process exits."""
        script = tmp_path / "exit_without_close.py"
        script.write_text(
            textwrap.dedent(
                """
                import asyncio

                from gcloudtrace.core.bundler import BundlerConfig
                from gcloudtrace.core.config import RecorderConfig
                from gcloudtrace.core.recorder import Recorder
                from gcloudtrace.core.tracing.adapters.base import ExportResult
                from gcloudtrace.core.types import RawSpan, SpanContext


                class PrintingAdapter:
                    name = "printing"

                    async def upload_traces(self, traces):
                        # Goes through the default executor like a token refresh would
                        for trace in traces:
                            await asyncio.to_thread(print, "delivered", trace.spans[0].name, flush=True)
                        return ExportResult.success()

                    async def shutdown(self):
                        pass


                recorder = Recorder(
                    RecorderConfig(project_id="p", bundler=BundlerConfig(delay_threshold_seconds=60.0)),
                    adapter=PrintingAdapter(),
                )
                recorder.record_span(
                    RawSpan(
                        context=SpanContext(trace_id=1, span_id=2),
                        operation="exit-span",
                        start_time_ns=0,
                        duration_ns=1,
                    )
                )
                """
            )
        )
        root = Path(__file__).resolve().parents[2]
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(root), env.get("PYTHONPATH")]))

        completed = subprocess.run(
            [sys.executable, str(script)],
            cwd=root,
            env=env,
            capture_output=True,
            text=True,
            timeout=30,
        )

        assert completed.returncode == 0, completed.stderr
        assert "delivered exit-span" in completed.stdout
        assert "cannot schedule new futures" not in completed.stderr

    def test_default_logger_writes_to_stderr(self, capsys):
        adapter = InMemoryTraceAdapter()
        adapter.fail_with = RuntimeError("backend unavailable")
        recorder = _make_recorder(adapter, bundle_count_threshold=1)

        recorder.record_span(create_test_span())
        recorder.flush(timeout=2.0)
        recorder.close()

        err = capsys.readouterr().err
        assert "[GCloudTrace]" in err
        assert "failed to upload 1 traces to the Cloud Trace server" in err
        assert "backend unavailable" in err

    def test_injected_logger_leaves_package_handler_alone(self, in_memory_adapter, mocker):
        configure = mocker.patch("gcloudtrace.core.recorder.configure_logger")

        _make_recorder(in_memory_adapter, log=logging.getLogger("app")).close()

        configure.assert_not_called()

    def test_log_level_is_applied(self, in_memory_adapter):
        config = RecorderConfig(project_id="p", log_level="debug")
        Recorder(config, adapter=in_memory_adapter, register_atexit=False).close()

        assert get_log_level() == "debug"
        assert logging.getLogger("gcloudtrace").level == logging.DEBUG


class TestRecordSpan:
    """Tests for Recorder.record_span."""

    def test_unsampled_span_is_ignored(self, in_memory_adapter):
        recorder = _make_recorder(in_memory_adapter)

        recorder.record_span(create_test_span(sampled=False))

        assert recorder.bundler.pending_count == 0
        recorder.close()
        assert in_memory_adapter.get_batches() == []
        assert recorder.metrics.spans_unsampled == 1

    def test_sampled_span_enqueues_one_record_of_weight_two(self, in_memory_adapter):
        recorder = _make_recorder(in_memory_adapter)

        recorder.record_span(create_test_span(operation="GET /"))

        assert recorder.bundler.pending_count == 1
        assert recorder.bundler.pending_weight == 2
        recorder.close()

        traces = in_memory_adapter.get_all_traces()
        assert len(traces) == 1
        assert traces[0].project_id == "test-project"
        assert traces[0].spans[0].name == "GET /"

    def test_count_threshold_uploads_one_bundle(self, in_memory_adapter):
        recorder = _make_recorder(in_memory_adapter, bundle_count_threshold=100)

        for i in range(100):
            recorder.record_span(create_test_span(span_id=i + 1))

        assert wait_for(lambda: len(in_memory_adapter.get_batches()) == 1)
        assert len(in_memory_adapter.get_batches()[0]) == 100
        assert recorder.bundler.pending_count == 0
        recorder.close()

    def test_delay_threshold_uploads_in_background(self, in_memory_adapter):
        recorder = _make_recorder(in_memory_adapter, delay_threshold_seconds=0.1)

        recorder.record_span(create_test_span())

        assert wait_for(lambda: len(in_memory_adapter.get_all_traces()) == 1)
        recorder.close()

    def test_overflow_uploads_single_record_synchronously(self, in_memory_adapter, caplog):
        recorder = _make_recorder(
            in_memory_adapter,
            bundle_count_threshold=1000,
            bundle_weight_threshold=10000,
            bundle_weight_limit=0,
            buffered_weight_limit=10000,
        )
        recorder.bundler.add(create_test_record(name="filler"), 9999)

        with caplog.at_level(logging.ERROR, logger="gcloudtrace"):
            recorder.record_span(create_test_span(operation="overflowing"))

        batches = in_memory_adapter.get_batches()
        assert len(batches) == 1
        assert len(batches[0]) == 1
        assert batches[0][0].spans[0].name == "overflowing"
        assert "bundle too full" in caplog.text

        metrics = recorder.metrics
        assert metrics.overflows == 1
        assert metrics.fallback_uploads == 1
        recorder.close()

    def test_overflow_fallback_failure_is_logged_not_raised(self, in_memory_adapter, caplog):
        recorder = _make_recorder(
            in_memory_adapter,
            bundle_count_threshold=1000,
            bundle_weight_threshold=10000,
            bundle_weight_limit=0,
            buffered_weight_limit=10000,
        )
        recorder.bundler.add(create_test_record(name="filler"), 9999)
        in_memory_adapter.fail_with = RuntimeError("permission denied")

        with caplog.at_level(logging.ERROR, logger="gcloudtrace"):
            recorder.record_span(create_test_span())

        assert "error uploading trace: permission denied" in caplog.text
        assert recorder.metrics.traces_failed == 1
        recorder.close()

    def test_upload_failure_goes_to_logger_collaborator(self, in_memory_adapter, mocker):
        collaborator = mocker.MagicMock(spec=logging.Logger)
        recorder = _make_recorder(in_memory_adapter, log=collaborator, bundle_count_threshold=2)
        in_memory_adapter.fail_with = RuntimeError("backend unavailable")

        recorder.record_span(create_test_span(span_id=1))
        recorder.record_span(create_test_span(span_id=2))
        recorder.flush(timeout=2.0)

        collaborator.error.assert_called_once()
        args = collaborator.error.call_args.args
        assert "failed to upload %d traces" in args[0]
        assert args[1] == 2
        assert recorder.metrics.bundles_failed == 1

        # A failed bundle is dropped and later spans still go through
        in_memory_adapter.fail_with = None
        recorder.record_span(create_test_span(span_id=3))
        recorder.close()
        assert [t.spans[0].span_id for t in in_memory_adapter.get_all_traces()] == [3]

    def test_record_after_close_is_dropped(self, in_memory_adapter):
        recorder = _make_recorder(in_memory_adapter)
        recorder.close()

        recorder.record_span(create_test_span())

        assert recorder.metrics.spans_dropped == 1
        assert in_memory_adapter.get_batches() == []

    def test_concurrent_record_span(self, in_memory_adapter):
        recorder = _make_recorder(in_memory_adapter, bundle_count_threshold=10)

        def worker(base):
            for i in range(25):
                recorder.record_span(create_test_span(span_id=base + i))

        threads = [threading.Thread(target=worker, args=(n * 100 + 1,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        recorder.close()

        span_ids = [t.spans[0].span_id for t in in_memory_adapter.get_all_traces()]
        assert len(span_ids) == 100
        assert len(set(span_ids)) == 100


class TestRecorderUpload:
    """Tests for Recorder.upload with different adapter shapes."""

    def test_sync_adapter(self):
        uploaded = []

        class SyncAdapter:
            name = "sync"

            def upload_traces(self, traces):
                uploaded.extend(traces)
                return ExportResult.success()

            def shutdown(self):
                pass

        recorder = _make_recorder(SyncAdapter())
        result = recorder.upload([create_test_record()])

        assert result.ok
        assert len(uploaded) == 1
        recorder.close()

    def test_adapter_exception_becomes_failed_result(self):
        class ExplodingAdapter:
            name = "exploding"

            async def upload_traces(self, traces):
                raise ConnectionError("network down")

            async def shutdown(self):
                pass

        recorder = _make_recorder(ExplodingAdapter())
        result = recorder.upload([create_test_record()])

        assert not result.ok
        assert isinstance(result.error, ConnectionError)
        recorder.close()

    def test_reuses_event_loop_across_uploads(self):
        loops_used = []

        class TrackingAdapter:
            name = "tracking"

            async def upload_traces(self, traces):
                loops_used.append(asyncio.get_running_loop())
                return ExportResult.success()

            async def shutdown(self):
                pass

        recorder = _make_recorder(TrackingAdapter(), bundle_count_threshold=1)

        recorder.record_span(create_test_span(span_id=1))
        recorder.record_span(create_test_span(span_id=2))
        recorder.flush(timeout=2.0)
        recorder.upload([create_test_record()])
        recorder.upload([create_test_record()])

        assert len(loops_used) == 4
        # Both bundles ran on the single handler thread; both direct uploads on this thread
        assert loops_used[0] is loops_used[1]
        assert loops_used[2] is loops_used[3]

        recorder.close()
        assert all(loop.is_closed() for loop in loops_used)

    def test_upload_from_running_event_loop(self, in_memory_adapter):
        """The overflow path can run inside async application code."""
        recorder = _make_recorder(in_memory_adapter)

        async def inside_loop():
            return recorder.upload([create_test_record()])

        result = asyncio.run(inside_loop())

        assert result.ok
        assert len(in_memory_adapter.get_all_traces()) == 1
        recorder.close()


class TestRecorderLifecycle:
    """Tests for flush and close."""

    def test_close_drains_pending_spans(self, in_memory_adapter):
        recorder = _make_recorder(in_memory_adapter)
        for i in range(3):
            recorder.record_span(create_test_span(span_id=i + 1))

        recorder.close()

        assert len(in_memory_adapter.get_all_traces()) == 3
        assert recorder.metrics.traces_uploaded == 3

    def test_close_is_idempotent(self):
        class CountingAdapter(InMemoryTraceAdapter):
            shutdown_calls = 0

            async def shutdown(self):
                CountingAdapter.shutdown_calls += 1

        recorder = _make_recorder(CountingAdapter())

        recorder.close()
        recorder.close()

        assert CountingAdapter.shutdown_calls == 1

    def test_context_manager_closes(self, in_memory_adapter):
        with _make_recorder(in_memory_adapter) as recorder:
            recorder.record_span(create_test_span())

        assert len(in_memory_adapter.get_all_traces()) == 1
