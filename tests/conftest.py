"""Pytest configuration and fixtures for the Cloud Trace recorder tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from gcloudtrace.core.recorder import Recorder
    from gcloudtrace.core.tracing.adapters import InMemoryTraceAdapter


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Remove the stderr handler a recorder installs so it never outlives the test's capture streams."""
    from gcloudtrace.core import logger as logger_module

    root = logging.getLogger(logger_module.ROOT_LOGGER_NAME)
    level = root.level
    yield
    if logger_module._handler is not None:
        root.removeHandler(logger_module._handler)
        logger_module._handler = None
    root.setLevel(level)
    logger_module._current_level = "info"


@pytest.fixture
def in_memory_adapter() -> InMemoryTraceAdapter:
    """Create a fresh InMemoryTraceAdapter for testing."""
    from gcloudtrace.core.tracing.adapters import InMemoryTraceAdapter

    return InMemoryTraceAdapter()


@pytest.fixture
def recorder(in_memory_adapter: InMemoryTraceAdapter) -> Generator[Recorder, None, None]:
    """Recorder uploading into the in-memory adapter with a short delay threshold."""
    from gcloudtrace.core.bundler import BundlerConfig
    from gcloudtrace.core.config import RecorderConfig
    from gcloudtrace.core.recorder import Recorder

    config = RecorderConfig(
        project_id="test-project",
        bundler=BundlerConfig(delay_threshold_seconds=0.1),
    )
    rec = Recorder(config, adapter=in_memory_adapter, register_atexit=False)
    yield rec
    rec.close()
