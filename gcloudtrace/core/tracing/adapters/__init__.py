"""Trace upload adapters for the Cloud Trace recorder."""

from .base import ExportResult, ExportResultCode, TraceUploadAdapter
from .memory import InMemoryTraceAdapter
from .api import CloudTraceApiAdapter, CloudTraceApiAdapterConfig, create_api_adapter

__all__ = [
    # Base
    "TraceUploadAdapter",
    "ExportResult",
    "ExportResultCode",
    # Adapters
    "InMemoryTraceAdapter",
    "CloudTraceApiAdapter",
    "CloudTraceApiAdapterConfig",
    # Helpers
    "create_api_adapter",
]
