"""Google Cloud Trace recorder for finished tracing spans."""

from .core import (
    Bundler,
    BundlerConfig,
    BundleOverflowError,
    ConfigurationError,
    GCloudTraceError,
    InvalidProjectIdError,
    JWTCredentials,
    LogRecord,
    RawSpan,
    Recorder,
    RecorderConfig,
    SpanContext,
    TraceRecord,
    TraceSpanKind,
    TraceSpanRecord,
    UploadMetrics,
    load_recorder_config,
)
from .core.logger import LogLevel, configure_logger, get_log_level, set_log_level
from .core.tracing import CloudTraceSpanExporter
from .core.tracing.adapters import (
    CloudTraceApiAdapter,
    CloudTraceApiAdapterConfig,
    ExportResult,
    ExportResultCode,
    InMemoryTraceAdapter,
    TraceUploadAdapter,
    create_api_adapter,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "Recorder",
    "RawSpan",
    "SpanContext",
    "LogRecord",
    "TraceRecord",
    "TraceSpanRecord",
    "TraceSpanKind",
    "Bundler",
    "BundlerConfig",
    "UploadMetrics",
    # Config
    "RecorderConfig",
    "JWTCredentials",
    "load_recorder_config",
    # Errors
    "GCloudTraceError",
    "ConfigurationError",
    "InvalidProjectIdError",
    "BundleOverflowError",
    # Logger
    "LogLevel",
    "configure_logger",
    "set_log_level",
    "get_log_level",
    # OpenTelemetry
    "CloudTraceSpanExporter",
    # Adapters
    "TraceUploadAdapter",
    "ExportResult",
    "ExportResultCode",
    "InMemoryTraceAdapter",
    "CloudTraceApiAdapter",
    "CloudTraceApiAdapterConfig",
    "create_api_adapter",
]
