"""Core module for the Cloud Trace recorder."""

from .types import (
    LogRecord,
    RawSpan,
    SpanContext,
    TraceRecord,
    TraceSpanKind,
    TraceSpanRecord,
)
from .errors import (
    BundleOverflowError,
    BundlerClosedError,
    BundlerError,
    ConfigurationError,
    GCloudTraceError,
    InvalidBundlerConfigError,
    InvalidCredentialsError,
    InvalidProjectIdError,
    OversizedItemError,
    UploadError,
)
from .config import JWTCredentials, RecorderConfig, load_recorder_config
from .bundler import Bundler, BundlerConfig
from .labels import LABEL_MAP, add_logs, build_labels, convert_tags, transpose_labels
from .translator import (
    TRACE_RECORD_WEIGHT,
    convert_span_kind,
    format_trace_id,
    translate_span,
)
from .timeutil import format_rfc3339_nano
from .metrics import MetricsCollector, UploadMetrics
from .recorder import Recorder

__all__ = [
    # Recorder
    "Recorder",
    # Config
    "RecorderConfig",
    "JWTCredentials",
    "load_recorder_config",
    # Types
    "RawSpan",
    "SpanContext",
    "LogRecord",
    "TraceRecord",
    "TraceSpanRecord",
    "TraceSpanKind",
    # Errors
    "GCloudTraceError",
    "ConfigurationError",
    "InvalidProjectIdError",
    "InvalidCredentialsError",
    "InvalidBundlerConfigError",
    "BundlerError",
    "BundleOverflowError",
    "OversizedItemError",
    "BundlerClosedError",
    "UploadError",
    # Batching
    "Bundler",
    "BundlerConfig",
    # Conversion
    "LABEL_MAP",
    "convert_tags",
    "transpose_labels",
    "add_logs",
    "build_labels",
    "TRACE_RECORD_WEIGHT",
    "convert_span_kind",
    "format_rfc3339_nano",
    "format_trace_id",
    "translate_span",
    # Metrics
    "MetricsCollector",
    "UploadMetrics",
]
