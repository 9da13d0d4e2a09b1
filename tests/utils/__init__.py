"""Test utilities for the Cloud Trace recorder."""

from .test_helpers import BASE_TIME_NS, create_test_record, create_test_span, wait_for

__all__ = [
    "BASE_TIME_NS",
    "create_test_record",
    "create_test_span",
    "wait_for",
]
