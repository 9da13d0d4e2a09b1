"""Exception hierarchy for the Cloud Trace recorder."""

from __future__ import annotations


class GCloudTraceError(Exception):
    """Base class for all recorder errors."""


class ConfigurationError(GCloudTraceError, ValueError):
    """Raised when the recorder is constructed with invalid settings."""


class InvalidProjectIdError(ConfigurationError):
    """Raised when the project identifier is missing or empty."""

    def __init__(self, message: str = "invalid project id") -> None:
        super().__init__(message)


class InvalidCredentialsError(ConfigurationError):
    """Raised when service account credentials are incomplete or unreadable."""


class InvalidBundlerConfigError(ConfigurationError):
    """Raised when bundler thresholds and limits are inconsistent."""


class BundlerError(GCloudTraceError):
    """Base class for errors returned by Bundler.add."""


class BundleOverflowError(BundlerError):
    """Adding the item would exceed the buffered weight limit."""

    def __init__(self, weight: int, buffered: int, limit: int) -> None:
        super().__init__(
            f"bundler reached buffered weight limit ({buffered} + {weight} > {limit})"
        )
        self.weight = weight
        self.buffered = buffered
        self.limit = limit


class OversizedItemError(BundlerError):
    """A single item is heavier than the bundle weight limit."""

    def __init__(self, weight: int, limit: int) -> None:
        super().__init__(f"item weight {weight} exceeds bundle weight limit {limit}")
        self.weight = weight
        self.limit = limit


class BundlerClosedError(BundlerError):
    """The bundler no longer accepts items."""

    def __init__(self) -> None:
        super().__init__("bundler is closed")


class UploadError(GCloudTraceError):
    """An upload to the Cloud Trace API was rejected or could not be sent."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
