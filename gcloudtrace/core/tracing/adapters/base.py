"""Base interface for trace upload adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...types import TraceRecord


class ExportResultCode(Enum):
    SUCCESS = 0
    FAILED = 1


@dataclass
class ExportResult:
    """Outcome of a single upload call."""

    code: ExportResultCode
    error: Exception | None = None

    @classmethod
    def success(cls) -> ExportResult:
        return cls(code=ExportResultCode.SUCCESS)

    @classmethod
    def failed(cls, error: Exception | str) -> ExportResult:
        if isinstance(error, str):
            error = Exception(error)
        return cls(code=ExportResultCode.FAILED, error=error)

    @property
    def ok(self) -> bool:
        return self.code is ExportResultCode.SUCCESS


class TraceUploadAdapter(ABC):
    """
    Uploads a batch of trace records to a destination.

    Each call is all-or-nothing: the whole batch succeeds or the call returns
    a single failure. Adapters may be invoked from the bundler's handler
    threads and from the caller's thread on the overflow path.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in log messages."""

    @abstractmethod
    async def upload_traces(self, traces: list[TraceRecord]) -> ExportResult:
        """Upload the traces."""

    async def shutdown(self) -> None:
        """Release any resources held by the adapter."""
        return None
