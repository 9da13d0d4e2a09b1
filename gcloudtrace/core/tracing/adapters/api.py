"""Cloud Trace API adapter that patches traces over HTTP.

Requests go through aiohttp; the bearer token comes from google-auth
service account credentials built from the recorder's JWT credentials.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from typing_extensions import override

import aiohttp
import google.auth.exceptions
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import DEFAULT_API_BASE_URL, DEFAULT_TIMEOUT_SECONDS
from ...errors import UploadError
from .base import ExportResult, TraceUploadAdapter

if TYPE_CHECKING:
    from ...config import JWTCredentials
    from ...types import TraceRecord

logger = logging.getLogger(__name__)

CLOUD_TRACE_SCOPES = (
    "https://www.googleapis.com/auth/trace.append",
    "https://www.googleapis.com/auth/trace.readonly",
    "https://www.googleapis.com/auth/cloud-platform",
)
PATCH_TRACES_PATH = "/v1/projects/{project_id}/traces"


@dataclass
class CloudTraceApiAdapterConfig:
    """Configuration for the Cloud Trace API adapter."""

    project_id: str
    credentials: JWTCredentials
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


class CloudTraceApiAdapter(TraceUploadAdapter):
    """
    Uploads traces with the cloudtrace v1 ``projects.patchTraces`` call.

    Every upload is a single PATCH request. Failures are returned as a failed
    ExportResult and are never retried here.
    """

    def __init__(self, config: CloudTraceApiAdapterConfig) -> None:
        """
        Initialize the API adapter.

        Args:
            config: Project, credentials and endpoint to upload to
        """
        self._config = config
        self._url = f"{config.api_base_url.rstrip('/')}{PATCH_TRACES_PATH.format(project_id=config.project_id)}"
        self._google_credentials: service_account.Credentials | None = None
        # Uploads run on handler threads and on the overflow path concurrently
        self._token_lock = threading.Lock()

        logger.debug("CloudTraceApiAdapter initialized for project %s", config.project_id)

    def __repr__(self) -> str:
        return f"CloudTraceApiAdapter(url={self._url}, email={self._config.credentials.email})"

    @property
    @override
    def name(self) -> str:
        return "cloudtrace-api"

    @property
    def url(self) -> str:
        return self._url

    def _get_access_token(self) -> str:
        """Return a valid access token, refreshing it through the token endpoint when needed."""
        with self._token_lock:
            if self._google_credentials is None:
                self._google_credentials = service_account.Credentials.from_service_account_info(
                    self._config.credentials.to_service_account_info(),
                    scopes=list(CLOUD_TRACE_SCOPES),
                )
            if not self._google_credentials.valid:
                request = google.auth.transport.requests.Request()
                self._google_credentials.refresh(request)
            return self._google_credentials.token

    def build_request_body(self, traces: list[TraceRecord]) -> dict[str, Any]:
        return {"traces": [trace.to_json() for trace in traces]}

    @override
    async def upload_traces(self, traces: list[TraceRecord]) -> ExportResult:
        """Patch the traces into the project."""
        try:
            await self._patch_traces(traces)
        except (aiohttp.ClientError, asyncio.TimeoutError, UploadError) as e:
            return ExportResult.failed(e)
        except google.auth.exceptions.GoogleAuthError as e:
            return ExportResult.failed(UploadError(f"could not obtain access token: {e}"))

        logger.debug("Patched %d traces into project %s", len(traces), self._config.project_id)
        return ExportResult.success()

    async def _patch_traces(self, traces: list[TraceRecord]) -> None:
        token = await asyncio.to_thread(self._get_access_token)
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        timeout = aiohttp.ClientTimeout(total=self._config.timeout_seconds)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.patch(self._url, json=self.build_request_body(traces), headers=headers) as response:
                if response.status >= 300:
                    error_text = await response.text()
                    raise UploadError(
                        f"PatchTraces failed (status {response.status}): {error_text}",
                        status=response.status,
                    )


def create_api_adapter(
    project_id: str,
    credentials: JWTCredentials,
    api_base_url: str = DEFAULT_API_BASE_URL,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> CloudTraceApiAdapter:
    """
    Create a Cloud Trace API adapter.

    Args:
        project_id: Google Cloud project to upload traces into
        credentials: Service account key used to sign token requests
        api_base_url: Base URL of the Cloud Trace API
        timeout_seconds: Total timeout for one PatchTraces request

    Returns:
        Configured CloudTraceApiAdapter instance
    """
    config = CloudTraceApiAdapterConfig(
        project_id=project_id,
        credentials=credentials,
        api_base_url=api_base_url,
        timeout_seconds=timeout_seconds,
    )
    return CloudTraceApiAdapter(config)
