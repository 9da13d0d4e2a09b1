"""Recorder configuration and credential loading."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, get_args

from .bundler import BundlerConfig
from .errors import ConfigurationError, InvalidCredentialsError, InvalidProjectIdError
from .logger import LogLevel

logger = logging.getLogger(__name__)

PROJECT_ID_ENV_VARS = ("GCLOUDTRACE_PROJECT_ID", "GOOGLE_CLOUD_PROJECT")
CREDENTIALS_ENV_VAR = "GOOGLE_APPLICATION_CREDENTIALS"

DEFAULT_API_BASE_URL = "https://cloudtrace.googleapis.com"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class JWTCredentials:
    """Service account key, as found in a Google service account JSON file."""

    email: str
    private_key: str
    private_key_id: str
    token_uri: str = "https://oauth2.googleapis.com/token"

    def __repr__(self) -> str:
        return f"JWTCredentials(email={self.email!r}, private_key_id={self.private_key_id!r})"

    def validate(self) -> None:
        missing = [name for name in ("email", "private_key", "private_key_id") if not getattr(self, name)]
        if missing:
            raise InvalidCredentialsError(f"service account credentials missing: {', '.join(missing)}")

    @classmethod
    def from_service_account_info(cls, info: dict[str, Any]) -> JWTCredentials:
        """Build credentials from a parsed service account JSON document."""
        try:
            credentials = cls(
                email=info["client_email"],
                private_key=info["private_key"],
                private_key_id=info["private_key_id"],
                token_uri=info.get("token_uri") or cls.token_uri,
            )
        except KeyError as e:
            raise InvalidCredentialsError(f"service account info missing field {e.args[0]!r}") from e
        credentials.validate()
        return credentials

    @classmethod
    def from_service_account_file(cls, path: str | Path) -> JWTCredentials:
        """Load credentials from a service account JSON key file."""
        return cls.from_service_account_info(_read_service_account_file(path))

    def to_service_account_info(self) -> dict[str, str]:
        return {
            "type": "service_account",
            "client_email": self.email,
            "private_key": self.private_key,
            "private_key_id": self.private_key_id,
            "token_uri": self.token_uri,
        }


@dataclass
class RecorderConfig:
    """Settings for a Recorder. Call validate() before use."""

    project_id: str
    credentials: JWTCredentials | None = None
    # Receives upload failures and overflow notices. When unset, the package
    # logger gets a stderr handler at log_level
    logger: logging.Logger | None = None
    log_level: LogLevel = "info"
    bundler: BundlerConfig = field(default_factory=BundlerConfig)
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def validate(self) -> None:
        """
        Raise on settings the recorder cannot start with.

        Raises:
            InvalidProjectIdError: project_id is empty
            InvalidCredentialsError: credentials are present but incomplete
            ConfigurationError: log_level is not a known level
        """
        if not self.project_id or not self.project_id.strip():
            raise InvalidProjectIdError()
        if self.log_level not in get_args(LogLevel):
            raise ConfigurationError(f"unknown log level: {self.log_level!r}")
        if self.credentials is not None:
            self.credentials.validate()


def load_recorder_config(
    project_id: str | None = None,
    credentials_file: str | Path | None = None,
    credentials: JWTCredentials | None = None,
    bundler: BundlerConfig | None = None,
    log: logging.Logger | None = None,
    log_level: LogLevel = "info",
) -> RecorderConfig:
    """
    Assemble a validated RecorderConfig.

    Precedence (highest to lowest):
    1. Arguments to this function
    2. Environment variables (GCLOUDTRACE_PROJECT_ID, GOOGLE_CLOUD_PROJECT,
       GOOGLE_APPLICATION_CREDENTIALS)
    3. Built-in defaults

    When project_id is not given anywhere, the service account file's
    ``project_id`` field is used.
    """
    file_info: dict[str, Any] = {}

    if credentials is None:
        path = credentials_file or os.environ.get(CREDENTIALS_ENV_VAR)
        if path:
            file_info = _read_service_account_file(path)
            credentials = JWTCredentials.from_service_account_info(file_info)
            logger.debug("Loaded service account credentials for %s from %s", credentials.email, path)

    if not project_id:
        for name in PROJECT_ID_ENV_VARS:
            project_id = os.environ.get(name)
            if project_id:
                logger.debug("Using project id from %s env var", name)
                break

    if not project_id:
        project_id = file_info.get("project_id", "")

    config = RecorderConfig(
        project_id=project_id or "",
        credentials=credentials,
        logger=log,
        log_level=log_level,
        bundler=bundler or BundlerConfig(),
    )
    config.validate()
    return config


def _read_service_account_file(path: str | Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidCredentialsError(f"could not read service account file {path}: {e}") from e
