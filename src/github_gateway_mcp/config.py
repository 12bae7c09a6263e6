"""Configuration loading for github-gateway-mcp.

Configuration is supplied by the host environment (e.g., MCP client config), not by the agent.
The credential is treated as a secret and must never be emitted to agents, logs, or audit events.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_TOTAL_TIMEOUT_S = 60.0


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Network timeouts. There are no retries; a timeout ends the operation."""

    total_timeout_s: float = DEFAULT_TOTAL_TIMEOUT_S
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 30.0


@dataclass(frozen=True, slots=True)
class AppCredentials:
    """GitHub App installation binding."""

    app_id: int
    installation_id: int
    private_key_path: Path


@dataclass(frozen=True, slots=True)
class GatewayConfig:
    """Everything the gateway needs from its host."""

    api_base_url: str
    token: str | None
    app: AppCredentials | None

    audit_log_path: Path | None
    audit_max_bytes: int
    audit_max_backups: int
    log_level: int
    limits: LimitsConfig


def _parse_base_url(value: str | None) -> str:
    url = (value or DEFAULT_API_BASE_URL).strip().rstrip("/")
    if not url.startswith("https://"):
        raise ConfigError("GITHUB_API_URL must be an https:// URL")
    return url


def _parse_timeout(value: str | None) -> float:
    if not value:
        return DEFAULT_TOTAL_TIMEOUT_S
    try:
        timeout = float(value)
    except ValueError as exc:
        raise ConfigError("GITHUB_GATEWAY_TIMEOUT_S must be a number") from exc
    if timeout <= 0:
        raise ConfigError("GITHUB_GATEWAY_TIMEOUT_S must be positive")
    return timeout


def _parse_log_level(value: str | None) -> int:
    if not value:
        return logging.INFO
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ConfigError("GITHUB_GATEWAY_LOG_LEVEL is not a valid logging level")
    return level


def _load_app_credentials() -> AppCredentials | None:
    app_id_raw = os.getenv("GITHUB_APP_ID")
    installation_id_raw = os.getenv("GITHUB_APP_INSTALLATION_ID")
    private_key_path_raw = os.getenv("GITHUB_APP_PRIVATE_KEY_PATH")

    if not (app_id_raw or installation_id_raw or private_key_path_raw):
        return None
    if not app_id_raw or not installation_id_raw or not private_key_path_raw:
        raise ConfigError(
            "GitHub App auth needs GITHUB_APP_ID, GITHUB_APP_INSTALLATION_ID and GITHUB_APP_PRIVATE_KEY_PATH"
        )

    try:
        app_id = int(app_id_raw)
        installation_id = int(installation_id_raw)
    except ValueError as exc:
        raise ConfigError("GITHUB_APP_ID and GITHUB_APP_INSTALLATION_ID must be integers") from exc

    key_path = Path(private_key_path_raw)
    if not key_path.is_absolute():
        raise ConfigError("GITHUB_APP_PRIVATE_KEY_PATH must be an absolute path")
    # Never echo the path.
    if not key_path.is_file():
        raise ConfigError("GitHub App private key file is missing or not a file")

    return AppCredentials(app_id=app_id, installation_id=installation_id, private_key_path=key_path)


def load_config_from_env() -> GatewayConfig:
    """Load and validate configuration from environment variables.

    Raises:
        ConfigError: If configuration is missing/invalid.
    """
    token = os.getenv("GITHUB_PERSONAL_ACCESS_TOKEN") or os.getenv("GITHUB_TOKEN") or None
    app = _load_app_credentials()
    if token is None and app is None:
        raise ConfigError("Missing GitHub credential (GITHUB_PERSONAL_ACCESS_TOKEN or GITHUB_APP_* settings)")

    audit_path_raw = os.getenv("GITHUB_GATEWAY_AUDIT_LOG_PATH")
    audit_path: Path | None = None
    if audit_path_raw:
        audit_path = Path(audit_path_raw)
        if not audit_path.is_absolute():
            raise ConfigError("GITHUB_GATEWAY_AUDIT_LOG_PATH must be an absolute path when set")

    return GatewayConfig(
        api_base_url=_parse_base_url(os.getenv("GITHUB_API_URL")),
        token=token,
        app=app,
        audit_log_path=audit_path,
        audit_max_bytes=5 * 1024 * 1024,
        audit_max_backups=2,
        log_level=_parse_log_level(os.getenv("GITHUB_GATEWAY_LOG_LEVEL")),
        limits=LimitsConfig(total_timeout_s=_parse_timeout(os.getenv("GITHUB_GATEWAY_TIMEOUT_S"))),
    )
