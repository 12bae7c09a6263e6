"""GitHub authentication.

Two credential sources, both yielding a bearer token through an async ``get_token``:
a static token supplied by the host, or a GitHub App installation token obtained by
signing an App JWT and exchanging it. Secrets must never be exposed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

import httpx
import jwt

from .config import AppCredentials, GatewayConfig
from .errors import ErrorKind, GitHubError, HttpFailure, TransportFailure, classify

TokenProvider = Callable[[], Awaitable[str]]


class StaticTokenAuth:
    """A host-supplied token (personal access token or similar)."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def get_token(self) -> str:
        return self._token


@dataclass(frozen=True, slots=True)
class InstallationToken:
    """Cached installation access token + expiry."""

    token: str
    expires_at: datetime


class GitHubAppAuth:
    """Manages GitHub App JWT creation and installation token caching."""

    def __init__(
        self,
        *,
        credentials: AppCredentials,
        api_base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create an auth helper for a single app installation."""
        self._credentials = credentials
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport
        self._lock = asyncio.Lock()
        self._cached: InstallationToken | None = None

    def _build_app_jwt(self) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            # Backdated to tolerate clock drift.
            "iat": int((now - timedelta(seconds=60)).timestamp()),
            "exp": int((now + timedelta(minutes=9)).timestamp()),
            "iss": str(self._credentials.app_id),
        }
        try:
            private_key_pem = self._credentials.private_key_path.read_text(encoding="utf-8")
            return jwt.encode(payload, private_key_pem, algorithm="RS256")
        except (OSError, ValueError, jwt.PyJWTError) as exc:
            # The key path and contents are never echoed.
            raise GitHubError(
                kind=ErrorKind.AUTHENTICATION,
                message="GitHub App private key could not be used to sign a JWT",
                context={"exception": type(exc).__name__},
            ) from exc

    async def get_token(self) -> str:
        """Get a valid installation access token (refreshing if needed)."""
        async with self._lock:
            if self._cached is not None:
                remaining = (self._cached.expires_at - datetime.now(timezone.utc)).total_seconds()
                if remaining > 30:
                    return self._cached.token

            headers = {
                "Authorization": f"Bearer {self._build_app_jwt()}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
            url = f"{self._api_base_url}/app/installations/{self._credentials.installation_id}/access_tokens"
            try:
                async with httpx.AsyncClient(follow_redirects=False, timeout=30.0, transport=self._transport) as client:
                    resp = await client.post(url, headers=headers, json={})
            except httpx.HTTPError as exc:
                raise classify(TransportFailure(exc, what="GitHub App token exchange")) from exc

            try:
                data = resp.json()
            except ValueError:
                data = None

            if resp.status_code >= 400:
                err = classify(HttpFailure(status_code=resp.status_code, body=data, headers=dict(resp.headers)))
                if err.kind in (ErrorKind.NOT_FOUND, ErrorKind.PERMISSION):
                    # Uninstalled or revoked installations surface as 404/403 here.
                    raise GitHubError(
                        kind=ErrorKind.AUTHENTICATION,
                        message="GitHub App installation token could not be obtained",
                        context={"status": resp.status_code},
                        status_code=resp.status_code,
                    )
                raise err

            token = data.get("token") if isinstance(data, dict) else None
            expires_at_raw = data.get("expires_at") if isinstance(data, dict) else None
            if not isinstance(token, str) or not isinstance(expires_at_raw, str):
                raise GitHubError(kind=ErrorKind.AUTHENTICATION, message="GitHub token response missing required fields")

            # RFC3339 timestamp like 2025-01-01T00:00:00Z
            try:
                expires_at = datetime.fromisoformat(expires_at_raw.replace("Z", "+00:00")).astimezone(timezone.utc)
            except ValueError as exc:
                raise GitHubError(
                    kind=ErrorKind.AUTHENTICATION,
                    message="GitHub token response has an invalid expires_at",
                    context={"expires_at": expires_at_raw},
                ) from exc
            self._cached = InstallationToken(token=token, expires_at=expires_at)
            return token


def build_token_provider(config: GatewayConfig) -> TokenProvider:
    """Pick the credential source; a static token wins over App credentials."""
    if config.token:
        return StaticTokenAuth(config.token).get_token
    if config.app is not None:
        return GitHubAppAuth(credentials=config.app, api_base_url=config.api_base_url).get_token
    raise GitHubError(kind=ErrorKind.AUTHENTICATION, message="No GitHub credential configured")
