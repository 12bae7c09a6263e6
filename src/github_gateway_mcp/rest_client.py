"""GitHub REST client (resource mode).

Provides:
- path templates with URL-quoted segments
- query parameter assembly (undefined values dropped, sequences repeated or comma-joined)
- per-endpoint content negotiation
- finite timeouts, no retries, no redirects
- failure classification with status, body and headers preserved
"""

from __future__ import annotations

import logging
from typing import Any, Collection, Mapping
from urllib.parse import quote

import httpx

from .auth import TokenProvider
from .config import DEFAULT_API_BASE_URL, LimitsConfig
from .errors import ErrorKind, GitHubError, HttpFailure, TransportFailure, classify

logger = logging.getLogger(__name__)

DEFAULT_ACCEPT = "application/vnd.github+json"
# Classic projects are only served under the inertia preview media type.
INERTIA_PREVIEW_ACCEPT = "application/vnd.github.inertia-preview+json"
API_VERSION = "2022-11-28"


def expand_path(template: str, *, raw: Collection[str] = (), **values: object) -> str:
    """Fill a path template such as ``/repos/{owner}/{repo}``.

    Every value is URL-quoted as a single segment, except keys listed in ``raw``
    (file paths, refs) which keep their ``/`` separators.
    """
    quoted: dict[str, str] = {}
    for key, value in values.items():
        text = str(value)
        quoted[key] = quote(text, safe="/" if key in raw else "")
    return template.format(**quoted)


def _param_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query(params: Mapping[str, object] | None, *, comma_joined: Collection[str] = ()) -> list[tuple[str, str]]:
    """Turn a parameter mapping into ordered query pairs.

    ``None`` values are dropped. Sequences are repeated (``k=a&k=b``) unless the key
    is in ``comma_joined`` (``k=a,b``), matching what the target endpoint expects.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            items = [_param_text(v) for v in value if v is not None]
            if not items:
                continue
            if key in comma_joined:
                pairs.append((key, ",".join(items)))
            else:
                pairs.extend((key, item) for item in items)
            continue
        pairs.append((key, _param_text(value)))
    return pairs


class GitHubRestClient:
    """Minimal GitHub REST client."""

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        limits: LimitsConfig,
        api_base_url: str = DEFAULT_API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a GitHub REST client.

        Args:
            token_provider: Async callable that returns a bearer token.
            limits: Timeouts.
            api_base_url: https base host (api.github.com or a GHES API root).
            transport: Optional httpx transport for tests.
        """
        self._token_provider = token_provider
        self._limits = limits
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport

        if not self._api_base_url.startswith("https://"):
            raise GitHubError(kind=ErrorKind.UNKNOWN, message="Only https API hosts are allowed")

    def _headers(self, token: str, accept: str | None) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": accept or DEFAULT_ACCEPT,
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            timeout=self._limits.total_timeout_s,
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

    async def request_json(
        self,
        *,
        method: str,
        path: str,
        params: Mapping[str, object] | None = None,
        json_body: Any = None,
        accept: str | None = None,
        comma_joined: Collection[str] = (),
    ) -> object:
        """Perform one request and return the decoded JSON body.

        GitHub APIs may return an object, an array, or nothing (204); the latter is
        returned as None.

        Raises:
            GitHubError: classified failure; nothing is retried.
        """
        url = f"{self._api_base_url}{path}"
        token = await self._token_provider()
        query = build_query(params, comma_joined=comma_joined)

        logger.debug("REST %s %s", method, path)
        try:
            async with httpx.AsyncClient(
                follow_redirects=False,
                timeout=self._timeout(),
                transport=self._transport,
            ) as client:
                resp = await client.request(
                    method,
                    url,
                    headers=self._headers(token, accept),
                    params=query or None,
                    json=json_body,
                )
        except httpx.HTTPError as exc:
            raise classify(TransportFailure(exc)) from exc

        if not 200 <= resp.status_code < 300:
            try:
                body: object = resp.json()
            except ValueError:
                body = resp.text or None
            err = classify(HttpFailure(status_code=resp.status_code, body=body, headers=dict(resp.headers)))
            logger.info("REST %s %s failed: %s (%s)", method, path, err.kind.value, resp.status_code)
            raise err

        if resp.status_code == 204 or not resp.content:
            return None

        try:
            return resp.json()
        except ValueError as exc:
            raise classify(TransportFailure(exc)) from exc
