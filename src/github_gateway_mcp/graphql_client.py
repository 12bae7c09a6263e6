"""GitHub GraphQL client (query-language mode).

Sends one fixed document plus variables to ``<base>/graphql`` and checks the
``{data, errors?}`` envelope. This client is intended only for query/mutation documents
controlled by the server.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Collection, Mapping

import httpx

from .auth import TokenProvider
from .config import DEFAULT_API_BASE_URL, LimitsConfig
from .errors import ErrorKind, GitHubError, GraphQLEnvelope, HttpFailure, TransportFailure, classify
from .rest_client import API_VERSION

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GraphQLResult:
    """Parsed GraphQL response."""

    data: dict[str, Any]


class GitHubGraphQLClient:
    """Minimal GitHub GraphQL client (POST /graphql only)."""

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        limits: LimitsConfig,
        api_base_url: str = DEFAULT_API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a GraphQL client bound to ``api_base_url``."""
        self._token_provider = token_provider
        self._limits = limits
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport

        if not self._api_base_url.startswith("https://"):
            raise GitHubError(kind=ErrorKind.UNKNOWN, message="Only https API hosts are allowed")

    @property
    def endpoint(self) -> str:
        # GHES serves GraphQL at /api/graphql next to its /api/v3 REST root.
        if self._api_base_url.endswith("/api/v3"):
            return self._api_base_url[: -len("/v3")] + "/graphql"
        return f"{self._api_base_url}/graphql"

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    async def execute(
        self,
        *,
        query: str,
        variables: Mapping[str, Any] | None = None,
        keep_null: Collection[str] = (),
    ) -> GraphQLResult:
        """Execute a fixed GraphQL query/mutation and return its ``data`` object.

        Variables whose value is None are omitted so optional inputs stay absent,
        except those named in ``keep_null``: an explicit null there clears the value.

        Raises:
            GitHubError: classified failure; nothing is retried.
        """
        if not isinstance(query, str) or not query.strip():
            raise GitHubError(kind=ErrorKind.UNKNOWN, message="GraphQL query is missing")

        token = await self._token_provider()
        sent_variables = {k: v for k, v in (variables or {}).items() if v is not None or k in keep_null}
        timeout = httpx.Timeout(
            timeout=self._limits.total_timeout_s,
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

        logger.debug("GraphQL request with variables %s", sorted(sent_variables))
        try:
            async with httpx.AsyncClient(
                follow_redirects=False,
                timeout=timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    self.endpoint,
                    headers=self._headers(token),
                    json={"query": query, "variables": sent_variables},
                )
        except httpx.HTTPError as exc:
            raise classify(TransportFailure(exc, what="GitHub GraphQL request")) from exc

        try:
            payload: object = resp.json()
        except ValueError:
            payload = None
            if 200 <= resp.status_code < 300:
                # Undecodable body is a malformed envelope.
                raise classify(GraphQLEnvelope(resp.text)) from None

        if not 200 <= resp.status_code < 300:
            err = classify(HttpFailure(status_code=resp.status_code, body=payload, headers=dict(resp.headers)))
            logger.info("GraphQL request failed: %s (%s)", err.kind.value, resp.status_code)
            raise err

        err = classify(GraphQLEnvelope(payload))
        if err is not None:
            logger.info("GraphQL request failed: %s", err.message)
            raise err

        # classify() only passes a dict envelope with dict data.
        return GraphQLResult(data=payload["data"])  # type: ignore[index]
