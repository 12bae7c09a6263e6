"""Identifier resolution for GraphQL operations.

Mutations in the current project model take opaque node IDs, while callers speak in
logins, ``owner/repo`` pairs and project numbers. The resolver performs the lookups;
``ResolutionPipeline`` runs several of them in a fixed order and stops at the first failure,
so a mutation never runs with a partially resolved set of identifiers.

Nothing is cached: every operation resolves fresh identifiers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from .errors import ErrorKind, GitHubError
from .graphql_client import GitHubGraphQLClient

logger = logging.getLogger(__name__)

_QUERY_ORGANIZATION_ID = """
query($login: String!) {
  organization(login: $login) { id }
}
""".strip()

_QUERY_OWNER_ID = """
query($login: String!) {
  repositoryOwner(login: $login) { id }
}
""".strip()

_QUERY_REPOSITORY_ID = """
query($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) { id }
}
""".strip()

_QUERY_PROJECT_V2_ID = """
query($login: String!, $number: Int!) {
  repositoryOwner(login: $login) {
    ... on ProjectV2Owner {
      projectV2(number: $number) { id }
    }
  }
}
""".strip()


def _all_not_found(err: GitHubError) -> bool:
    errors = err.context.get("errors")
    if not isinstance(errors, list) or not errors:
        return False
    return all(isinstance(e, dict) and e.get("type") == "NOT_FOUND" for e in errors)


class IdentifierResolver:
    """Turns human-readable names into opaque node IDs."""

    def __init__(self, graphql: GitHubGraphQLClient) -> None:
        self._graphql = graphql

    async def _lookup(self, *, query: str, variables: dict[str, Any], path: tuple[str, ...], what: str) -> str:
        try:
            result = await self._graphql.execute(query=query, variables=variables)
        except GitHubError as err:
            if err.kind is ErrorKind.PROTOCOL and _all_not_found(err):
                raise GitHubError(
                    kind=ErrorKind.NOT_FOUND,
                    message=f"{what} not found",
                    context=dict(err.context),
                ) from err
            raise

        node: object = result.data
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if not isinstance(node, str) or not node:
            raise GitHubError(kind=ErrorKind.NOT_FOUND, message=f"{what} not found", context={"lookup": variables})

        logger.debug("Resolved %s", what)
        return node

    async def organization_id(self, login: str) -> str:
        return await self._lookup(
            query=_QUERY_ORGANIZATION_ID,
            variables={"login": login},
            path=("organization", "id"),
            what=f"Organization '{login}'",
        )

    async def owner_id(self, login: str) -> str:
        """ID of a user or organization."""
        return await self._lookup(
            query=_QUERY_OWNER_ID,
            variables={"login": login},
            path=("repositoryOwner", "id"),
            what=f"Owner '{login}'",
        )

    async def repository_id(self, owner: str, name: str) -> str:
        return await self._lookup(
            query=_QUERY_REPOSITORY_ID,
            variables={"owner": owner, "name": name},
            path=("repository", "id"),
            what=f"Repository '{owner}/{name}'",
        )

    async def project_id(self, owner_login: str, number: int) -> str:
        return await self._lookup(
            query=_QUERY_PROJECT_V2_ID,
            variables={"login": owner_login, "number": number},
            path=("repositoryOwner", "projectV2", "id"),
            what=f"Project {number} of '{owner_login}'",
        )


Step = Callable[[Mapping[str, str]], Awaitable[str]]


@dataclass
class ResolutionPipeline:
    """Ordered, fail-fast sequence of identifier lookups.

    Each step receives the identifiers resolved so far and returns one more.
    """

    steps: list[tuple[str, Step]] = field(default_factory=list)

    def then(self, key: str, step: Step) -> ResolutionPipeline:
        if any(k == key for k, _ in self.steps):
            raise ValueError(f"duplicate resolution step: {key}")
        self.steps.append((key, step))
        return self

    async def run(self) -> dict[str, str]:
        resolved: dict[str, str] = {}
        for key, step in self.steps:
            # A failing step raises; later steps never run.
            resolved[key] = await step(resolved)
        return resolved
