"""Code, issue and user search (REST)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field

from .issues import Issue
from .pagination import RestPage, page_params
from .repositories import GitHubUser
from .schemas import Handler, RemoteModel, operation

if TYPE_CHECKING:
    from .tools import Runtime


class CodeSearchRepository(RemoteModel):
    id: int
    full_name: str
    html_url: str


class CodeSearchItem(RemoteModel):
    name: str
    path: str
    sha: str
    html_url: str
    repository: CodeSearchRepository
    score: float | None = None


class CodeSearchResult(RemoteModel):
    total_count: int
    incomplete_results: bool
    items: list[CodeSearchItem]


class IssueSearchResult(RemoteModel):
    total_count: int
    incomplete_results: bool
    items: list[Issue]


class UserSearchResult(RemoteModel):
    total_count: int
    incomplete_results: bool
    items: list[GitHubUser]


Order = Literal["asc", "desc"]


class SearchCodeInput(RestPage):
    q: str = Field(min_length=1, description="Search query (see GitHub code search syntax)")
    order: Order | None = None


class SearchIssuesInput(RestPage):
    q: str = Field(min_length=1, description="Search query (see GitHub issue search syntax)")
    sort: Literal[
        "comments",
        "reactions",
        "reactions-+1",
        "reactions--1",
        "reactions-smile",
        "reactions-thinking_face",
        "reactions-heart",
        "reactions-tada",
        "interactions",
        "created",
        "updated",
    ] | None = None
    order: Order | None = None


class SearchUsersInput(RestPage):
    q: str = Field(min_length=1, description="Search query (see GitHub user search syntax)")
    sort: Literal["followers", "repositories", "joined"] | None = None
    order: Order | None = None


def _search(kind: str) -> Handler:
    async def handler(runtime: Runtime, args: Any) -> object:
        params = {**args.to_payload(exclude={"page", "per_page"}), **page_params(args)}
        return await runtime.github.request_json(method="GET", path=f"/search/{kind}", params=params)

    return handler


OPERATIONS = {
    op.name: op
    for op in (
        operation("search_code", "Search for code across GitHub repositories", SearchCodeInput, CodeSearchResult, _search("code")),
        operation("search_issues", "Search for issues and pull requests across GitHub repositories", SearchIssuesInput, IssueSearchResult, _search("issues")),
        operation("search_users", "Search for users on GitHub", SearchUsersInput, UserSearchResult, _search("users")),
    )
}
