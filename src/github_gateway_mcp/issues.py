"""Issue and issue comment operations (REST)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import Field, model_validator

from .pagination import RestPage, page_params
from .repositories import GitHubUser
from .rest_client import expand_path
from .schemas import InputModel, Owner, PositiveInt, RemoteModel, RepoName, operation

if TYPE_CHECKING:
    from .tools import Runtime


class Label(RemoteModel):
    id: int
    name: str
    color: str | None = None
    description: str | None = None


class Milestone(RemoteModel):
    id: int
    number: int
    title: str
    state: str


class Issue(RemoteModel):
    id: int
    node_id: str
    number: int
    title: str
    body: str | None
    state: Literal["open", "closed"]
    html_url: str
    user: GitHubUser | None
    labels: list[Label]
    assignees: list[GitHubUser] = []
    milestone: Milestone | None = None
    comments: int
    created_at: str
    updated_at: str
    closed_at: str | None = None
    # Set only when the issue is a pull request.
    pull_request: dict[str, object] | None = None


class IssueComment(RemoteModel):
    id: int
    node_id: str
    html_url: str
    body: str | None
    user: GitHubUser | None
    created_at: str
    updated_at: str


class _IssueTarget(InputModel):
    owner: Owner
    repo: RepoName


class CreateIssueInput(_IssueTarget):
    title: str = Field(min_length=1, description="Issue title")
    body: str | None = Field(default=None, description="Issue body")
    assignees: list[str] | None = Field(default=None, description="Logins to assign")
    milestone: PositiveInt | None = Field(default=None, description="Milestone number")
    labels: list[str] | None = Field(default=None, description="Label names")


class ListIssuesInput(_IssueTarget, RestPage):
    state: Literal["open", "closed", "all"] | None = Field(default=None, description="Filter by state")
    labels: list[str] | None = Field(default=None, description="Only issues with all of these labels")
    sort: Literal["created", "updated", "comments"] | None = None
    direction: Literal["asc", "desc"] | None = None
    since: str | None = Field(default=None, description="ISO 8601 timestamp; only issues updated after it")


class GetIssueInput(_IssueTarget):
    issue_number: PositiveInt = Field(description="Issue number")


class UpdateIssueInput(GetIssueInput):
    title: str | None = Field(default=None, min_length=1)
    body: str | None = None
    state: Literal["open", "closed"] | None = None
    labels: list[str] | None = None
    assignees: list[str] | None = None
    milestone: PositiveInt | None = None

    @model_validator(mode="after")
    def _has_changes(self) -> UpdateIssueInput:
        if not self.model_fields_set - {"owner", "repo", "issue_number"}:
            raise ValueError("at least one field to update is required")
        return self


class AddIssueCommentInput(GetIssueInput):
    body: str = Field(min_length=1, description="Comment text")


def _issues_path(args: _IssueTarget, suffix: str = "", **values: object) -> str:
    return expand_path("/repos/{owner}/{repo}/issues" + suffix, owner=args.owner, repo=args.repo, **values)


async def _create_issue(runtime: Runtime, args: CreateIssueInput) -> object:
    return await runtime.github.request_json(
        method="POST",
        path=_issues_path(args),
        json_body=args.to_payload(exclude={"owner", "repo"}),
    )


async def _list_issues(runtime: Runtime, args: ListIssuesInput) -> object:
    params = {
        "state": args.state,
        "labels": args.labels,
        "sort": args.sort,
        "direction": args.direction,
        "since": args.since,
        **page_params(args),
    }
    return await runtime.github.request_json(
        method="GET", path=_issues_path(args), params=params, comma_joined=("labels",)
    )


async def _get_issue(runtime: Runtime, args: GetIssueInput) -> object:
    return await runtime.github.request_json(
        method="GET", path=_issues_path(args, "/{number}", number=args.issue_number)
    )


async def _update_issue(runtime: Runtime, args: UpdateIssueInput) -> object:
    return await runtime.github.request_json(
        method="PATCH",
        path=_issues_path(args, "/{number}", number=args.issue_number),
        json_body=args.to_payload(exclude={"owner", "repo", "issue_number"}),
    )


async def _add_issue_comment(runtime: Runtime, args: AddIssueCommentInput) -> object:
    return await runtime.github.request_json(
        method="POST",
        path=_issues_path(args, "/{number}/comments", number=args.issue_number),
        json_body={"body": args.body},
    )


OPERATIONS = {
    op.name: op
    for op in (
        operation("create_issue", "Create a new issue in a repository", CreateIssueInput, Issue, _create_issue),
        operation("list_issues", "List issues in a repository with filtering options", ListIssuesInput, list[Issue], _list_issues),
        operation("get_issue", "Get the details of a single issue", GetIssueInput, Issue, _get_issue),
        operation("update_issue", "Update an existing issue", UpdateIssueInput, Issue, _update_issue),
        operation("add_issue_comment", "Add a comment to an existing issue", AddIssueCommentInput, IssueComment, _add_issue_comment),
    )
}
