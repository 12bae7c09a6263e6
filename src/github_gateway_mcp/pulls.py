"""Pull request operations (REST)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ErrorKind, GitHubError
from .pagination import RestPage, page_params
from .repositories import GitHubUser
from .rest_client import expand_path
from .schemas import SUCCESS, InputModel, Owner, PositiveInt, RemoteModel, RepoName, SuccessResult, operation

if TYPE_CHECKING:
    from .tools import Runtime


class BranchRef(RemoteModel):
    label: str
    ref: str
    sha: str


class PullRequest(RemoteModel):
    id: int
    node_id: str
    number: int
    title: str
    body: str | None
    state: Literal["open", "closed"]
    html_url: str
    user: GitHubUser | None
    head: BranchRef
    base: BranchRef
    draft: bool | None = None
    merged: bool | None = None
    mergeable: bool | None = None
    created_at: str
    updated_at: str
    closed_at: str | None = None
    merged_at: str | None = None


class PullRequestFile(RemoteModel):
    sha: str | None
    filename: str
    status: str
    additions: int
    deletions: int
    changes: int
    blob_url: str | None = None
    patch: str | None = None


class CommitStatus(RemoteModel):
    state: str
    context: str
    description: str | None
    target_url: str | None
    created_at: str
    updated_at: str


class CombinedStatus(RemoteModel):
    state: str
    sha: str
    total_count: int
    statuses: list[CommitStatus]


class PullRequestReview(RemoteModel):
    id: int
    node_id: str
    user: GitHubUser | None
    body: str | None
    state: str
    html_url: str
    commit_id: str | None
    submitted_at: str | None = None


class ReviewComment(RemoteModel):
    id: int
    node_id: str
    path: str
    body: str
    user: GitHubUser | None
    commit_id: str
    html_url: str
    line: int | None = None
    in_reply_to_id: int | None = None
    created_at: str
    updated_at: str


class MergeResult(RemoteModel):
    sha: str
    merged: bool
    message: str


# Inputs


class _PullTarget(InputModel):
    owner: Owner
    repo: RepoName


class CreatePullRequestInput(_PullTarget):
    title: str = Field(min_length=1, description="Pull request title")
    body: str | None = Field(default=None, description="Pull request body/description")
    head: str = Field(min_length=1, description="Branch where the changes are implemented")
    base: str = Field(min_length=1, description="Branch the changes should be pulled into")
    draft: bool | None = Field(default=None, description="Create as a draft pull request")
    maintainer_can_modify: bool | None = Field(default=None, description="Allow maintainers to modify the pull request")


class PullNumberInput(_PullTarget):
    pull_number: PositiveInt = Field(description="Pull request number")


class ListPullRequestsInput(_PullTarget, RestPage):
    state: Literal["open", "closed", "all"] | None = None
    head: str | None = Field(default=None, min_length=1, description="Filter by head user/org and branch, 'user:ref'")
    base: str | None = Field(default=None, min_length=1, description="Filter by base branch name")
    sort: Literal["created", "updated", "popularity", "long-running"] | None = None
    direction: Literal["asc", "desc"] | None = None


class ReviewCommentInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = Field(min_length=1, description="File path being commented on")
    body: str = Field(min_length=1, description="Comment text")
    line: PositiveInt | None = Field(default=None, description="Line in the file to comment on")
    position: PositiveInt | None = Field(default=None, description="Position in the diff to comment on")

    @model_validator(mode="after")
    def _line_or_position(self) -> ReviewCommentInput:
        if (self.line is None) == (self.position is None):
            raise ValueError("give exactly one of line or position")
        return self


class CreatePullRequestReviewInput(PullNumberInput):
    body: str = Field(description="Review comment text")
    event: Literal["APPROVE", "REQUEST_CHANGES", "COMMENT"] = Field(description="Review action to perform")
    commit_id: str | None = Field(default=None, min_length=1, description="SHA of the commit to review")
    comments: list[ReviewCommentInput] | None = Field(default=None, description="Line-specific comments")


class MergePullRequestInput(PullNumberInput):
    commit_title: str | None = Field(default=None, description="Title for the merge commit")
    commit_message: str | None = Field(default=None, description="Extra detail for the merge commit")
    merge_method: Literal["merge", "squash", "rebase"] | None = Field(default=None, description="Merge method to use")


class UpdatePullRequestBranchInput(PullNumberInput):
    expected_head_sha: str | None = Field(
        default=None, min_length=1, description="The expected SHA of the pull request's HEAD ref"
    )


def _pulls_path(args: _PullTarget, suffix: str = "", **values: object) -> str:
    return expand_path("/repos/{owner}/{repo}/pulls" + suffix, owner=args.owner, repo=args.repo, **values)


async def _create_pull_request(runtime: Runtime, args: CreatePullRequestInput) -> object:
    return await runtime.github.request_json(
        method="POST",
        path=_pulls_path(args),
        json_body=args.to_payload(exclude={"owner", "repo"}),
    )


async def _get_pull_request(runtime: Runtime, args: PullNumberInput) -> object:
    return await runtime.github.request_json(
        method="GET", path=_pulls_path(args, "/{number}", number=args.pull_number)
    )


async def _list_pull_requests(runtime: Runtime, args: ListPullRequestsInput) -> object:
    params = {
        "state": args.state,
        "head": args.head,
        "base": args.base,
        "sort": args.sort,
        "direction": args.direction,
        **page_params(args),
    }
    return await runtime.github.request_json(method="GET", path=_pulls_path(args), params=params)


async def _create_review(runtime: Runtime, args: CreatePullRequestReviewInput) -> object:
    return await runtime.github.request_json(
        method="POST",
        path=_pulls_path(args, "/{number}/reviews", number=args.pull_number),
        json_body=args.to_payload(exclude={"owner", "repo", "pull_number"}),
    )


async def _merge_pull_request(runtime: Runtime, args: MergePullRequestInput) -> object:
    return await runtime.github.request_json(
        method="PUT",
        path=_pulls_path(args, "/{number}/merge", number=args.pull_number),
        json_body=args.to_payload(exclude={"owner", "repo", "pull_number"}),
    )


async def _get_files(runtime: Runtime, args: PullNumberInput) -> object:
    return await runtime.github.request_json(
        method="GET", path=_pulls_path(args, "/{number}/files", number=args.pull_number)
    )


async def _get_status(runtime: Runtime, args: PullNumberInput) -> object:
    """Combined commit status of the pull request's head commit."""
    pr = await runtime.github.request_json(
        method="GET", path=_pulls_path(args, "/{number}", number=args.pull_number)
    )
    head = pr.get("head") if isinstance(pr, dict) else None
    sha = head.get("sha") if isinstance(head, dict) else None
    if not isinstance(sha, str) or not sha:
        raise GitHubError(
            kind=ErrorKind.VALIDATION,
            message="GitHub response did not match the expected shape (head.sha)",
            context={"stage": "response"},
        )

    return await runtime.github.request_json(
        method="GET",
        path=expand_path("/repos/{owner}/{repo}/commits/{sha}/status", owner=args.owner, repo=args.repo, sha=sha),
    )


async def _update_branch(runtime: Runtime, args: UpdatePullRequestBranchInput) -> object:
    await runtime.github.request_json(
        method="PUT",
        path=_pulls_path(args, "/{number}/update-branch", number=args.pull_number),
        json_body=args.to_payload(exclude={"owner", "repo", "pull_number"}),
    )
    return SUCCESS


async def _get_comments(runtime: Runtime, args: PullNumberInput) -> object:
    return await runtime.github.request_json(
        method="GET", path=_pulls_path(args, "/{number}/comments", number=args.pull_number)
    )


async def _get_reviews(runtime: Runtime, args: PullNumberInput) -> object:
    return await runtime.github.request_json(
        method="GET", path=_pulls_path(args, "/{number}/reviews", number=args.pull_number)
    )


OPERATIONS = {
    op.name: op
    for op in (
        operation("create_pull_request", "Create a new pull request", CreatePullRequestInput, PullRequest, _create_pull_request),
        operation("get_pull_request", "Get the details of a pull request", PullNumberInput, PullRequest, _get_pull_request),
        operation("list_pull_requests", "List and filter repository pull requests", ListPullRequestsInput, list[PullRequest], _list_pull_requests),
        operation("create_pull_request_review", "Create a review on a pull request", CreatePullRequestReviewInput, PullRequestReview, _create_review),
        operation("merge_pull_request", "Merge a pull request", MergePullRequestInput, MergeResult, _merge_pull_request),
        operation("get_pull_request_files", "Get the list of files changed in a pull request", PullNumberInput, list[PullRequestFile], _get_files),
        operation("get_pull_request_status", "Get the combined status of all status checks for a pull request", PullNumberInput, CombinedStatus, _get_status),
        operation("update_pull_request_branch", "Update a pull request branch with the latest changes from the base branch", UpdatePullRequestBranchInput, SuccessResult, _update_branch),
        operation("get_pull_request_comments", "Get the review comments on a pull request", PullNumberInput, list[ReviewComment], _get_comments),
        operation("get_pull_request_reviews", "Get the reviews on a pull request", PullNumberInput, list[PullRequestReview], _get_reviews),
    )
}
