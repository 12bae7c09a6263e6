"""Repository, file, branch and commit operations (REST)."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorKind, GitHubError
from .pagination import RestPage, page_params
from .rest_client import expand_path
from .schemas import InputModel, Owner, RemoteModel, RepoName, operation

if TYPE_CHECKING:
    from .tools import Runtime

logger = logging.getLogger(__name__)


class GitHubUser(RemoteModel):
    login: str
    id: int
    html_url: str
    avatar_url: str | None = None
    type: str | None = None


class Repository(RemoteModel):
    id: int
    node_id: str
    name: str
    full_name: str
    private: bool
    owner: GitHubUser
    html_url: str
    description: str | None
    fork: bool
    default_branch: str | None = None
    clone_url: str | None = None
    language: str | None = None
    stargazers_count: int | None = None
    created_at: str
    updated_at: str
    pushed_at: str | None = None


class RepositorySearchResult(RemoteModel):
    total_count: int
    incomplete_results: bool
    items: list[Repository]


class ContentEntry(RemoteModel):
    type: Literal["file", "dir", "symlink", "submodule"]
    name: str
    path: str
    sha: str
    size: int
    url: str
    html_url: str | None
    download_url: str | None
    encoding: str | None = None
    content: str | None = None


class GitObjectRef(RemoteModel):
    sha: str
    url: str


class GitActor(RemoteModel):
    name: str
    email: str
    date: str


class CommitDetail(RemoteModel):
    message: str
    author: GitActor | None
    committer: GitActor | None
    tree: GitObjectRef


class Commit(RemoteModel):
    sha: str
    node_id: str
    html_url: str
    commit: CommitDetail
    author: GitHubUser | None
    committer: GitHubUser | None
    parents: list[GitObjectRef]


class GitCommit(RemoteModel):
    sha: str
    html_url: str | None = None
    message: str
    tree: GitObjectRef
    parents: list[GitObjectRef]


class FileCommitResult(RemoteModel):
    content: ContentEntry | None
    commit: GitCommit


class GitReference(RemoteModel):
    ref: str
    node_id: str
    url: str
    object: GitObjectRef


# Inputs


class _RepoTarget(InputModel):
    owner: Owner
    repo: RepoName


class SearchRepositoriesInput(RestPage):
    query: str = Field(min_length=1, description="Search query (see GitHub search syntax)")


class CreateRepositoryInput(InputModel):
    name: str = Field(min_length=1, description="Repository name")
    description: str | None = Field(default=None, description="Repository description")
    private: bool | None = Field(default=None, description="Whether the repository should be private")
    auto_init: bool | None = Field(default=None, description="Initialize with a README")


class ForkRepositoryInput(_RepoTarget):
    organization: str | None = Field(default=None, min_length=1, description="Organization to fork into")


class GetFileContentsInput(_RepoTarget):
    path: str = Field(min_length=1, description="Path to the file or directory")
    branch: str | None = Field(default=None, min_length=1, description="Branch to read from")


class CreateOrUpdateFileInput(_RepoTarget):
    path: str = Field(min_length=1, description="Path where to create/update the file")
    content: str = Field(description="Content of the file")
    message: str = Field(min_length=1, description="Commit message")
    branch: str = Field(min_length=1, description="Branch to create/update the file in")
    sha: str | None = Field(default=None, min_length=1, description="SHA of the file being replaced")


class FileToPush(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = Field(min_length=1)
    content: str


class PushFilesInput(_RepoTarget):
    branch: str = Field(min_length=1, description="Branch to push to, e.g. 'main'")
    files: list[FileToPush] = Field(min_length=1, description="Files to push")
    message: str = Field(min_length=1, description="Commit message")


class CreateBranchInput(_RepoTarget):
    branch: str = Field(min_length=1, description="Name for the new branch")
    from_branch: str | None = Field(
        default=None, min_length=1, description="Source branch (defaults to the repository default branch)"
    )


class ListCommitsInput(_RepoTarget, RestPage):
    sha: str | None = Field(default=None, min_length=1, description="SHA or branch to start listing from")


# Handlers


def _repo_path(args: _RepoTarget, suffix: str = "", **values: object) -> str:
    return expand_path("/repos/{owner}/{repo}" + suffix, raw=("path", "ref"), owner=args.owner, repo=args.repo, **values)


def _require_field(data: object, *keys: str, what: str) -> Any:
    node: Any = data
    for key in keys:
        node = node.get(key) if isinstance(node, dict) else None
    if node is None:
        raise GitHubError(
            kind=ErrorKind.VALIDATION,
            message=f"GitHub response did not match the expected shape ({what})",
            context={"stage": "response", "missing": ".".join(keys)},
        )
    return node


async def _search_repositories(runtime: Runtime, args: SearchRepositoriesInput) -> object:
    return await runtime.github.request_json(
        method="GET",
        path="/search/repositories",
        params={"q": args.query, **page_params(args)},
    )


async def _create_repository(runtime: Runtime, args: CreateRepositoryInput) -> object:
    return await runtime.github.request_json(method="POST", path="/user/repos", json_body=args.to_payload())


async def _fork_repository(runtime: Runtime, args: ForkRepositoryInput) -> object:
    return await runtime.github.request_json(
        method="POST",
        path=_repo_path(args, "/forks"),
        json_body=args.to_payload(exclude={"owner", "repo"}),
    )


def _decode_entry(entry: object) -> object:
    if not isinstance(entry, dict) or entry.get("encoding") != "base64" or not isinstance(entry.get("content"), str):
        return entry
    raw = base64.b64decode(entry["content"].encode("utf-8"), validate=False)
    return {**entry, "content": raw.decode("utf-8", errors="replace"), "encoding": "utf-8"}


async def _get_file_contents(runtime: Runtime, args: GetFileContentsInput) -> object:
    data = await runtime.github.request_json(
        method="GET",
        path=_repo_path(args, "/contents/{path}", path=args.path),
        params={"ref": args.branch},
    )
    if isinstance(data, list):
        return data
    return _decode_entry(data)


async def _existing_file_sha(runtime: Runtime, args: CreateOrUpdateFileInput) -> str | None:
    try:
        data = await runtime.github.request_json(
            method="GET",
            path=_repo_path(args, "/contents/{path}", path=args.path),
            params={"ref": args.branch},
        )
    except GitHubError as err:
        if err.kind is ErrorKind.NOT_FOUND:
            return None
        raise
    if isinstance(data, dict) and isinstance(data.get("sha"), str):
        return data["sha"]
    return None


async def _create_or_update_file(runtime: Runtime, args: CreateOrUpdateFileInput) -> object:
    sha = args.sha if args.sha is not None else await _existing_file_sha(runtime, args)
    body: dict[str, Any] = {
        "message": args.message,
        "content": base64.b64encode(args.content.encode("utf-8")).decode("ascii"),
        "branch": args.branch,
    }
    if sha is not None:
        body["sha"] = sha
    return await runtime.github.request_json(
        method="PUT",
        path=_repo_path(args, "/contents/{path}", path=args.path),
        json_body=body,
    )


async def _push_files(runtime: Runtime, args: PushFilesInput) -> object:
    """Commit several files at once: ref -> commit -> tree -> commit -> ref.

    Each step needs the SHA produced by the previous one.
    """
    ref = await runtime.github.request_json(
        method="GET", path=_repo_path(args, "/git/ref/heads/{ref}", ref=args.branch)
    )
    parent_sha = _require_field(ref, "object", "sha", what="ref.object.sha")

    parent = await runtime.github.request_json(
        method="GET", path=_repo_path(args, "/git/commits/{sha}", sha=parent_sha)
    )
    base_tree_sha = _require_field(parent, "tree", "sha", what="commit.tree.sha")

    tree_entries = [{"path": f.path, "mode": "100644", "type": "blob", "content": f.content} for f in args.files]
    tree = await runtime.github.request_json(
        method="POST",
        path=_repo_path(args, "/git/trees"),
        json_body={"base_tree": base_tree_sha, "tree": tree_entries},
    )
    tree_sha = _require_field(tree, "sha", what="tree.sha")

    commit = await runtime.github.request_json(
        method="POST",
        path=_repo_path(args, "/git/commits"),
        json_body={"message": args.message, "tree": tree_sha, "parents": [parent_sha]},
    )
    commit_sha = _require_field(commit, "sha", what="commit.sha")

    logger.debug("Pushing %d files to %s/%s@%s", len(args.files), args.owner, args.repo, args.branch)
    return await runtime.github.request_json(
        method="PATCH",
        path=_repo_path(args, "/git/refs/heads/{ref}", ref=args.branch),
        json_body={"sha": commit_sha, "force": False},
    )


async def _create_branch(runtime: Runtime, args: CreateBranchInput) -> object:
    source = args.from_branch
    if source is None:
        repo = await runtime.github.request_json(method="GET", path=_repo_path(args))
        source = _require_field(repo, "default_branch", what="repository.default_branch")

    ref = await runtime.github.request_json(
        method="GET", path=_repo_path(args, "/git/ref/heads/{ref}", ref=source)
    )
    sha = _require_field(ref, "object", "sha", what="ref.object.sha")

    return await runtime.github.request_json(
        method="POST",
        path=_repo_path(args, "/git/refs"),
        json_body={"ref": f"refs/heads/{args.branch}", "sha": sha},
    )


async def _list_commits(runtime: Runtime, args: ListCommitsInput) -> object:
    return await runtime.github.request_json(
        method="GET",
        path=_repo_path(args, "/commits"),
        params={"sha": args.sha, **page_params(args)},
    )


OPERATIONS = {
    op.name: op
    for op in (
        operation("search_repositories", "Search for GitHub repositories", SearchRepositoriesInput, RepositorySearchResult, _search_repositories),
        operation("create_repository", "Create a new repository in your account", CreateRepositoryInput, Repository, _create_repository),
        operation("fork_repository", "Fork a repository to your account or an organization", ForkRepositoryInput, Repository, _fork_repository),
        operation("get_file_contents", "Get the contents of a file or directory", GetFileContentsInput, ContentEntry | list[ContentEntry], _get_file_contents),
        operation("create_or_update_file", "Create or update a single file in a repository", CreateOrUpdateFileInput, FileCommitResult, _create_or_update_file),
        operation("push_files", "Push multiple files to a branch in a single commit", PushFilesInput, GitReference, _push_files),
        operation("create_branch", "Create a new branch in a repository", CreateBranchInput, GitReference, _create_branch),
        operation("list_commits", "List commits of a branch in a repository", ListCommitsInput, list[Commit], _list_commits),
    )
}
