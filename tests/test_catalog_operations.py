"""Repository, issue, pull request and search operations against a mocked GitHub."""

from __future__ import annotations

import base64
import json
from typing import Any

import httpx
import pytest
from github_gateway_mcp.config import LimitsConfig
from github_gateway_mcp.errors import ErrorKind, GitHubError
from github_gateway_mcp.graphql_client import GitHubGraphQLClient
from github_gateway_mcp.resolver import IdentifierResolver
from github_gateway_mcp.rest_client import GitHubRestClient
from github_gateway_mcp.schemas import parse_input, parse_output
from github_gateway_mcp.tools import OPERATIONS, Runtime


async def token_provider() -> str:
    return "tok"


class DummyGitHubServer:
    """Serves canned responses keyed by (method, path) and records requests in order."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return response

    @property
    def trail(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]


def _runtime(server: DummyGitHubServer) -> Runtime:
    transport = httpx.MockTransport(server)
    github = GitHubRestClient(token_provider=token_provider, limits=LimitsConfig(), transport=transport)
    graphql = GitHubGraphQLClient(token_provider=token_provider, limits=LimitsConfig(), transport=transport)
    return Runtime(
        config=None,  # type: ignore[arg-type]
        audit=None,  # type: ignore[arg-type]
        github=github,
        graphql=graphql,
        resolver=IdentifierResolver(graphql),
    )


async def _call(name: str, arguments: dict[str, Any], server: DummyGitHubServer) -> Any:
    op = OPERATIONS[name]
    return parse_output(op, await op.handler(_runtime(server), parse_input(op, arguments)))


USER = {"login": "octo", "id": 1, "html_url": "https://github.com/octo"}
REF = {
    "ref": "refs/heads/main",
    "node_id": "REF_1",
    "url": "https://api.github.com/repos/octo/repo/git/refs/heads/main",
    "object": {"sha": "c0ffee", "url": "https://api.github.com/repos/octo/repo/git/commits/c0ffee"},
}


def _file_entry(path: str, text: str) -> dict[str, Any]:
    return {
        "type": "file",
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "sha": "blob1",
        "size": len(text),
        "url": f"https://api.github.com/repos/octo/repo/contents/{path}",
        "html_url": f"https://github.com/octo/repo/blob/main/{path}",
        "download_url": None,
        "encoding": "base64",
        "content": base64.b64encode(text.encode("utf-8")).decode("ascii"),
    }


def _pull(number: int, head_sha: str) -> dict[str, Any]:
    branch = {"label": "octo:feature", "ref": "feature", "sha": head_sha}
    return {
        "id": 10,
        "node_id": "PR_10",
        "number": number,
        "title": "Add feature",
        "body": None,
        "state": "open",
        "html_url": f"https://github.com/octo/repo/pull/{number}",
        "user": USER,
        "head": branch,
        "base": {**branch, "ref": "main", "sha": "base1"},
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
    }


@pytest.mark.asyncio
async def test_push_files_walks_ref_commit_tree_commit_ref() -> None:
    server = DummyGitHubServer(
        {
            ("GET", "/repos/octo/repo/git/ref/heads/main"): httpx.Response(200, json=REF),
            ("GET", "/repos/octo/repo/git/commits/c0ffee"): httpx.Response(200, json={"sha": "c0ffee", "tree": {"sha": "tree0"}}),
            ("POST", "/repos/octo/repo/git/trees"): httpx.Response(201, json={"sha": "tree1"}),
            ("POST", "/repos/octo/repo/git/commits"): httpx.Response(201, json={"sha": "new1"}),
            ("PATCH", "/repos/octo/repo/git/refs/heads/main"): httpx.Response(
                200, json={**REF, "object": {"sha": "new1", "url": "https://api.github.com/x"}}
            ),
        }
    )

    out = await _call(
        "push_files",
        {
            "owner": "octo",
            "repo": "repo",
            "branch": "main",
            "message": "Add docs",
            "files": [{"path": "docs/a.md", "content": "A"}, {"path": "docs/b.md", "content": "B"}],
        },
        server,
    )

    assert out["object"]["sha"] == "new1"
    assert server.trail == [
        ("GET", "/repos/octo/repo/git/ref/heads/main"),
        ("GET", "/repos/octo/repo/git/commits/c0ffee"),
        ("POST", "/repos/octo/repo/git/trees"),
        ("POST", "/repos/octo/repo/git/commits"),
        ("PATCH", "/repos/octo/repo/git/refs/heads/main"),
    ]
    tree_body = json.loads(server.requests[2].content)
    assert tree_body["base_tree"] == "tree0"
    assert [e["path"] for e in tree_body["tree"]] == ["docs/a.md", "docs/b.md"]
    assert json.loads(server.requests[3].content) == {"message": "Add docs", "tree": "tree1", "parents": ["c0ffee"]}
    assert json.loads(server.requests[4].content) == {"sha": "new1", "force": False}


@pytest.mark.asyncio
async def test_push_files_stops_when_branch_is_missing() -> None:
    server = DummyGitHubServer({})

    with pytest.raises(GitHubError) as exc:
        _ = await _call(
            "push_files",
            {"owner": "octo", "repo": "repo", "branch": "nope", "message": "m", "files": [{"path": "a", "content": ""}]},
            server,
        )

    assert exc.value.kind is ErrorKind.NOT_FOUND
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_create_branch_defaults_to_repository_default_branch() -> None:
    server = DummyGitHubServer(
        {
            ("GET", "/repos/octo/repo"): httpx.Response(200, json={"default_branch": "trunk"}),
            ("GET", "/repos/octo/repo/git/ref/heads/trunk"): httpx.Response(200, json=REF),
            ("POST", "/repos/octo/repo/git/refs"): httpx.Response(201, json={**REF, "ref": "refs/heads/feature/x"}),
        }
    )

    out = await _call("create_branch", {"owner": "octo", "repo": "repo", "branch": "feature/x"}, server)

    assert out["ref"] == "refs/heads/feature/x"
    assert [path for _, path in server.trail] == [
        "/repos/octo/repo",
        "/repos/octo/repo/git/ref/heads/trunk",
        "/repos/octo/repo/git/refs",
    ]
    assert json.loads(server.requests[2].content) == {"ref": "refs/heads/feature/x", "sha": "c0ffee"}


@pytest.mark.asyncio
async def test_create_branch_from_explicit_branch_skips_repository_lookup() -> None:
    server = DummyGitHubServer(
        {
            ("GET", "/repos/octo/repo/git/ref/heads/release/1.x"): httpx.Response(200, json=REF),
            ("POST", "/repos/octo/repo/git/refs"): httpx.Response(201, json=REF),
        }
    )

    _ = await _call(
        "create_branch", {"owner": "octo", "repo": "repo", "branch": "hotfix", "from_branch": "release/1.x"}, server
    )

    assert [path for _, path in server.trail] == ["/repos/octo/repo/git/ref/heads/release/1.x", "/repos/octo/repo/git/refs"]


@pytest.mark.asyncio
async def test_get_file_contents_decodes_base64() -> None:
    server = DummyGitHubServer(
        {("GET", "/repos/octo/repo/contents/docs/read me.md"): httpx.Response(200, json=_file_entry("docs/read me.md", "héllo\n"))}
    )

    out = await _call("get_file_contents", {"owner": "octo", "repo": "repo", "path": "docs/read me.md", "branch": "dev"}, server)

    assert out["content"] == "héllo\n"
    assert out["encoding"] == "utf-8"
    assert server.requests[0].url.params["ref"] == "dev"


@pytest.mark.asyncio
async def test_get_file_contents_returns_directory_listing() -> None:
    listing = [{**_file_entry("docs/a.md", "A"), "encoding": None, "content": None}]
    server = DummyGitHubServer({("GET", "/repos/octo/repo/contents/docs"): httpx.Response(200, json=listing)})

    out = await _call("get_file_contents", {"owner": "octo", "repo": "repo", "path": "docs"}, server)

    assert [e["path"] for e in out] == ["docs/a.md"]
    assert "ref" not in server.requests[0].url.params


@pytest.mark.asyncio
async def test_create_or_update_file_looks_up_existing_sha() -> None:
    result = {
        "content": _file_entry("README.md", "new"),
        "commit": {"sha": "c2", "message": "Update", "tree": {"sha": "t2", "url": "u"}, "parents": []},
    }
    server = DummyGitHubServer(
        {
            ("GET", "/repos/octo/repo/contents/README.md"): httpx.Response(200, json=_file_entry("README.md", "old")),
            ("PUT", "/repos/octo/repo/contents/README.md"): httpx.Response(200, json=result),
        }
    )

    out = await _call(
        "create_or_update_file",
        {"owner": "octo", "repo": "repo", "path": "README.md", "content": "new", "message": "Update", "branch": "main"},
        server,
    )

    assert out["commit"]["sha"] == "c2"
    body = json.loads(server.requests[1].content)
    assert body["sha"] == "blob1"
    assert base64.b64decode(body["content"]) == b"new"
    assert body["branch"] == "main"


@pytest.mark.asyncio
async def test_create_file_without_existing_sha() -> None:
    result = {
        "content": _file_entry("NEW.md", "x"),
        "commit": {"sha": "c3", "message": "Add", "tree": {"sha": "t3", "url": "u"}, "parents": []},
    }
    server = DummyGitHubServer({("PUT", "/repos/octo/repo/contents/NEW.md"): httpx.Response(201, json=result)})

    _ = await _call(
        "create_or_update_file",
        {"owner": "octo", "repo": "repo", "path": "NEW.md", "content": "x", "message": "Add", "branch": "main"},
        server,
    )

    assert "sha" not in json.loads(server.requests[1].content)


@pytest.mark.asyncio
async def test_list_issues_joins_labels_with_commas() -> None:
    server = DummyGitHubServer({("GET", "/repos/octo/repo/issues"): httpx.Response(200, json=[])})

    out = await _call(
        "list_issues", {"owner": "octo", "repo": "repo", "labels": ["bug", "ui"], "state": "open"}, server
    )

    assert out == []
    params = server.requests[0].url.params
    assert params["labels"] == "bug,ui"
    assert params["state"] == "open"
    assert "sort" not in params


@pytest.mark.asyncio
async def test_pull_request_status_reads_head_commit_status() -> None:
    status = {
        "state": "success",
        "sha": "abc123",
        "total_count": 1,
        "statuses": [
            {
                "state": "success",
                "context": "ci/build",
                "description": None,
                "target_url": None,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z",
            }
        ],
    }
    server = DummyGitHubServer(
        {
            ("GET", "/repos/octo/repo/pulls/5"): httpx.Response(200, json=_pull(5, "abc123")),
            ("GET", "/repos/octo/repo/commits/abc123/status"): httpx.Response(200, json=status),
        }
    )

    out = await _call("get_pull_request_status", {"owner": "octo", "repo": "repo", "pull_number": 5}, server)

    assert out["state"] == "success"
    assert server.trail[1] == ("GET", "/repos/octo/repo/commits/abc123/status")


@pytest.mark.asyncio
async def test_merge_conflict_is_classified() -> None:
    server = DummyGitHubServer(
        {("PUT", "/repos/octo/repo/pulls/5/merge"): httpx.Response(409, json={"message": "Head branch was modified"})}
    )

    with pytest.raises(GitHubError) as exc:
        _ = await _call("merge_pull_request", {"owner": "octo", "repo": "repo", "pull_number": 5}, server)

    assert exc.value.kind is ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_update_pull_request_branch_returns_success() -> None:
    server = DummyGitHubServer(
        {("PUT", "/repos/octo/repo/pulls/5/update-branch"): httpx.Response(202, json={"message": "Updating pull request branch."})}
    )

    out = await _call("update_pull_request_branch", {"owner": "octo", "repo": "repo", "pull_number": 5}, server)

    assert out == {"success": True}


def test_review_comment_needs_line_or_position() -> None:
    op = OPERATIONS["create_pull_request_review"]
    base = {"owner": "octo", "repo": "repo", "pull_number": 5, "body": "ok", "event": "COMMENT"}
    with pytest.raises(GitHubError):
        _ = parse_input(op, {**base, "comments": [{"path": "a.py", "body": "nit"}]})
    _ = parse_input(op, {**base, "comments": [{"path": "a.py", "body": "nit", "line": 3}]})


@pytest.mark.asyncio
async def test_search_code_sends_query() -> None:
    result = {"total_count": 0, "incomplete_results": False, "items": []}
    server = DummyGitHubServer({("GET", "/search/code"): httpx.Response(200, json=result)})

    out = await _call("search_code", {"q": "def main repo:octo/repo", "per_page": 5}, server)

    assert out["total_count"] == 0
    params = server.requests[0].url.params
    assert params["q"] == "def main repo:octo/repo"
    assert params["per_page"] == "5"


@pytest.mark.asyncio
async def test_search_repositories_maps_query_to_q() -> None:
    result = {"total_count": 0, "incomplete_results": False, "items": []}
    server = DummyGitHubServer({("GET", "/search/repositories"): httpx.Response(200, json=result)})

    _ = await _call("search_repositories", {"query": "topic:mcp"}, server)

    assert server.requests[0].url.params["q"] == "topic:mcp"
