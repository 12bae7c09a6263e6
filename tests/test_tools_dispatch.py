"""Dispatch tests: validation, output checking and the audit trail per call."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
import pytest
from github_gateway_mcp import tools
from github_gateway_mcp.auth import GitHubAppAuth
from github_gateway_mcp.config import AppCredentials, LimitsConfig
from github_gateway_mcp.errors import ErrorKind, GitHubError
from github_gateway_mcp.resolver import IdentifierResolver
from github_gateway_mcp.rest_client import GitHubRestClient
from github_gateway_mcp.tools import Runtime, dispatch_tool


class DummyAudit:
    def __init__(self) -> None:
        self.events: list[Any] = []

    def write_event(self, event: Any) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return 0.0

    def measure_duration_ms(self, _start: float) -> int:
        return 7


class DummyGitHub:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def request_json(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


class DummyGraphQL:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    async def execute(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        raise AssertionError("GraphQL must not be called")


def _install(monkeypatch: pytest.MonkeyPatch, github: Any, graphql: DummyGraphQL | None = None) -> DummyAudit:
    audit = DummyAudit()
    runtime = Runtime(
        config=None,  # type: ignore[arg-type]
        audit=audit,  # type: ignore[arg-type]
        github=github,
        graphql=graphql,  # type: ignore[arg-type]
        resolver=IdentifierResolver(graphql) if graphql is not None else None,  # type: ignore[arg-type]
    )
    monkeypatch.setattr(tools, "_RUNTIME", runtime)
    return audit


COMMENT = {
    "id": 1,
    "node_id": "IC_1",
    "html_url": "https://github.com/octo/repo/issues/3#issuecomment-1",
    "body": "Looks good",
    "user": {"login": "octo", "id": 2, "html_url": "https://github.com/octo"},
    "created_at": "2024-01-01T00:00:00Z",
    "updated_at": "2024-01-01T00:00:00Z",
}


@pytest.mark.asyncio
async def test_success_is_audited_as_succeeded(monkeypatch: pytest.MonkeyPatch) -> None:
    github = DummyGitHub(response=COMMENT)
    audit = _install(monkeypatch, github)

    out = await dispatch_tool(
        "add_issue_comment", {"owner": "octo", "repo": "repo", "issue_number": 3, "body": "Looks good"}
    )

    assert out["body"] == "Looks good"
    assert github.calls[0]["method"] == "POST"
    assert github.calls[0]["path"] == "/repos/octo/repo/issues/3/comments"
    event = audit.events[0]
    assert event.operation == "add_issue_comment"
    assert event.target == "octo/repo"
    assert event.outcome == "succeeded"
    assert event.error_kind is None
    assert event.duration_ms == 7


@pytest.mark.asyncio
async def test_invalid_arguments_are_rejected_without_a_call(monkeypatch: pytest.MonkeyPatch) -> None:
    github = DummyGitHub(response=COMMENT)
    audit = _install(monkeypatch, github)

    with pytest.raises(GitHubError) as exc:
        _ = await dispatch_tool("add_issue_comment", {"owner": "octo", "repo": "repo", "issue_number": "three"})

    assert exc.value.kind is ErrorKind.VALIDATION
    fields = {v["field"] for v in exc.value.context["violations"]}
    assert fields == {"issue_number", "body"}
    assert github.calls == []
    assert audit.events[0].outcome == "rejected"
    assert audit.events[0].error_kind == "validation"


@pytest.mark.asyncio
@pytest.mark.parametrize("name", sorted(tools.OPERATIONS))
async def test_every_tool_names_the_broken_field_without_a_call(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    github = DummyGitHub(response=COMMENT)
    graphql = DummyGraphQL()
    audit = _install(monkeypatch, github, graphql)
    required = tools.TOOL_METADATA[name]["inputSchema"].get("required", [])
    assert required, name
    field = required[0]

    with pytest.raises(GitHubError) as exc:
        _ = await dispatch_tool(name, {field: {"unexpected": True}})

    assert exc.value.kind is ErrorKind.VALIDATION
    fields = [v["field"] for v in exc.value.context["violations"]]
    assert any(f == field or f.startswith(f"{field}.") for f in fields), fields
    assert github.calls == []
    assert graphql.calls == []
    assert audit.events[0].outcome == "rejected"


@pytest.mark.asyncio
async def test_unknown_tool_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    audit = _install(monkeypatch, DummyGitHub())

    with pytest.raises(GitHubError) as exc:
        _ = await dispatch_tool("launch_rockets", {})

    assert exc.value.kind is ErrorKind.VALIDATION
    assert "launch_rockets" in exc.value.message
    assert audit.events[0].outcome == "rejected"
    assert audit.events[0].target == "<none>"


@pytest.mark.asyncio
async def test_remote_failure_is_audited_as_failed(monkeypatch: pytest.MonkeyPatch) -> None:
    github = DummyGitHub(error=GitHubError(kind=ErrorKind.NOT_FOUND, message="Not Found", status_code=404))
    audit = _install(monkeypatch, github)

    with pytest.raises(GitHubError) as exc:
        _ = await dispatch_tool("get_issue", {"owner": "octo", "repo": "repo", "issue_number": 9})

    assert exc.value.kind is ErrorKind.NOT_FOUND
    assert len(github.calls) == 1
    assert audit.events[0].outcome == "failed"
    assert audit.events[0].error_kind == "not_found"


@pytest.mark.asyncio
async def test_bad_response_shape_is_audited_as_failed(monkeypatch: pytest.MonkeyPatch) -> None:
    audit = _install(monkeypatch, DummyGitHub(response={"id": 1}))

    with pytest.raises(GitHubError) as exc:
        _ = await dispatch_tool("get_issue", {"owner": "octo", "repo": "repo", "issue_number": 9})

    assert exc.value.kind is ErrorKind.VALIDATION
    assert exc.value.context["stage"] == "response"
    assert audit.events[0].outcome == "failed"


@pytest.mark.asyncio
async def test_target_for_id_addressed_tools(monkeypatch: pytest.MonkeyPatch) -> None:
    audit = _install(monkeypatch, DummyGitHub(response=None))

    out = await dispatch_tool("delete_project_card", {"card_id": 11})

    assert out == {"success": True}
    assert audit.events[0].target == "card_id:11"


@pytest.mark.asyncio
async def test_missing_configuration_is_unknown(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(tools, "_RUNTIME", None)
    for name in (
        "GITHUB_PERSONAL_ACCESS_TOKEN",
        "GITHUB_TOKEN",
        "GITHUB_APP_ID",
        "GITHUB_APP_INSTALLATION_ID",
        "GITHUB_APP_PRIVATE_KEY_PATH",
    ):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(GitHubError) as exc:
        _ = await dispatch_tool("get_issue", {"owner": "octo", "repo": "repo", "issue_number": 1})

    assert exc.value.kind is ErrorKind.UNKNOWN
    assert "not configured" in exc.value.message


def test_runtime_is_built_once_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(tools, "_RUNTIME", None)
    monkeypatch.setenv("GITHUB_PERSONAL_ACCESS_TOKEN", "ghp_abc")
    monkeypatch.delenv("GITHUB_API_URL", raising=False)
    monkeypatch.delenv("GITHUB_GATEWAY_AUDIT_LOG_PATH", raising=False)

    first = tools.initialize_runtime_from_env()
    second = tools.initialize_runtime_from_env()

    assert first is second
    assert first.config.token == "ghp_abc"


def test_catalog_has_unique_names_and_object_schemas() -> None:
    assert len(tools.OPERATIONS) == len(tools.TOOL_METADATA)
    for name, meta in tools.TOOL_METADATA.items():
        assert meta["inputSchema"]["type"] == "object", name
        assert meta["description"], name


@pytest.mark.asyncio
async def test_unexpected_exception_is_unknown_and_audited(monkeypatch: pytest.MonkeyPatch) -> None:
    audit = _install(monkeypatch, DummyGitHub(error=RuntimeError("socket closed mid-read")))

    with pytest.raises(GitHubError) as exc:
        _ = await dispatch_tool("get_issue", {"owner": "octo", "repo": "repo", "issue_number": 9})

    assert exc.value.kind is ErrorKind.UNKNOWN
    assert exc.value.context["exception"] == "RuntimeError"
    assert exc.value.context["detail"] == "socket closed mid-read"
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert len(audit.events) == 1
    assert audit.events[0].outcome == "failed"
    assert audit.events[0].error_kind == "unknown"


@pytest.mark.asyncio
async def test_unusable_app_key_fails_as_authentication(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    key_path = tmp_path / "key.pem"
    key_path.write_text("not a key", encoding="utf-8")
    sent: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(500)

    transport = httpx.MockTransport(handler)
    app = GitHubAppAuth(
        credentials=AppCredentials(app_id=1, installation_id=2, private_key_path=key_path),
        api_base_url="https://api.github.com",
        transport=transport,
    )
    github = GitHubRestClient(token_provider=app.get_token, limits=LimitsConfig(), transport=transport)
    audit = _install(monkeypatch, github)

    with pytest.raises(GitHubError) as exc:
        _ = await dispatch_tool("get_issue", {"owner": "octo", "repo": "repo", "issue_number": 9})

    assert exc.value.kind is ErrorKind.AUTHENTICATION
    assert "not a key" not in str(exc.value.context)
    assert sent == []
    assert audit.events[0].outcome == "failed"
    assert audit.events[0].error_kind == "authentication"
