"""Tool registry and dispatch layer.

This module:
- collects every operation into one catalog (board operations through the routing table)
- builds a per-server runtime from host-provided config
- runs each call as validate -> handler -> validate output
- writes one audit event per attempt
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from . import issues, pulls, repositories, search
from .audit import AuditLogger, build_event, new_correlation_id
from .auth import build_token_provider
from .boards import board_operations
from .config import GatewayConfig, load_config_from_env
from .errors import ConfigError, ErrorKind, GitHubError
from .graphql_client import GitHubGraphQLClient
from .resolver import IdentifierResolver
from .rest_client import GitHubRestClient
from .schemas import InputModel, Operation, parse_input, parse_output

logger = logging.getLogger(__name__)


def _build_catalog() -> dict[str, Operation]:
    catalog: dict[str, Operation] = {}
    for group in (
        repositories.OPERATIONS,
        issues.OPERATIONS,
        pulls.OPERATIONS,
        search.OPERATIONS,
        board_operations(),
    ):
        for name, op in group.items():
            if name in catalog:
                raise ValueError(f"Duplicate tool name: {name}")
            catalog[name] = op
    return catalog


OPERATIONS: dict[str, Operation] = _build_catalog()

TOOL_METADATA: dict[str, dict[str, Any]] = {
    name: {"description": op.description, "inputSchema": op.input_schema()} for name, op in OPERATIONS.items()
}


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server runtime dependencies shared across tool calls."""

    config: GatewayConfig
    audit: AuditLogger
    github: GitHubRestClient
    graphql: GitHubGraphQLClient
    resolver: IdentifierResolver


_RUNTIME: Runtime | None = None


def initialize_runtime_from_env() -> Runtime:
    """Initialize and cache runtime from environment.

    Called at server startup (fail-fast), and lazily on the first tool call.
    """
    global _RUNTIME  # pylint: disable=global-statement
    if _RUNTIME is not None:
        return _RUNTIME

    config = load_config_from_env()
    audit = AuditLogger(
        sink_path=config.audit_log_path,
        max_bytes=config.audit_max_bytes,
        max_backups=config.audit_max_backups,
    )
    token_provider = build_token_provider(config)
    github = GitHubRestClient(token_provider=token_provider, limits=config.limits, api_base_url=config.api_base_url)
    graphql = GitHubGraphQLClient(token_provider=token_provider, limits=config.limits, api_base_url=config.api_base_url)

    _RUNTIME = Runtime(
        config=config,
        audit=audit,
        github=github,
        graphql=graphql,
        resolver=IdentifierResolver(graphql),
    )
    return _RUNTIME


def get_operation(name: str) -> Operation:
    op = OPERATIONS.get(name)
    if op is None:
        raise GitHubError(
            kind=ErrorKind.VALIDATION,
            message=f"Unknown tool: {name}",
            context={"available": sorted(OPERATIONS)},
        )
    return op


def validate_tool_arguments(name: str, arguments: Mapping[str, Any]) -> InputModel:
    """Parse tool arguments into the operation's input model.

    Raises a validation GitHubError listing every violation; nothing is sent to GitHub.
    """
    return parse_input(get_operation(name), arguments)


def _target_from_args(arguments: Mapping[str, Any]) -> str:
    owner = arguments.get("owner")
    repo = arguments.get("repo")
    if isinstance(owner, str) and owner:
        return f"{owner}/{repo}" if isinstance(repo, str) and repo else owner
    for key in ("org", "project_id", "column_id", "card_id", "field_id"):
        value = arguments.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return f"{key}:{value}"
    return "<none>"


def _unexpected(name: str, exc: Exception) -> GitHubError:
    return GitHubError(
        kind=ErrorKind.UNKNOWN,
        message=f"Tool {name} failed unexpectedly",
        context={"exception": type(exc).__name__, "detail": str(exc)},
    )


async def dispatch_tool(name: str, arguments: Mapping[str, Any]) -> Any:
    """Run one tool call and return its validated output.

    Raises:
        GitHubError: the only exception that leaves this function. Anything else
            raised along the way is reported as ``unknown`` with its type and detail.
    """
    correlation_id = new_correlation_id()
    target = _target_from_args(arguments)

    runtime: Runtime | None = None
    start: float | None = None
    args: InputModel | None = None

    def audit_failure(err: GitHubError) -> None:
        # Rejected: refused locally before anything reached GitHub.
        outcome = "rejected" if args is None and err.kind is ErrorKind.VALIDATION else "failed"
        event = build_event(
            correlation_id=correlation_id,
            operation=name,
            target=target,
            outcome=outcome,
            error_kind=err.kind.value,
            duration_ms=runtime.audit.measure_duration_ms(start) if runtime is not None and start is not None else None,
        )
        (runtime.audit if runtime is not None else AuditLogger(sink_path=None)).write_event(event)
        logger.info("Tool %s %s: %s", name, outcome, err)

    try:
        try:
            runtime = initialize_runtime_from_env()
        except ConfigError as exc:
            raise GitHubError(kind=ErrorKind.UNKNOWN, message=f"Server is not configured: {exc}") from exc
        start = runtime.audit.measure_start()

        op = get_operation(name)
        args = parse_input(op, arguments)
        raw = await op.handler(runtime, args)
        result = parse_output(op, raw)

        runtime.audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target=target,
                outcome="succeeded",
                duration_ms=runtime.audit.measure_duration_ms(start),
            )
        )
        return result

    except GitHubError as err:
        audit_failure(err)
        raise

    except Exception as exc:  # pylint: disable=broad-exception-caught
        err = _unexpected(name, exc)
        audit_failure(err)
        logger.debug("Unexpected failure in tool %s", name, exc_info=True)
        raise err from exc
