"""MCP server wiring for github-gateway-mcp.

Lists the tool catalog, runs tool calls through ``dispatch_tool`` and serializes
results. A failed call returns the error envelope produced by ``error_to_result``.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool

from . import __version__
from .boards import check_routes, describe_routes
from .errors import ConfigError, ErrorKind, GitHubError, error_to_result
from .tools import TOOL_METADATA, dispatch_tool, initialize_runtime_from_env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

server = Server("github-gateway-mcp")

STATUS_URI = "github-gateway-mcp://server-status"
CAPABILITIES_URI = "github-gateway-mcp://capabilities"

RESOURCES = (
    (STATUS_URI, "Server Status", "Non-secret server configuration"),
    (CAPABILITIES_URI, "Capabilities", "Tool catalog and the board routing table"),
)


def _text(payload: object) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2, default=str))]


def _resources() -> list[Resource]:
    return [Resource(uri=uri, name=name, description=description) for uri, name, description in RESOURCES]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    tools = [
        Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
        for name, meta in TOOL_METADATA.items()
    ]
    logger.info("Listed %s tools", len(tools))
    return tools


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Execute a tool and return MCP-compliant TextContent."""
    if not isinstance(arguments, dict):
        arguments = {}

    logger.info("Tool called: %s", name)

    try:
        return _text(await dispatch_tool(name, arguments))
    except GitHubError as err:
        return _text(error_to_result(err))
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.exception("Tool %s crashed: %s", name, type(exc).__name__)
        return _text(error_to_result(GitHubError(kind=ErrorKind.UNKNOWN, message="Tool execution failed")))


@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return _resources()


def _capabilities() -> dict[str, Any]:
    return {
        "server": "github-gateway-mcp",
        "version": __version__,
        "tools": sorted(TOOL_METADATA),
        "board_routes": describe_routes(),
    }


def _status() -> dict[str, Any]:
    status: dict[str, Any] = {
        "server": "github-gateway-mcp",
        "version": __version__,
        "tools_available": len(TOOL_METADATA),
        "configured": False,
    }
    try:
        runtime = initialize_runtime_from_env()
    except ConfigError:
        return status

    config = runtime.config
    status["configured"] = True
    status["api_base_url"] = config.api_base_url
    status["auth"] = "github_app" if config.token is None else "token"
    status["limits"] = {
        "total_timeout_s": config.limits.total_timeout_s,
        "connect_timeout_s": config.limits.connect_timeout_s,
        "read_timeout_s": config.limits.read_timeout_s,
    }
    status["audit"] = {"file_sink_enabled": config.audit_log_path is not None}
    return status


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Read resource content."""
    uri_s = uri if isinstance(uri, str) else str(uri)

    if uri_s == CAPABILITIES_URI:
        return json.dumps(_capabilities(), indent=2)
    if uri_s == STATUS_URI:
        return json.dumps(_status(), indent=2)
    return json.dumps({"ok": False, "kind": "not_found", "message": "Unknown resource"}, indent=2)


async def run_server() -> None:
    """Run the server over stdio."""
    # Fail fast on invalid/missing host configuration.
    try:
        runtime = initialize_runtime_from_env()
    except ConfigError as exc:
        logger.error("Startup configuration error: %s", exc)
        raise

    logging.getLogger().setLevel(runtime.config.log_level)

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def test_server() -> None:
    """Self-check: routing table, tool definitions and resources can all be built."""
    check_routes()
    tools = [
        Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
        for name, meta in TOOL_METADATA.items()
    ]
    _resources()
    json.dumps(_capabilities())
    print(f"github-gateway-mcp {__version__}: {len(tools)} tools OK", file=sys.stderr)
