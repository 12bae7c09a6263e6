"""GitHub Gateway MCP Server.

A Model Context Protocol server that exposes GitHub repositories, issues, pull
requests, search and project boards as typed tools.

Features:
- Typed input and output contracts for every tool
- REST and GraphQL transports behind one error taxonomy
- Classic and current project boards bridged by a static routing table
- Structured audit events for every call

Run with: uvx python -m github_gateway_mcp
"""

__version__ = "0.1.0"
