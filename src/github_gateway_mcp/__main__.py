#!/usr/bin/env python3
"""Command-line entry point.

  python -m github_gateway_mcp            serve MCP over stdio
  python -m github_gateway_mcp --test     build the tool catalog and routing table, then exit
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from github_gateway_mcp import __version__
from github_gateway_mcp.server import run_server, test_server


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="github-gateway-mcp",
        description="GitHub repositories, issues, pull requests and project boards as MCP tools.",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Self-check: build every tool definition and the board routing table, then exit.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    entry = test_server if args.test else run_server
    try:
        asyncio.run(entry())
    except KeyboardInterrupt:
        print("\ngithub-gateway-mcp stopped", file=sys.stderr)


if __name__ == "__main__":
    main()
