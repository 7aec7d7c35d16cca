# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Single-session MCP server over stdio.

A stdio connection is one session: the process hosts exactly one session
actor and serves its MCP server on stdin/stdout. No authorization is
involved; the local user launching the process owns the session.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from mcp.server.stdio import stdio_server

from ..agent.namespace import ActorNamespace
from ..core.config import get_config
from ..core.logging import configure_logging

logger = logging.getLogger(__name__)

STDIO_SESSION_PREFIX = "stdio/"


def cli_health_check() -> int:
    """Check the state database opens and answers. Returns an exit code."""
    config = get_config()
    namespace = ActorNamespace(settings=config)
    try:
        namespace.db.ping()
    except Exception as e:  # Intentionally broad: report any failure as unhealthy
        print(f"State database {config.state_db_path}: error: {e}", file=sys.stderr)
        return 1
    finally:
        namespace.close()
    print(f"State database {config.state_db_path}: ok")
    return 0


async def serve(session_id: str) -> None:
    """Serve one session's actor until stdin closes."""
    namespace = ActorNamespace()
    try:
        actor = await namespace.get(STDIO_SESSION_PREFIX + session_id)
        if actor.server is None:
            raise RuntimeError(f"Session actor {actor.session_id} has no MCP server ({actor.status.value})")

        async with stdio_server() as (read_stream, write_stream):
            await actor.server.run(read_stream, write_stream, actor.server.create_initialization_options())
    finally:
        namespace.close()


def run() -> None:
    """Run the stdio MCP server."""
    parser = argparse.ArgumentParser(description="Dynamic Supabase MCP server (stdio)")
    parser.add_argument("--health-check", action="store_true", help="Check the state database and exit")
    parser.add_argument(
        "--session-id",
        default=None,
        help="Resume a named session (its configuration is kept across runs). Default: a fresh session",
    )
    args = parser.parse_args()

    # stdout carries the protocol; logs go to stderr
    configure_logging()

    if args.health_check:
        sys.exit(cli_health_check())

    session_id = args.session_id or ActorNamespace.new_session_id()
    logger.info(f"Dynamic Supabase MCP server starting on stdio (session {session_id})")
    asyncio.run(serve(session_id))


if __name__ == "__main__":
    run()
