"""Dynamic Supabase MCP servers.

Serves the session tools over MCP JSON-RPC on HTTP (behind Bearer token
authorization) or over stdio for a single local session.

Usage:
    # HTTP server
    dynamic-supabase-server

    # Or with uvicorn directly
    uvicorn dynamic_supabase.server.app:create_app --factory --port 8787

    # stdio server for a local MCP client
    dynamic-supabase-mcp --session-id my-project
"""

from .auth import AuthenticatedClient, authenticate_request, verify_access_token
from .config import ServerSettings, get_settings

__all__ = [
    "AuthenticatedClient",
    "ServerSettings",
    "authenticate_request",
    "get_settings",
    "verify_access_token",
]
