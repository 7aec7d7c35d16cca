# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Dynamic Supabase MCP - session-scoped database tools for AI agents.

Each MCP session is served by one durable session actor. The actor keeps the
session's Supabase credentials in an embedded state store, builds a fresh
Supabase client from them whenever a tool needs one, and dispatches
schema-validated tool calls, always answering with a ``ToolResult``.

Architecture:
  HTTP app (Starlette, JSON-RPC)
    → ActorNamespace (one actor per session)
    → SessionActor (registry + state store)
    → Supabase (PostgREST over httpx)

Entry point: ``dynamic-supabase-server``
"""

__version__ = "1.0.0"
