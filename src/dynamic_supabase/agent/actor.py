# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Session actor: one long-lived object per MCP session.

The actor owns the session's tool registry and durable state store. It goes
through ``UNINITIALIZED -> INITIALIZING -> READY`` exactly once; if
initialization fails it ends in ``FAILED`` and answers every call with an
``ActorNotReadyError`` failure instead of raising.

Once ready, calls are independent of each other. They share the state
store, whose reads and updates are atomic individually; a read-modify-write
spanning a backend request is not serialized unless ``serialize_calls`` is
set, in which case one lock per actor is held for each whole call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, nullcontext
from enum import StrEnum
from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool

from ..core.exceptions import ActorNotReadyError
from ..core.logging import call_context
from ..core.response import ToolResult
from ..core.supabase import create_client
from .registry import ToolRegistry
from .state import SessionState, SessionStateStore, StateDatabase
from .tools import ClientFactory, register_default_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "cf-dynamic-supabase-mcp"
SERVER_VERSION = "1.0.0"

ServerFactory = Callable[[str, str], Server]


class ActorState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ToolCallFailed(Exception):
    """Carries a failed ToolResult's message through the MCP server."""


def _default_server_factory(name: str, version: str) -> Server:
    return Server(name, version=version)


class SessionActor:
    """Holds one session's configuration and runs its tool calls."""

    def __init__(
        self,
        session_id: str,
        db: StateDatabase,
        *,
        initial_state: SessionState | None = None,
        client_factory: ClientFactory = create_client,
        server_factory: ServerFactory = _default_server_factory,
        serialize_calls: bool = False,
    ):
        self.session_id = session_id
        self.store = SessionStateStore(
            db,
            session_id,
            initial_state=initial_state,
            on_update=self._on_state_update,
        )
        self.registry = ToolRegistry()
        self.server: Server | None = None
        self.status = ActorState.UNINITIALIZED
        self._client_factory = client_factory
        self._server_factory = server_factory
        self._call_lock = asyncio.Lock() if serialize_calls else None

    def __repr__(self) -> str:
        return f"SessionActor(session_id={self.session_id!r}, status={self.status.value!r})"

    @property
    def is_ready(self) -> bool:
        return self.status is ActorState.READY

    @property
    def state(self) -> SessionState:
        """Current persisted session state."""
        return self.store.read()

    def init(self) -> None:
        """Build the protocol server and register tools. Runs once."""
        if self.status is not ActorState.UNINITIALIZED:
            return

        self.status = ActorState.INITIALIZING
        logger.info(f"Session actor {self.session_id} initializing...")
        try:
            self.server = self._server_factory(SERVER_NAME, SERVER_VERSION)
            if self.server is None:
                raise RuntimeError("protocol server was not constructed")
            self._wire_server(self.server)
            register_default_tools(self.registry, self._client_factory)
            # Make sure the durable record exists before the first call
            self.store.read()
        except Exception:  # Intentionally broad: any init failure leaves the actor FAILED
            logger.exception(f"Session actor {self.session_id} failed to initialize")
            self.status = ActorState.FAILED
            return

        self.status = ActorState.READY
        logger.info(f"Session actor {self.session_id} init complete ({len(self.registry)} tools).")

    def _wire_server(self, server: Server) -> None:
        """Route the MCP server's tool requests to this actor."""

        @server.list_tools()
        async def list_tools() -> list[Tool]:
            return self.list_tools()

        @server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            result = await self.call_tool(name, arguments)
            if result.is_error:
                # The MCP server reports raised errors as isError results
                raise ToolCallFailed(result.message)
            return result.to_mcp_content()

    def list_tools(self) -> list[Tool]:
        """Tool definitions; empty unless the actor is ready."""
        if not self.is_ready:
            return []
        return self.registry.list_tools()

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Run a tool call for this session. Never raises."""
        with call_context(self.session_id):
            if not self.is_ready:
                error = ActorNotReadyError(self.session_id, self.status.value)
                logger.error(error.message)
                return ToolResult.failure(error.message, type(error).__name__)

            lock: AbstractAsyncContextManager = self._call_lock or nullcontext()
            async with lock:
                return await self.registry.dispatch(name, arguments, self.store)

    def _on_state_update(self, new: SessionState, old: SessionState) -> None:
        logger.debug(
            f"Session {self.session_id} state updated",
            extra={"extra_data": {"old": old.redacted(), "new": new.redacted()}},
        )
