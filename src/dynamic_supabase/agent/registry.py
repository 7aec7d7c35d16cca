# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Tool registry: name -> (input schema, handler).

The registry is filled once when a session actor initializes and is never
changed afterwards. ``dispatch`` is the single entry point for running a
tool and never raises: unknown tools, invalid input and handler errors all
come back as failed ``ToolResult`` values.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from mcp.types import Tool
from pydantic import BaseModel, ValidationError

from ..core.exceptions import DynamicSupabaseException, InvalidInputError, UnknownToolError
from ..core.logging import tool_logger
from ..core.response import ToolResult
from .state import SessionStateStore

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any, SessionStateStore], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolEntry:
    """A registered tool."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    def definition(self) -> Tool:
        """MCP tool definition with the input model's JSON schema."""
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_model.model_json_schema(by_alias=True),
        )


class ToolRegistry:
    """Static mapping of tool names to validated handlers."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolEntry] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolEntry | None:
        return self._tools.get(name)

    def register(
        self,
        name: str,
        description: str,
        input_model: type[BaseModel],
        handler: ToolHandler,
    ) -> ToolEntry:
        """Register a tool.

        Raises:
            ValueError: If ``name`` is already registered.
        """
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        entry = ToolEntry(name=name, description=description, input_model=input_model, handler=handler)
        self._tools[name] = entry
        logger.debug(f"Registered tool: {name}")
        return entry

    def list_tools(self) -> list[Tool]:
        """MCP definitions of all registered tools, in registration order."""
        return [entry.definition() for entry in self._tools.values()]

    async def dispatch(
        self,
        name: str,
        raw_input: dict[str, Any] | None,
        store: SessionStateStore,
    ) -> ToolResult:
        """Validate ``raw_input`` and run the named tool against ``store``."""
        arguments = raw_input or {}
        tool_logger.started(store.session_id, name, arguments)
        start = time.perf_counter()

        result = await self._dispatch(name, arguments, store)

        duration_ms = (time.perf_counter() - start) * 1000
        tool_logger.finished(store.session_id, name, result, duration_ms)
        return result

    async def _dispatch(self, name: str, arguments: dict[str, Any], store: SessionStateStore) -> ToolResult:
        entry = self._tools.get(name)
        if entry is None:
            error: DynamicSupabaseException = UnknownToolError(name)
            logger.warning(error.message)
            return ToolResult.failure(error.message, type(error).__name__)

        try:
            validated = entry.input_model.model_validate(arguments)
        except ValidationError as e:
            error = InvalidInputError(
                name,
                e.errors(include_url=False, include_context=False, include_input=False),
            )
            logger.warning(error.message)
            return ToolResult.failure(error.message, type(error).__name__)

        try:
            return await entry.handler(validated, store)
        except DynamicSupabaseException as e:
            logger.warning(f"{type(e).__name__} in tool {name}: {e.message}")
            return ToolResult.failure(e.message, type(e).__name__)
        except Exception as e:  # Intentionally broad: handler errors must not escape dispatch
            logger.exception(f"Unexpected error in tool {name}")
            return ToolResult.failure(f"Exception: {e}", type(e).__name__)
