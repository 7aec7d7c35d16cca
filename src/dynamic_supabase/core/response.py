# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Tool result envelope.

Every tool call answers with a ``ToolResult``: either an ordered list of
text payloads, or a single failure message flagged with ``is_error``.

Usage::

    from dynamic_supabase.core.response import ToolResult

    # Success
    return ToolResult.ok("5")

    # Failure
    return ToolResult.failure("Failed to parse list_tables output.")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from mcp.types import TextContent as MCPTextContent


@dataclass(frozen=True)
class TextContent:
    """A single text payload of a tool result."""

    text: str
    type: Literal["text"] = "text"

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool call.

    Attributes:
        content:  Ordered text payloads. A failure carries exactly one,
                  holding the error message.
        is_error: True for failures; surfaced as the MCP ``isError`` flag.
        error_kind: Name of the error behind a failure, for logs only. Not part
                    of equality or of the wire shape.
    """

    content: tuple[TextContent, ...] = field(default_factory=tuple)
    is_error: bool = False
    error_kind: str | None = field(default=None, compare=False)

    @classmethod
    def ok(cls, *texts: str) -> ToolResult:
        """Create a successful result from one or more text payloads."""
        return cls(content=tuple(TextContent(text=t) for t in texts))

    @classmethod
    def failure(cls, message: str, kind: str | None = None) -> ToolResult:
        """Create a failed result carrying ``message``."""
        return cls(content=(TextContent(text=message),), is_error=True, error_kind=kind)

    @property
    def message(self) -> str:
        """Concatenated text of all payloads."""
        return "\n".join(c.text for c in self.content)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the MCP ``tools/call`` result shape."""
        return {
            "content": [c.to_dict() for c in self.content],
            "isError": self.is_error,
        }

    def to_mcp_content(self) -> list[MCPTextContent]:
        """Convert the payloads to MCP SDK content objects."""
        return [MCPTextContent(type="text", text=c.text) for c in self.content]
