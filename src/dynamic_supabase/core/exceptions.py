# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for dynamic_supabase.

Every error a tool call can run into has its own type here. None of them
are allowed to escape a session actor: the registry and the actor catch
them and turn them into failed ``ToolResult`` values.
"""

from __future__ import annotations

from typing import Any


class DynamicSupabaseException(Exception):  # noqa: N818
    """Base exception for all dynamic_supabase errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(DynamicSupabaseException):
    """Tool input did not match the tool's schema.

    ``errors`` carries the validator's structured error list.
    """

    def __init__(self, tool_name: str, errors: list[dict[str, Any]]):
        summary = "; ".join(_format_validation_error(e) for e in errors) or "invalid input"
        super().__init__(
            f"Invalid input for tool '{tool_name}': {summary}",
            {"tool_name": tool_name, "errors": errors},
        )
        self.tool_name = tool_name
        self.errors = errors


class NotConfiguredError(DynamicSupabaseException):
    """The session has no Supabase credentials yet."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "Error: Supabase instance not configured for this session. "
            "Please call 'configure' first."
        )


class BackendError(DynamicSupabaseException):
    """The Supabase backend reported an error."""

    def __init__(self, message: str, code: str | None = None):
        details = {}
        if code:
            details["code"] = code
        super().__init__(message, details)
        self.code = code


class ParseError(DynamicSupabaseException):
    """The backend response did not have the expected shape."""

    pass


class UnknownToolError(DynamicSupabaseException):
    """No tool is registered under the requested name."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", {"tool_name": tool_name})
        self.tool_name = tool_name


class ActorNotReadyError(DynamicSupabaseException):
    """The session actor did not finish initialization."""

    def __init__(self, session_id: str, state: str):
        super().__init__(
            f"Session actor {session_id} is not ready (state: {state})",
            {"session_id": session_id, "state": state},
        )
        self.session_id = session_id
        self.state = state


class ConfigurationError(DynamicSupabaseException):
    """Credentials are missing when a client has to be built."""

    def __init__(self, message: str, missing: list[str] | None = None):
        details = {}
        if missing:
            details["missing"] = missing
        super().__init__(message, details)
        self.missing = missing or []


def _format_validation_error(error: dict[str, Any]) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    msg = error.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg
