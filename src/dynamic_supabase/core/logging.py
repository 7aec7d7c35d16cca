# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Logging for dynamic_supabase.

Every tool call runs inside a ``call_context`` that names its session and a
fresh call id. ``CallScopeFilter`` stamps both onto each record emitted
during the call, so interleaved calls of many sessions can be told apart in
either output format.

Usage:
    from dynamic_supabase.core.logging import call_context, configure_logging

    configure_logging()
    with call_context(session_id) as scope:
        logger.info("listing tables")  # tagged with scope.session_id / scope.call_id
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import CoreSettings
    from .response import ToolResult

REDACTED = "[REDACTED]"
MAX_LOGGED_STRING = 200

# Argument names containing any of these never have their values logged
SECRET_MARKERS = ("key", "secret", "token", "password", "auth")


@dataclass(frozen=True)
class CallScope:
    """Identifies one tool call of one session."""

    session_id: str
    call_id: str

    @property
    def tag(self) -> str:
        return f"{self.session_id[:8]}/{self.call_id[:8]}"


_current_scope: ContextVar[CallScope | None] = ContextVar("dynamic_supabase_call_scope", default=None)


def current_scope() -> CallScope | None:
    """The call scope of the running task, if any."""
    return _current_scope.get()


@contextmanager
def call_context(session_id: str, call_id: str | None = None) -> Iterator[CallScope]:
    """Run the enclosed block as one call of ``session_id``.

    Args:
        session_id: The session the call belongs to.
        call_id: Id for the call; a new UUID when omitted.

    Yields:
        The active ``CallScope``.
    """
    scope = CallScope(session_id=session_id, call_id=call_id or uuid.uuid4().hex)
    token = _current_scope.set(scope)
    try:
        yield scope
    finally:
        _current_scope.reset(token)


class CallScopeFilter(logging.Filter):
    """Attach the current call scope to records as ``call_scope`` / ``scope_tag``."""

    def filter(self, record: logging.LogRecord) -> bool:
        scope = current_scope()
        record.call_scope = scope
        record.scope_tag = f"[{scope.tag}] " if scope else ""
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; used for files and non-tty output."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        scope: CallScope | None = getattr(record, "call_scope", None)
        if scope is not None:
            entry["session_id"] = scope.session_id
            entry["call_id"] = scope.call_id

        if record.levelno >= logging.WARNING:
            entry["source"] = f"{record.module}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "extra_data", None)
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line human-readable format with the scope tag before the message."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(scope_tag)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "scope_tag"):
            record.scope_tag = ""
        return super().format(record)


def configure_logging(settings: CoreSettings | None = None) -> None:
    """Install the stderr handler (and optional file handler) on the root logger.

    Level, format and file come from ``settings`` (``DSMCP_LOG_LEVEL``,
    ``DSMCP_LOG_FORMAT``, ``DSMCP_LOG_FILE``). An empty format picks JSON
    unless stderr is a terminal. Files are always written as JSON.
    """
    if settings is None:
        from .config import get_config

        settings = get_config()

    log_format = settings.log_format.lower()
    use_json = log_format == "json" or (log_format != "text" and not sys.stderr.isatty())

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if use_json else TextFormatter())
    console.addFilter(CallScopeFilter())
    root.addHandler(console)

    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(CallScopeFilter())
        root.addHandler(file_handler)

    # Request lines from the Supabase client would repeat every tool result
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def redact(value: Any) -> Any:
    """Copy of tool arguments safe to log: credentials hidden, long strings cut."""
    if isinstance(value, Mapping):
        return {
            k: (REDACTED if v is not None and any(m in str(k).lower() for m in SECRET_MARKERS) else redact(v))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    if isinstance(value, str) and len(value) > MAX_LOGGED_STRING:
        return value[:MAX_LOGGED_STRING] + "..."
    return value


class ToolCallLogger:
    """Logs the start and outcome of each tool call."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("dynamic_supabase.tools")

    def started(self, session_id: str, tool_name: str, arguments: Mapping[str, Any]) -> None:
        self.logger.debug(
            f"{tool_name} called",
            extra={"extra_data": {"session_id": session_id, "tool": tool_name, "arguments": redact(arguments)}},
        )

    def finished(self, session_id: str, tool_name: str, result: ToolResult, duration_ms: float) -> None:
        """Log the outcome; failures at INFO with their error kind, successes at DEBUG."""
        data: dict[str, Any] = {
            "session_id": session_id,
            "tool": tool_name,
            "duration_ms": round(duration_ms, 1),
        }
        if result.is_error:
            kind = result.error_kind or "Error"
            data["error_kind"] = kind
            self.logger.info(f"{tool_name} failed ({kind}) in {duration_ms:.1f}ms", extra={"extra_data": data})
        else:
            self.logger.debug(f"{tool_name} ok in {duration_ms:.1f}ms", extra={"extra_data": data})


tool_logger = ToolCallLogger()
