"""Session actor, its tool registry and durable state."""

from .actor import ActorState, SessionActor
from .namespace import ActorNamespace
from .registry import ToolEntry, ToolRegistry
from .state import SessionState, SessionStateStore, StateDatabase

__all__ = [
    "ActorNamespace",
    "ActorState",
    "SessionActor",
    "SessionState",
    "SessionStateStore",
    "StateDatabase",
    "ToolEntry",
    "ToolRegistry",
]
