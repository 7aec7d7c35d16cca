"""Shared primitives: configuration, errors, logging, results, Supabase client."""

from .exceptions import (
    ActorNotReadyError,
    BackendError,
    ConfigurationError,
    DynamicSupabaseException,
    InvalidInputError,
    NotConfiguredError,
    ParseError,
    UnknownToolError,
)
from .response import TextContent, ToolResult
from .supabase import RpcError, RpcResponse, SupabaseClient, create_client, create_service_client

__all__ = [
    "ActorNotReadyError",
    "BackendError",
    "ConfigurationError",
    "DynamicSupabaseException",
    "InvalidInputError",
    "NotConfiguredError",
    "ParseError",
    "RpcError",
    "RpcResponse",
    "SupabaseClient",
    "TextContent",
    "ToolResult",
    "UnknownToolError",
    "create_client",
    "create_service_client",
]
