# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Starlette ASGI application for the HTTP MCP server.

Exposes the session tools over MCP JSON-RPC on a single API route
(``/sse`` by default). Requests must carry an access token issued by the
external OAuth provider; the session is named by the ``Mcp-Session-Id``
header and served by that session's actor. Anything not routed here gets
Starlette's default 404.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..agent.actor import SessionActor
from ..agent.namespace import ActorNamespace
from ..agent.registry import ToolRegistry
from ..agent.tools import register_default_tools
from .auth import AuthenticatedClient, authenticate_request, unauthorized_response
from .config import ServerSettings, get_settings
from .errors import (
    RPC_INTERNAL_ERROR,
    RPC_INVALID_PARAMS,
    RPC_INVALID_REQUEST,
    RPC_METHOD_NOT_FOUND,
    RPC_PARSE_ERROR,
    feature_not_enabled_error,
    missing_field_error,
    not_found_error,
    rpc_error,
)

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[-1]


class MethodNotFoundError(Exception):
    pass


class InvalidParamsError(Exception):
    pass


class InvalidRequestError(Exception):
    pass


@dataclass
class RpcContext:
    """Per-HTTP-request context shared by every JSON-RPC message in it."""

    client: AuthenticatedClient
    namespace: ActorNamespace
    session_id: str | None = None

    def actor_key(self, session_id: str) -> str:
        # Session ids are namespaced per caller
        return f"{self.client.principal}/{session_id}"

    async def actor(self, create: bool = False) -> SessionActor:
        if self.session_id is None:
            if not create:
                raise InvalidRequestError(f"Missing {SESSION_HEADER} header; call initialize first")
            self.session_id = self.namespace.new_session_id()
        return await self.namespace.get(self.actor_key(self.session_id))


def _namespace(request: Request) -> ActorNamespace:
    return request.app.state.namespace


async def info_endpoint(request: Request) -> JSONResponse:
    """Server info endpoint (no auth required)."""
    settings = get_settings()

    registry = ToolRegistry()
    register_default_tools(registry)

    response_data: dict[str, Any] = {
        "server": settings.server_name,
        "version": settings.server_version,
        "protocol": "mcp",
        "protocolVersion": LATEST_PROTOCOL_VERSION,
        "transport": "http",
        "tools": registry.names,
        "endpoints": {
            "mcp": settings.api_route,
            "health": "/health",
            "info": "/",
        },
        "authentication": {
            "methods": ["oauth2"] if settings.auth_enabled else [],
        },
    }
    if settings.auth_enabled:
        response_data["authentication"]["protected_resource_metadata"] = "/.well-known/oauth-protected-resource"

    return JSONResponse(response_data)


async def health_endpoint(request: Request) -> JSONResponse:
    """Health check endpoint."""
    settings = get_settings()
    namespace = _namespace(request)

    health_data: dict[str, Any] = {
        "status": "healthy",
        "server": settings.server_name,
        "version": settings.server_version,
        "sessions": len(namespace),
    }

    try:
        namespace.db.ping()
        health_data["state_store"] = "connected"
    except Exception as e:  # Intentionally broad: health check should report all errors
        health_data["state_store"] = f"error: {e}"
        health_data["status"] = "degraded"

    status_code = 200 if health_data["status"] == "healthy" else 503
    return JSONResponse(health_data, status_code=status_code)


async def protected_resource_metadata(request: Request) -> JSONResponse:
    """RFC 9728 Protected Resource Metadata.

    Tells clients which authorization server issues tokens for this resource.
    """
    settings = get_settings()
    if not settings.auth_enabled:
        return feature_not_enabled_error("Authorization")

    return JSONResponse(
        {
            "resource": settings.mcp_resource_url,
            "authorization_servers": [settings.authorization_server_url or settings.base_url],
            "bearer_methods_supported": ["header"],
        }
    )


async def mcp_endpoint(request: Request) -> Response:
    """MCP endpoint for tool calls.

    Handles MCP JSON-RPC requests (single or batch) for one session.
    """
    client = authenticate_request(request)
    if client is None:
        return unauthorized_response()

    ctx = RpcContext(
        client=client,
        namespace=_namespace(request),
        session_id=request.headers.get(SESSION_HEADER) or None,
    )

    try:
        body = await request.body()
        rpc_request = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"MCP parse error: {e}")
        return JSONResponse(rpc_error(RPC_PARSE_ERROR, "Parse error"), status_code=400)

    try:
        if isinstance(rpc_request, list):
            if not rpc_request:
                return JSONResponse(rpc_error(RPC_INVALID_REQUEST, "Invalid Request: empty batch"), status_code=400)
            responses = []
            for req in rpc_request:
                response = await _handle_rpc_request(req, ctx)
                if response is not None:
                    responses.append(response)
            if not responses:
                return Response(status_code=202, headers=_session_headers(ctx))
            return JSONResponse(responses, headers=_session_headers(ctx))

        response = await _handle_rpc_request(rpc_request, ctx)
        if response is None:
            return Response(status_code=202, headers=_session_headers(ctx))
        return JSONResponse(response, headers=_session_headers(ctx))

    except Exception:  # Intentionally broad: top-level MCP endpoint handler
        logger.exception("Error handling MCP request")
        return JSONResponse(rpc_error(RPC_INTERNAL_ERROR, "Internal error"), status_code=500)


async def end_session_endpoint(request: Request) -> JSONResponse:
    """Terminate the caller's session and delete its state."""
    client = authenticate_request(request)
    if client is None:
        return unauthorized_response()

    session_id = request.headers.get(SESSION_HEADER)
    if not session_id:
        return missing_field_error(SESSION_HEADER)

    ctx = RpcContext(client=client, namespace=_namespace(request), session_id=session_id)
    if not await ctx.namespace.evict(ctx.actor_key(session_id)):
        return not_found_error("Session")
    return JSONResponse({"success": True, "session_id": session_id})


def _session_headers(ctx: RpcContext) -> dict[str, str]:
    return {SESSION_HEADER: ctx.session_id} if ctx.session_id else {}


async def _handle_rpc_request(request: Any, ctx: RpcContext) -> dict[str, Any] | None:
    """Handle a single JSON-RPC request.

    Returns:
        JSON-RPC response object, or None for notifications
    """
    if not isinstance(request, dict) or request.get("jsonrpc") != "2.0":
        return rpc_error(
            RPC_INVALID_REQUEST,
            "Invalid request: missing or wrong jsonrpc version",
            request.get("id") if isinstance(request, dict) else None,
        )

    method = request.get("method")
    params = request.get("params") or {}
    request_id = request.get("id")

    # Notifications have no id
    is_notification = "id" not in request

    if not method or not isinstance(method, str):
        return rpc_error(RPC_INVALID_REQUEST, "Invalid Request: missing or invalid method", request_id)

    try:
        if not isinstance(params, dict):
            raise InvalidParamsError("params must be an object")
        result = await _dispatch_method(method, params, ctx)
        if is_notification:
            return None
        return {"jsonrpc": "2.0", "result": result, "id": request_id}

    except MethodNotFoundError as e:
        return None if is_notification else rpc_error(RPC_METHOD_NOT_FOUND, str(e), request_id)
    except InvalidParamsError as e:
        return None if is_notification else rpc_error(RPC_INVALID_PARAMS, str(e), request_id)
    except InvalidRequestError as e:
        return None if is_notification else rpc_error(RPC_INVALID_REQUEST, str(e), request_id)
    except Exception:  # Intentionally broad: top-level method handler
        logger.exception(f"Error in method {method}")
        return None if is_notification else rpc_error(RPC_INTERNAL_ERROR, "Internal error", request_id)


async def _dispatch_method(method: str, params: dict[str, Any], ctx: RpcContext) -> Any:
    """Dispatch a method call to the session actor.

    Raises:
        MethodNotFoundError: If method is not found
        InvalidParamsError: If parameters are invalid
        InvalidRequestError: If the request needs a session and has none
    """
    settings = get_settings()

    if method == "initialize":
        actor = await ctx.actor(create=True)
        requested = params.get("protocolVersion")
        return {
            "protocolVersion": requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {
                "name": settings.server_name,
                "version": settings.server_version,
            },
            "instructions": _get_server_instructions(actor),
        }

    elif method in ("notifications/initialized", "initialized", "ping"):
        return {}

    elif method == "tools/list":
        actor = await ctx.actor()
        return {"tools": [tool.model_dump(mode="json", by_alias=True, exclude_none=True) for tool in actor.list_tools()]}

    elif method == "tools/call":
        tool_name = params.get("name")
        arguments = params.get("arguments") or {}

        if not tool_name or not isinstance(tool_name, str):
            raise InvalidParamsError("Missing tool name")
        if not isinstance(arguments, dict):
            raise InvalidParamsError("Tool arguments must be an object")

        actor = await ctx.actor()
        result = await actor.call_tool(tool_name, arguments)
        return result.to_dict()

    else:
        raise MethodNotFoundError(f"Method not found: {method}")


def _get_server_instructions(actor: SessionActor) -> str:
    """Instructions returned in the initialize response."""
    lines = [
        "This server lets you inspect a Supabase database.",
        "Call `configure` with the project's endpointUrl and anonKey before using database tools;",
        "the credentials are kept for this session only.",
    ]
    if actor.is_ready and actor.state.has_credentials:
        lines.append("This session is already configured.")
    return " ".join(lines)


def _lifespan_for(settings: ServerSettings):
    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info(f"Starting {settings.server_name} on {settings.host}:{settings.port} (MCP route {settings.api_route})")
        if not settings.auth_enabled:
            logger.warning("Authorization disabled - all requests are served as the anonymous client")

        yield

        app.state.namespace.close()
        logger.info(f"{settings.server_name} shutting down")

    return lifespan


def create_app(namespace: ActorNamespace | None = None) -> Starlette:
    """Create the Starlette ASGI application."""
    settings = get_settings()

    routes = [
        Route("/", info_endpoint, methods=["GET"]),
        Route("/health", health_endpoint, methods=["GET"]),
        Route("/.well-known/oauth-protected-resource", protected_resource_metadata, methods=["GET"]),
        Route(settings.api_route, mcp_endpoint, methods=["POST"]),
        Route(settings.api_route, end_session_endpoint, methods=["DELETE"]),
    ]

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", SESSION_HEADER],
            expose_headers=[SESSION_HEADER],
        ),
    ]

    app = Starlette(
        routes=routes,
        middleware=middleware,
        lifespan=_lifespan_for(settings),
    )
    app.state.namespace = namespace if namespace is not None else ActorNamespace(settings=settings)
    return app


def run() -> None:
    """Run the server using uvicorn."""
    import uvicorn

    from ..core.logging import configure_logging

    configure_logging()
    settings = get_settings()

    uvicorn.run(
        "dynamic_supabase.server.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
