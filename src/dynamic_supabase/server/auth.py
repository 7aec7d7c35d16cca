# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Authorization boundary for the MCP endpoint.

Access tokens are issued by an external OAuth provider (authorize, token
and client registration endpoints live there). This server only checks
that a request carries a valid Bearer JWT for this resource and turns it
into an ``AuthenticatedClient``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import jwt
from starlette.requests import Request
from starlette.responses import JSONResponse

from .config import get_settings
from .errors import RPC_UNAUTHORIZED, rpc_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedClient:
    """Identity of an authorized caller."""

    client_id: str
    user_id: str | None = None
    scope: str | None = None
    auth_method: str = "oauth"  # "oauth" or "anonymous"

    @property
    def principal(self) -> str:
        """Stable identity that owns the caller's sessions."""
        return self.user_id or self.client_id


ANONYMOUS_CLIENT = AuthenticatedClient(client_id="anonymous", auth_method="anonymous")


def verify_access_token(token: str, expected_audience: str) -> dict[str, Any] | None:
    """Verify a JWT access token.

    Returns the payload if valid, None otherwise.
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=expected_audience,
            issuer=settings.issuer_url,
        )
        return payload
    except jwt.ExpiredSignatureError:
        logger.debug("Token expired")
        return None
    except jwt.InvalidAudienceError:
        logger.debug("Invalid audience")
        return None
    except jwt.InvalidIssuerError:
        logger.debug("Invalid issuer")
        return None
    except jwt.PyJWTError as e:
        logger.debug(f"JWT verification failed: {e}")
        return None


def authenticate_request(request: Request) -> AuthenticatedClient | None:
    """Authenticate a request from its Bearer token.

    Returns:
        AuthenticatedClient if valid (or if authorization is disabled), None otherwise
    """
    settings = get_settings()
    if not settings.auth_enabled:
        return ANONYMOUS_CLIENT

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None

    payload = verify_access_token(auth_header[7:], settings.mcp_resource_url)
    if payload is None:
        return None

    client_id = payload.get("client_id") or payload.get("azp") or payload.get("sub")
    if not client_id:
        logger.debug("Token has no client identity")
        return None

    return AuthenticatedClient(
        client_id=str(client_id),
        user_id=payload.get("sub"),
        scope=payload.get("scope"),
    )


def unauthorized_response() -> JSONResponse:
    """401 JSON-RPC error pointing clients at the resource metadata (RFC 9728)."""
    settings = get_settings()
    resource_metadata_url = f"{settings.base_url}/.well-known/oauth-protected-resource"
    www_auth = f'Bearer realm="mcp", resource_metadata="{resource_metadata_url}"'

    return JSONResponse(
        rpc_error(RPC_UNAUTHORIZED, "Unauthorized: Invalid or missing authentication token"),
        status_code=401,
        headers={"WWW-Authenticate": www_auth},
    )
