# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Supabase client factory.

Clients are built from explicit credentials every time a tool needs one.
Nothing is cached: credentials can change mid-session through the
``configure`` tool, and a cached client would keep serving the old ones.

``SupabaseClient`` is a thin PostgREST client over httpx. Building one does
no network I/O; requests happen only in ``rpc``. Backend failures come back
as an ``RpcError`` inside the ``RpcResponse`` instead of being raised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class RpcError:
    """Error reported by PostgREST (or by the transport)."""

    message: str
    code: str | None = None
    details: str | None = None
    hint: str | None = None

    @classmethod
    def from_body(cls, body: Any, fallback: str) -> RpcError:
        if isinstance(body, dict):
            return cls(
                message=str(body.get("message") or body.get("error") or fallback),
                code=_opt_str(body.get("code")),
                details=_opt_str(body.get("details")),
                hint=_opt_str(body.get("hint")),
            )
        return cls(message=fallback)


@dataclass(frozen=True)
class RpcResponse:
    """Result of an RPC call: exactly one of ``data``/``error`` is meaningful."""

    data: Any = None
    error: RpcError | None = None


class SupabaseClient:
    """Minimal Supabase REST client bound to one set of credentials."""

    def __init__(
        self,
        endpoint_url: str,
        key: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint_url = endpoint_url.rstrip("/")
        self._key = key
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT
        self._transport = transport

    def __repr__(self) -> str:
        return f"SupabaseClient(endpoint_url={self.endpoint_url!r})"

    @property
    def rest_url(self) -> str:
        return f"{self.endpoint_url}/rest/v1"

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> RpcResponse:
        """Call a Postgres function exposed through PostgREST."""
        url = f"{self.rest_url}/rpc/{function}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, headers=self._headers(), json=params or {})
        except httpx.TimeoutException:
            logger.warning(f"Supabase RPC {function} timed out after {self.timeout}s")
            return RpcResponse(error=RpcError(message=f"Request to {self.endpoint_url} timed out"))
        except httpx.HTTPError as e:
            logger.warning(f"Supabase RPC {function} failed: {e}")
            return RpcResponse(error=RpcError(message=f"Cannot connect to {self.endpoint_url}: {e}"))

        return self._handle_response(resp)

    def _handle_response(self, resp: httpx.Response) -> RpcResponse:
        """Parse a PostgREST response into data or error."""
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except json.JSONDecodeError:
                body = None
            fallback = resp.text or f"HTTP {resp.status_code}"
            return RpcResponse(error=RpcError.from_body(body, fallback))

        if resp.status_code == 204 or not resp.content:
            return RpcResponse(data=None)

        try:
            return RpcResponse(data=resp.json())
        except json.JSONDecodeError:
            return RpcResponse(error=RpcError(message="Supabase returned a non-JSON response"))


def create_client(
    endpoint_url: str | None,
    key: str | None,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SupabaseClient:
    """Create a client authenticated with the project's anon key.

    Raises:
        ConfigurationError: If the URL or key is missing.
    """
    missing = [name for name, value in (("endpoint_url", endpoint_url), ("key", key)) if not value]
    if missing:
        raise ConfigurationError(
            "Supabase URL and anon key are required to create a client.",
            missing=missing,
        )
    return SupabaseClient(endpoint_url, key, timeout=timeout, transport=transport)  # type: ignore[arg-type]


def create_service_client(
    endpoint_url: str | None,
    service_key: str | None,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SupabaseClient:
    """Create a client authenticated with the service role key.

    Raises:
        ConfigurationError: If the URL or service key is missing.
    """
    missing = [
        name for name, value in (("endpoint_url", endpoint_url), ("service_key", service_key)) if not value
    ]
    if missing:
        raise ConfigurationError(
            "Supabase URL and service role key are required to create a service role client.",
            missing=missing,
        )
    return SupabaseClient(endpoint_url, service_key, timeout=timeout, transport=transport)  # type: ignore[arg-type]


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)
