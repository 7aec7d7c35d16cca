"""Server-specific test fixtures."""

from __future__ import annotations

import time
from collections.abc import Callable, Generator
from typing import Any

import jwt
import pytest
from starlette.testclient import TestClient

JWT_SECRET = "test-jwt-secret-for-testing-only-0123456789"
BASE_URL = "http://127.0.0.1:8787"
RESOURCE_URL = f"{BASE_URL}/sse"


@pytest.fixture
def server_env(monkeypatch, clean_env):
    """Set up server environment variables."""
    monkeypatch.setenv("DSMCP_HOST", "127.0.0.1")
    monkeypatch.setenv("DSMCP_PORT", "8787")
    monkeypatch.setenv("DSMCP_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("DSMCP_STATE_DB_PATH", ":memory:")


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Build access tokens the way the OAuth provider signs them."""

    def _make(secret: str = JWT_SECRET, **overrides: Any) -> str:
        now = int(time.time())
        claims: dict[str, Any] = {
            "sub": "user-1",
            "client_id": "client-1",
            "aud": RESOURCE_URL,
            "iss": BASE_URL,
            "iat": now,
            "exp": now + 3600,
            "scope": "mcp",
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jwt.encode(claims, secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def namespace(server_env, client_factory):
    """Namespace backed by an in-memory database and the stub Supabase client."""
    from dynamic_supabase.agent.namespace import ActorNamespace
    from dynamic_supabase.agent.state import StateDatabase
    from dynamic_supabase.server.config import get_settings

    return ActorNamespace(db=StateDatabase(":memory:"), settings=get_settings(), client_factory=client_factory)


@pytest.fixture
def test_client(namespace) -> Generator[TestClient, None, None]:
    """Test client running the app lifespan."""
    from dynamic_supabase.server.app import create_app

    with TestClient(create_app(namespace), raise_server_exceptions=False) as client:
        yield client
