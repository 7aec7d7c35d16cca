"""Global test fixtures for the dynamic_supabase test suite."""

from __future__ import annotations

import os
from collections.abc import Generator
from typing import Any

import pytest

from dynamic_supabase.agent.state import SessionState, SessionStateStore, StateDatabase
from dynamic_supabase.core.supabase import RpcError, RpcResponse

TEST_URL = "https://abcd.supabase.co"
TEST_ANON_KEY = "anon-key-123"
TEST_SERVICE_KEY = "service-key-456"


# ============================================================================
# Environment / cached settings
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all DSMCP_ and SUPABASE_ environment variables."""
    env_prefixes = ("DSMCP_", "SUPABASE_")
    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in env_prefixes):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_settings_caches():
    """Reset the lazily created settings singletons between tests."""
    import dynamic_supabase.core.config as core_config
    import dynamic_supabase.server.config as server_config

    core_config._config = None
    server_config._settings = None
    yield
    core_config._config = None
    server_config._settings = None


# ============================================================================
# State store fixtures
# ============================================================================


@pytest.fixture
def state_db() -> Generator[StateDatabase, None, None]:
    """In-memory state database."""
    db = StateDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def store(state_db) -> SessionStateStore:
    """Store for a fresh, unconfigured session."""
    return SessionStateStore(state_db, "session-1")


@pytest.fixture
def configured_state() -> SessionState:
    return SessionState(is_configured=True, endpoint_url=TEST_URL, anon_key=TEST_ANON_KEY)


# ============================================================================
# Supabase client stubs
# ============================================================================


class StubClient:
    """Stands in for SupabaseClient; records RPC calls."""

    def __init__(self, endpoint_url: str, key: str, response: RpcResponse):
        self.endpoint_url = endpoint_url
        self.key = key
        self.response = response
        self.calls: list[tuple[str, dict[str, Any] | None]] = []

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> RpcResponse:
        self.calls.append((function, params))
        return self.response


class StubClientFactory:
    """Client factory returning StubClients that all answer ``response``."""

    def __init__(self, response: RpcResponse | None = None):
        self.response = response or RpcResponse(data=[])
        self.clients: list[StubClient] = []

    def __call__(self, endpoint_url: str, key: str) -> StubClient:
        client = StubClient(endpoint_url, key, self.response)
        self.clients.append(client)
        return client

    @property
    def rpc_calls(self) -> list[tuple[str, dict[str, Any] | None]]:
        return [call for client in self.clients for call in client.calls]

    def respond_with(self, data: Any = None, error: RpcError | None = None) -> None:
        self.response = RpcResponse(data=data, error=error)


@pytest.fixture
def client_factory() -> StubClientFactory:
    return StubClientFactory()


@pytest.fixture
def sample_tables() -> list[dict[str, Any]]:
    return [
        {"schema": "public", "name": "todos", "comment": "Things to do"},
        {"schema": "public", "name": "users", "comment": None},
    ]
