"""Tests for the built-in session tools."""

from __future__ import annotations

import json

import pytest

from dynamic_supabase.agent.registry import ToolRegistry
from dynamic_supabase.agent.state import SessionState
from dynamic_supabase.agent.tools import (
    EXECUTE_SQL_FUNCTION,
    LIST_TABLES_SQL,
    ConfigureInput,
    register_default_tools,
)
from dynamic_supabase.core.exceptions import ConfigurationError
from dynamic_supabase.core.response import ToolResult
from dynamic_supabase.core.supabase import RpcError

URL = "https://abcd.supabase.co"

NOT_CONFIGURED = "Error: Supabase instance not configured for this session. Please call 'configure' first."


@pytest.fixture
def registry(client_factory) -> ToolRegistry:
    registry = ToolRegistry()
    register_default_tools(registry, client_factory)
    return registry


async def _configure(registry, store, **arguments):
    arguments = {"endpointUrl": URL, "anonKey": "anon", **arguments}
    return await registry.dispatch("configure", arguments, store)


class TestRegistration:
    def test_default_tools(self, registry):
        assert registry.names == ["configure", "add", "list_tables"]

    def test_configure_schema(self, registry):
        schema = registry.get("configure").definition().inputSchema

        assert set(schema["properties"]) == {"endpointUrl", "anonKey", "serviceKey"}
        assert schema["properties"]["endpointUrl"]["format"] == "uri"
        assert sorted(schema["required"]) == ["anonKey", "endpointUrl"]

    def test_list_tables_takes_no_arguments(self, registry):
        schema = registry.get("list_tables").definition().inputSchema
        assert schema.get("properties", {}) == {}


class TestConfigure:
    async def test_sets_state_exactly(self, registry, store):
        result = await _configure(registry, store, serviceKey="svc")

        assert result == ToolResult.ok(f"Session configured for Supabase instance: {URL}")
        assert store.read() == SessionState(
            is_configured=True,
            endpoint_url=URL,
            anon_key="anon",
            service_key="svc",
        )

    async def test_url_stored_as_given(self, registry, store):
        await _configure(registry, store, endpointUrl="https://x", anonKey="k")

        state = store.read()
        assert state.is_configured is True
        assert state.endpoint_url == "https://x"
        assert state.anon_key == "k"

    async def test_second_configure_replaces_first(self, registry, store):
        await _configure(registry, store, serviceKey="svc")

        await _configure(registry, store, endpointUrl="https://efgh.supabase.co", anonKey="anon-2")

        assert store.read() == SessionState(
            is_configured=True,
            endpoint_url="https://efgh.supabase.co",
            anon_key="anon-2",
            service_key=None,
        )

    @pytest.mark.parametrize("url", ["", "not a url", "ftp://abcd.supabase.co"])
    async def test_rejects_bad_url(self, registry, store, url):
        result = await _configure(registry, store, endpointUrl=url)

        assert result.is_error is True
        assert result.message.startswith("Invalid input for tool 'configure': endpointUrl")
        assert store.read().is_configured is False

    async def test_rejects_empty_anon_key(self, registry, store):
        result = await _configure(registry, store, anonKey="")

        assert result.is_error is True
        assert "anonKey" in result.message

    async def test_missing_fields(self, registry, store):
        result = await registry.dispatch("configure", {}, store)

        assert result.is_error is True
        assert "endpointUrl: Field required" in result.message
        assert "anonKey: Field required" in result.message

    def test_input_accepts_field_names(self):
        params = ConfigureInput(endpoint_url=URL, anon_key="anon")
        assert params.service_key is None


class TestAdd:
    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            (2, 3, "5"),
            (-1, 1, "0"),
            (2.5, 0.5, "3"),
            (1.5, 1, "2.5"),
            (0.1, 0.2, "0.30000000000000004"),
            (1e20, 0, "100000000000000000000"),
            (1e21, 0, "1e+21"),
            (10**21, 0, "1e+21"),
            (1.5e300, 1.5e300, "3e+300"),
            (0.000001, 0, "0.000001"),
            (1e-7, 0, "1e-7"),
            (-2.5e-7, 0, "-2.5e-7"),
            (1e308, 1e308, "Infinity"),
        ],
    )
    async def test_add(self, registry, store, a, b, expected):
        assert await registry.dispatch("add", {"a": a, "b": b}, store) == ToolResult.ok(expected)

    async def test_rejects_strings(self, registry, store):
        result = await registry.dispatch("add", {"a": "2", "b": 3}, store)

        assert result.is_error is True
        assert result.message.startswith("Invalid input for tool 'add'")

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
    async def test_rejects_non_finite(self, registry, store, value):
        result = await registry.dispatch("add", {"a": value, "b": 1}, store)

        assert result.is_error is True
        assert result.message.startswith("Invalid input for tool 'add': a")

    async def test_does_not_touch_state(self, registry, store):
        await registry.dispatch("add", {"a": 1, "b": 2}, store)
        assert store.read() == SessionState()


class TestListTables:
    async def test_requires_configuration(self, registry, store, client_factory):
        result = await registry.dispatch("list_tables", {}, store)

        assert result == ToolResult.failure(NOT_CONFIGURED)
        assert client_factory.clients == []

    async def test_returns_pretty_json(self, registry, store, client_factory, sample_tables):
        client_factory.respond_with(data=sample_tables)
        await _configure(registry, store)

        result = await registry.dispatch("list_tables", {}, store)

        assert result == ToolResult.ok(json.dumps(sample_tables, indent=2))
        assert json.loads(result.message) == sample_tables

    async def test_uses_session_credentials(self, registry, store, client_factory):
        await _configure(registry, store, serviceKey="svc")

        await registry.dispatch("list_tables", {}, store)

        [client] = client_factory.clients
        assert (client.endpoint_url, client.key) == (URL, "anon")
        assert client_factory.rpc_calls == [(EXECUTE_SQL_FUNCTION, {"query": LIST_TABLES_SQL})]

    async def test_new_client_per_call(self, registry, store, client_factory):
        await _configure(registry, store)
        await registry.dispatch("list_tables", {}, store)
        await _configure(registry, store, endpointUrl="https://efgh.supabase.co")
        await registry.dispatch("list_tables", {}, store)

        assert [c.endpoint_url for c in client_factory.clients] == [URL, "https://efgh.supabase.co"]

    async def test_comment_is_optional(self, registry, store, client_factory):
        tables = [{"schema": "public", "name": "todos"}]
        client_factory.respond_with(data=tables)
        await _configure(registry, store)

        result = await registry.dispatch("list_tables", {}, store)

        assert json.loads(result.message) == tables

    async def test_empty_listing(self, registry, store, client_factory):
        client_factory.respond_with(data=[])
        await _configure(registry, store)

        assert await registry.dispatch("list_tables", {}, store) == ToolResult.ok("[]")

    async def test_client_configuration_error(self, store):
        def refusing_factory(endpoint_url, key):
            raise ConfigurationError("Supabase URL and anon key are required to create a client.")

        registry = ToolRegistry()
        register_default_tools(registry, refusing_factory)
        await _configure(registry, store)

        result = await registry.dispatch("list_tables", {}, store)

        assert result == ToolResult.failure("Supabase URL and anon key are required to create a client.")

    async def test_backend_error(self, registry, store, client_factory):
        client_factory.respond_with(error=RpcError(message="function execute_sql does not exist", code="42883"))
        await _configure(registry, store)

        result = await registry.dispatch("list_tables", {}, store)

        assert result == ToolResult.failure("Failed to list tables: function execute_sql does not exist")

    @pytest.mark.parametrize(
        "data",
        [
            [{"name": "todos"}],
            [{"schema": "public", "name": 7}],
            {"schema": "public", "name": "todos"},
            None,
        ],
    )
    async def test_malformed_output(self, registry, store, client_factory, data):
        client_factory.respond_with(data=data)
        await _configure(registry, store)

        result = await registry.dispatch("list_tables", {}, store)

        assert result == ToolResult.failure("Failed to parse list_tables output.")
