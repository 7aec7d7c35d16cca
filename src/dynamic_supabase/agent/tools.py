# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Built-in session tools.

Tool list:
    configure    - Store Supabase credentials for the current session
    add          - Add two numbers (stateless demo)
    list_tables  - List tables readable with the session's credentials

Handlers signal failures by raising the exceptions from
``dynamic_supabase.core.exceptions``; ``ToolRegistry.dispatch`` turns them
into failed results.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable
from decimal import Decimal
from typing import Annotated, Union

from pydantic import (
    AfterValidator,
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    TypeAdapter,
    ValidationError,
)
from typing_extensions import NotRequired, TypedDict

from ..core.exceptions import BackendError, NotConfiguredError, ParseError
from ..core.response import ToolResult
from ..core.supabase import SupabaseClient, create_client
from .registry import ToolRegistry
from .state import SessionStateStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], SupabaseClient]

LIST_TABLES_SQL = (
    "SELECT n.nspname as schema, c.relname as name, pgd.description as comment "
    "FROM pg_catalog.pg_class c "
    "JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace "
    "LEFT JOIN pg_catalog.pg_description pgd ON pgd.objoid = c.oid AND pgd.objsubid = 0 "
    "WHERE c.relkind = 'r' "
    "AND n.nspname NOT IN ('pg_catalog', 'information_schema', 'pg_toast') "
    "AND n.nspname NOT LIKE 'pg_temp_%' "
    "AND n.nspname NOT LIKE 'pg_toast_temp_%' "
    "AND n.nspname NOT IN ('auth', 'storage', 'extensions', 'graphql', 'graphql_public', "
    "'pgbouncer', 'realtime', 'supabase_functions', 'supabase_migrations', '_realtime') "
    "AND has_schema_privilege(n.oid, 'USAGE') "
    "AND has_table_privilege(c.oid, 'SELECT') "
    "ORDER BY n.nspname, c.relname"
)

# Postgres function the project must expose for ad-hoc SQL
EXECUTE_SQL_FUNCTION = "execute_sql"


# =============================================================================
# Input Models
# =============================================================================

_HTTP_URL: TypeAdapter[AnyHttpUrl] = TypeAdapter(AnyHttpUrl)


def _check_http_url(value: str) -> str:
    # Validate only; the URL is stored exactly as the caller wrote it
    try:
        _HTTP_URL.validate_python(value)
    except ValidationError:
        raise ValueError("must be a valid http(s) URL") from None
    return value


HttpUrlString = Annotated[str, AfterValidator(_check_http_url)]
Number = Union[StrictInt, StrictFloat]


class ConfigureInput(BaseModel):
    """Input of the ``configure`` tool."""

    model_config = ConfigDict(populate_by_name=True)

    endpoint_url: HttpUrlString = Field(
        alias="endpointUrl",
        description="Supabase project URL, e.g. https://abcd.supabase.co",
        json_schema_extra={"format": "uri"},
    )
    anon_key: str = Field(alias="anonKey", min_length=1, description="Project anon (public) key")
    service_key: str | None = Field(
        default=None,
        alias="serviceKey",
        description="Optional service role key",
    )


class AddInput(BaseModel):
    """Input of the ``add`` tool."""

    model_config = ConfigDict(allow_inf_nan=False)

    a: Number = Field(description="First number")
    b: Number = Field(description="Second number")


class ListTablesInput(BaseModel):
    """The ``list_tables`` tool takes no arguments."""


class TableInfo(TypedDict):
    """One row of the table listing."""

    schema: str
    name: str
    comment: NotRequired[str | None]


_TABLE_LIST: TypeAdapter[list[TableInfo]] = TypeAdapter(list[TableInfo])


# =============================================================================
# Handlers
# =============================================================================


async def configure(params: ConfigureInput, store: SessionStateStore) -> ToolResult:
    """Replace the session's credentials.

    Every field is overwritten: omitting ``serviceKey`` clears a service key
    set by an earlier call.
    """
    store.update(
        is_configured=True,
        endpoint_url=params.endpoint_url,
        anon_key=params.anon_key,
        service_key=params.service_key,
    )
    logger.info(f"Session {store.session_id} configured for {params.endpoint_url}")
    return ToolResult.ok(f"Session configured for Supabase instance: {params.endpoint_url}")


def _format_number(value: int | float) -> str:
    """Render a number the way JavaScript's ``Number#toString`` does."""
    if isinstance(value, int) and abs(value) < 10**21:
        return str(value)
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    # Shortest round-trip digits d1..dk with value = 0.d1..dk * 10**n
    sign = "-" if value < 0 else ""
    parsed = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(map(str, parsed.digits))
    exponent = parsed.exponent + len(digits) - len(digits.rstrip("0"))
    digits = digits.rstrip("0")
    k = len(digits)
    n = exponent + k

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * -n + digits
    else:
        mantissa = digits[0] + (f".{digits[1:]}" if k > 1 else "")
        text = f"{mantissa}e{'+' if n > 0 else '-'}{abs(n - 1)}"
    return sign + text


async def add(params: AddInput, store: SessionStateStore) -> ToolResult:
    """Add two numbers. Does not touch session state."""
    return ToolResult.ok(_format_number(params.a + params.b))


def make_list_tables(client_factory: ClientFactory) -> Callable:
    """Build the ``list_tables`` handler around a client factory."""

    async def list_tables(params: ListTablesInput, store: SessionStateStore) -> ToolResult:
        state = store.read()
        if not state.has_credentials:
            raise NotConfiguredError()

        client = client_factory(state.endpoint_url, state.anon_key)  # type: ignore[arg-type]
        response = await client.rpc(EXECUTE_SQL_FUNCTION, {"query": LIST_TABLES_SQL})

        if response.error is not None:
            logger.error(f"Error from list_tables RPC: {response.error.message}")
            raise BackendError(f"Failed to list tables: {response.error.message}", code=response.error.code)

        try:
            tables = _TABLE_LIST.validate_python(response.data)
        except ValidationError as e:
            logger.error(f"Failed to parse list_tables output: {e.error_count()} validation errors")
            raise ParseError("Failed to parse list_tables output.") from None

        return ToolResult.ok(json.dumps(tables, indent=2))

    return list_tables


def register_default_tools(
    registry: ToolRegistry,
    client_factory: ClientFactory = create_client,
) -> None:
    """Register the built-in tools on ``registry``."""
    registry.register(
        "configure",
        "Configures the Supabase instance details (URL, anon key, service key) for the current session.",
        ConfigureInput,
        configure,
    )
    registry.register(
        "add",
        "Adds two numbers.",
        AddInput,
        add,
    )
    registry.register(
        "list_tables",
        "Lists all accessible tables in the configured Supabase database.",
        ListTablesInput,
        make_list_tables(client_factory),
    )
