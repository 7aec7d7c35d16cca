# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Server configuration using pydantic-settings."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version

from pydantic import Field, model_validator
from pydantic_settings import SettingsConfigDict

from dynamic_supabase.core.config import CoreSettings

logger = logging.getLogger(__name__)

MIN_JWT_SECRET_LENGTH = 32


def get_package_version() -> str:
    """Get the package version from installed metadata.

    Returns the version from pyproject.toml when installed,
    or a dev fallback when running from source without install.
    """
    try:
        return version("dynamic-supabase-mcp")
    except PackageNotFoundError:
        return "0.0.0-dev"


class ServerSettings(CoreSettings):
    """Configuration for the HTTP MCP server.

    Inherits core settings (Supabase defaults, session state, logging)
    and adds server-specific settings (HTTP, authorization, MCP).

    Settings can be configured via environment variables with DSMCP_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="DSMCP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Server settings
    host: str = Field(default="127.0.0.1", description="Host to bind to")
    port: int = Field(default=8787, description="Port to bind to")

    # External URL (token audience/issuer) - if not set, constructed from host:port
    external_url: str | None = Field(
        default=None,
        description="External URL of this server (e.g., https://mcp.example.com)",
    )

    # Route the authorization layer forwards MCP requests to
    api_route: str = Field(default="/sse", description="Path of the MCP endpoint")

    # Authorization (tokens are issued by an external OAuth provider)
    auth_enabled: bool = Field(default=True, description="Require a valid Bearer JWT on the MCP endpoint")
    jwt_secret: str | None = Field(
        default=None,
        description="Secret shared with the OAuth provider for verifying access tokens",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_issuer: str | None = Field(
        default=None,
        description="Expected token issuer (defaults to the authorization server URL)",
    )
    authorization_server_url: str | None = Field(
        default=None,
        description="URL of the external OAuth authorization server (defaults to base_url)",
    )

    # CORS settings
    allowed_origins: list[str] = Field(
        default=[],
        description="Allowed CORS origins. Empty = same-origin only. Set to ['*'] for development.",
    )

    # Server name for MCP
    server_name: str = Field(default="cf-dynamic-supabase-mcp", description="MCP server name")
    server_version: str = Field(default_factory=get_package_version, description="Server version")

    # Production mode flag (explicit override)
    production: bool = Field(
        default=False,
        description="Force production mode (stricter security requirements)",
    )

    @model_validator(mode="after")
    def validate_production_settings(self) -> ServerSettings:
        """Require a usable JWT secret whenever tokens are checked.

        In production (non-local host, external_url set, or production=True)
        the secret must also be at least 32 characters long.
        """
        is_production = (
            self.external_url is not None
            or self.host not in ("localhost", "127.0.0.1", "0.0.0.0")  # nosec B104
            or self.production
        )

        if self.auth_enabled and not self.jwt_secret:
            raise ValueError(
                "DSMCP_JWT_SECRET is required when authorization is enabled. "
                "Use the secret your OAuth provider signs access tokens with, "
                "or set DSMCP_AUTH_ENABLED=false for local development."
            )
        if is_production and self.auth_enabled and len(self.jwt_secret or "") < MIN_JWT_SECRET_LENGTH:
            raise ValueError(f"DSMCP_JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters in production.")
        if is_production and not self.auth_enabled:
            logger.warning("Authorization is disabled on a production server - every caller is anonymous")

        if not self.api_route.startswith("/"):
            object.__setattr__(self, "api_route", "/" + self.api_route)

        return self

    @property
    def base_url(self) -> str:
        """Get the base URL for the server."""
        if self.external_url:
            return self.external_url.rstrip("/")
        return f"http://{self.host}:{self.port}"

    @property
    def issuer_url(self) -> str:
        """Get the expected token issuer."""
        if self.jwt_issuer:
            return self.jwt_issuer.rstrip("/")
        if self.authorization_server_url:
            return self.authorization_server_url.rstrip("/")
        return self.base_url

    @property
    def mcp_resource_url(self) -> str:
        """Get the MCP resource URL (expected token audience)."""
        return f"{self.base_url}{self.api_route}"


# Global settings instance - lazy loaded
_settings: ServerSettings | None = None


def get_settings() -> ServerSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = ServerSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    global _settings
    _settings = None
