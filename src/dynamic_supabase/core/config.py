"""Core configuration - centralized config for the dynamic_supabase package.

All environment-based configuration should flow through this module.
This provides a single source of truth and consistent defaults.

Usage:
    from dynamic_supabase.core.config import get_config
    config = get_config()

    # Access settings
    db_path = config.state_db_path
    log_level = config.log_level
"""

from __future__ import annotations

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_state_db_path() -> str:
    return os.path.join(os.path.expanduser("~"), ".dynamic-supabase", "state.db")


class CoreSettings(BaseSettings):
    """Core configuration settings shared by the agent and the server.

    Settings can be configured via environment variables.
    Supabase defaults use the conventional SUPABASE_* names, everything
    else uses the DSMCP_ prefix.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # SUPABASE DEFAULTS (deployment-time fallback credentials)
    # ==========================================================================

    supabase_url: str | None = Field(
        default=None,
        description="Default Supabase project URL",
        validation_alias="SUPABASE_URL",
    )
    supabase_anon_key: str | None = Field(
        default=None,
        description="Default Supabase anon key",
        validation_alias="SUPABASE_ANON_KEY",
    )
    supabase_service_role_key: str | None = Field(
        default=None,
        description="Default Supabase service role key (optional)",
        validation_alias="SUPABASE_SERVICE_ROLE_KEY",
    )
    use_environment_defaults: bool = Field(
        default=False,
        description="Seed new sessions with the SUPABASE_* defaults instead of starting unconfigured",
        validation_alias="DSMCP_USE_ENVIRONMENT_DEFAULTS",
    )
    supabase_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for requests to the Supabase REST API",
        validation_alias="DSMCP_SUPABASE_TIMEOUT",
    )

    # ==========================================================================
    # SESSION STATE SETTINGS
    # ==========================================================================

    state_db_path: str = Field(
        default_factory=_default_state_db_path,
        description="Path to the SQLite database holding durable session state",
        validation_alias="DSMCP_STATE_DB_PATH",
    )
    serialize_tool_calls: bool = Field(
        default=False,
        description="Hold a per-session lock for the whole duration of each tool call",
        validation_alias="DSMCP_SERIALIZE_TOOL_CALLS",
    )
    max_live_sessions: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of session actors kept in memory; state of unloaded sessions stays on disk",
        validation_alias="DSMCP_MAX_LIVE_SESSIONS",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="DSMCP_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="DSMCP_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="DSMCP_LOG_FILE",
    )

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def has_default_credentials(self) -> bool:
        """Whether both a default URL and anon key were supplied."""
        return bool(self.supabase_url and self.supabase_anon_key)


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
