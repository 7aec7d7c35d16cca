"""Tests for core configuration."""

from __future__ import annotations

import os

from dynamic_supabase.core.config import CoreSettings, clear_config_cache, get_config


class TestCoreSettings:
    def test_defaults(self, clean_env):
        settings = CoreSettings()

        assert settings.supabase_url is None
        assert settings.supabase_anon_key is None
        assert settings.supabase_service_role_key is None
        assert settings.use_environment_defaults is False
        assert settings.supabase_timeout == 30.0
        assert settings.serialize_tool_calls is False
        assert settings.log_level == "INFO"
        assert settings.state_db_path.endswith(os.path.join(".dynamic-supabase", "state.db"))

    def test_supabase_env_names(self, monkeypatch, clean_env):
        monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "env-anon")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "env-service")

        settings = CoreSettings()

        assert settings.supabase_url == "https://env.supabase.co"
        assert settings.supabase_anon_key == "env-anon"
        assert settings.supabase_service_role_key == "env-service"

    def test_prefixed_env_names(self, monkeypatch, clean_env):
        monkeypatch.setenv("DSMCP_USE_ENVIRONMENT_DEFAULTS", "true")
        monkeypatch.setenv("DSMCP_SUPABASE_TIMEOUT", "5")
        monkeypatch.setenv("DSMCP_STATE_DB_PATH", "/tmp/state.db")
        monkeypatch.setenv("DSMCP_SERIALIZE_TOOL_CALLS", "1")
        monkeypatch.setenv("DSMCP_LOG_LEVEL", "DEBUG")

        settings = CoreSettings()

        assert settings.use_environment_defaults is True
        assert settings.supabase_timeout == 5.0
        assert settings.state_db_path == "/tmp/state.db"
        assert settings.serialize_tool_calls is True
        assert settings.log_level == "DEBUG"

    def test_field_names_accepted(self, clean_env):
        settings = CoreSettings(state_db_path=":memory:", supabase_url="https://x.supabase.co")

        assert settings.state_db_path == ":memory:"
        assert settings.supabase_url == "https://x.supabase.co"

    def test_has_default_credentials(self, clean_env):
        assert CoreSettings().has_default_credentials is False
        assert CoreSettings(supabase_url="https://x.supabase.co").has_default_credentials is False
        assert CoreSettings(supabase_url="https://x.supabase.co", supabase_anon_key="k").has_default_credentials is True


class TestGetConfig:
    def test_singleton(self, clean_env):
        assert get_config() is get_config()

    def test_clear_cache(self, monkeypatch, clean_env):
        first = get_config()
        monkeypatch.setenv("DSMCP_LOG_LEVEL", "WARNING")
        clear_config_cache()

        second = get_config()

        assert second is not first
        assert second.log_level == "WARNING"
