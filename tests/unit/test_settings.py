"""Unit tests for application settings.

This module tests the Pydantic settings classes and their validators.
"""

import pytest
from pydantic import ValidationError

from agent_engine.platform.settings import (
    LitellmSettings,
    LoggingSettings,
    RunnerSettings,
    SessionDbSettings,
    Settings,
)


class TestRunnerSettings:
    """Tests for RunnerSettings configuration."""

    def test_default_values(self):
        """Settings should have sensible defaults."""
        settings = RunnerSettings()
        assert settings.max_turns == 10
        assert settings.model_timeout_seconds == 60.0
        assert settings.tool_timeout_seconds is None
        assert settings.run_timeout_seconds is None
        assert settings.tracing_disabled is False

    def test_max_turns_must_be_positive(self):
        """max_turns below 1 should raise ValidationError."""
        with pytest.raises(ValidationError):
            RunnerSettings(max_turns=0)

    def test_timeouts_must_be_positive(self):
        """Non-positive timeouts should raise ValidationError."""
        with pytest.raises(ValidationError):
            RunnerSettings(tool_timeout_seconds=0)


class TestLoggingSettings:
    """Tests for LoggingSettings configuration."""

    def test_log_level_validation_valid(self):
        """Valid log levels should be accepted and upper-cased."""
        for level in ["DEBUG", "INFO", "WARNING", "ERROR", "debug", "info"]:
            settings = LoggingSettings(log_level=level)
            assert settings.log_level == level.upper()

    def test_log_level_validation_invalid(self):
        """Invalid log levels should raise ValidationError."""
        with pytest.raises(ValidationError):
            LoggingSettings(log_level="INVALID")

    def test_log_json_defaults_to_auto(self):
        """log_json defaults to None (auto-detect)."""
        assert LoggingSettings().log_json is None


class TestLitellmSettings:
    """Tests for LiteLLM settings."""

    def test_all_fields_optional(self):
        """All fields have defaults."""
        settings = LitellmSettings()
        assert settings.proxy_api_base is None
        assert settings.proxy_api_key is None
        assert settings.default_model == "gpt-4.1"

    def test_temperature_range(self):
        """Temperature outside 0..2 should raise ValidationError."""
        with pytest.raises(ValidationError):
            LitellmSettings(temperature=3.0)


class TestSessionDbSettings:
    """Tests for session database settings."""

    def test_defaults_to_sqlite(self):
        """The default URL uses aiosqlite."""
        settings = SessionDbSettings()
        assert settings.url.startswith("sqlite+aiosqlite://")
        assert settings.echo is False


class TestSettings:
    """Tests for the root Settings class."""

    def test_loads_from_environment(self, monkeypatch):
        """Nested settings load from environment variables."""
        monkeypatch.setenv("RUNNER__MAX_TURNS", "25")
        monkeypatch.setenv("LOGGING__LOG_LEVEL", "debug")
        monkeypatch.setenv("LITELLM__DEFAULT_MODEL", "litellm_proxy/test-model")
        monkeypatch.setenv("SESSIONS__URL", "sqlite+aiosqlite:///:memory:")

        settings = Settings(_env_file=None)

        assert settings.runner.max_turns == 25
        assert settings.logging.log_level == "DEBUG"
        assert settings.litellm.default_model == "litellm_proxy/test-model"
        assert settings.sessions.url == "sqlite+aiosqlite:///:memory:"

    def test_defaults_without_environment(self):
        """Settings can be created without any environment."""
        settings = Settings(_env_file=None)
        assert settings.runner.max_turns >= 1
