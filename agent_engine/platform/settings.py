"""Application settings and configuration.

This module provides Pydantic settings classes for engine configuration,
loaded from environment variables with support for nested configuration
(e.g. ``RUNNER__MAX_TURNS=20``).
"""

import logging
from functools import lru_cache

import pydantic_settings
from pydantic import BaseModel, Field, field_validator

from agent_engine.platform.constants import (
    DEFAULT_MAX_TURNS,
    DEFAULT_MODEL,
    DEFAULT_MODEL_TIMEOUT_SECONDS,
)


class RunnerSettings(BaseModel):
    """Defaults for agent runs.

    Attributes:
        max_turns: Model calls allowed per run
        model_timeout_seconds: Per model call timeout
        tool_timeout_seconds: Default per tool call timeout (None = unbounded)
        run_timeout_seconds: Whole-run timeout (None = unbounded)
        tracing_disabled: Skip span creation
        trace_include_sensitive_data: Attach inputs and outputs to spans
    """

    max_turns: int = Field(DEFAULT_MAX_TURNS, ge=1)
    model_timeout_seconds: float | None = Field(DEFAULT_MODEL_TIMEOUT_SECONDS, gt=0)
    tool_timeout_seconds: float | None = Field(None, gt=0)
    run_timeout_seconds: float | None = Field(None, gt=0)
    tracing_disabled: bool = False
    trace_include_sensitive_data: bool = True


class LoggingSettings(BaseModel):
    log_level: str = Field("INFO")
    log_json: bool | None = Field(
        None, description="Override log format: True=JSON, False=console, None=auto"
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v):
        v_upper = v.upper()
        if v_upper not in logging.getLevelNamesMapping():
            raise ValueError(f'invalid value "{v}"')
        return v_upper


class LitellmSettings(BaseModel):
    proxy_api_base: str | None = None
    proxy_api_key: str | None = None
    default_model: str = DEFAULT_MODEL
    temperature: float | None = Field(None, ge=0.0, le=2.0)


class SessionDbSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./agent_sessions.db"
    echo: bool = False


class Settings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    runner: RunnerSettings = Field(default_factory=RunnerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    litellm: LitellmSettings = Field(default_factory=LitellmSettings)
    sessions: SessionDbSettings = Field(default_factory=SessionDbSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()
