"""Configuration models for notesync.

Pydantic v2 models for retry behavior, event-stream reconnection, the HTTP
transport and logging. ``SyncConfig`` bundles them and loads from YAML.

Example YAML::

    transport:
      base_url: http://localhost:3001
      timeout_seconds: 30
    retry:
      max_attempts: 3
      initial_delay_ms: 1000
    stream:
      path: /api/sse
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from notesync.exceptions import ConfigError

API_URL_ENV = "NOTESYNC_API_URL"
PLATFORM_ENV = "NOTESYNC_PLATFORM"

DEFAULT_LOCAL_API_URL = "http://localhost:3001"
DEFAULT_CLOUD_API_URL = "https://api.dailynote.com"


class RetryConfig(BaseModel):
    """Exponential backoff with jitter for individual requests."""

    max_attempts: int = Field(
        default=3, ge=1, description="Maximum attempts per logical request, first one included"
    )
    initial_delay_ms: int = Field(default=1000, ge=0, description="Delay before the first retry")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Growth factor per attempt")
    max_delay_ms: int = Field(default=10000, ge=0, description="Cap applied before jitter")
    jitter_fraction: float = Field(
        default=0.25, ge=0.0, le=1.0, description="Uniform +/- fraction of the delay"
    )

    @model_validator(mode="after")
    def _validate_delay_range(self) -> RetryConfig:
        if self.initial_delay_ms > self.max_delay_ms:
            raise ValueError(
                f"initial_delay_ms ({self.initial_delay_ms}) must not exceed "
                f"max_delay_ms ({self.max_delay_ms})"
            )
        return self


class ReconnectConfig(RetryConfig):
    """Backoff applied to event-stream reconnects.

    Same shape as request retries, but the attempt count is unbounded:
    ``max_attempts`` is ignored by the connection.
    """


class TransportConfig(BaseModel):
    """HTTP transport settings."""

    base_url: str | None = Field(
        default=None,
        description="API base URL. Chosen from the platform when unset.",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-attempt timeout")
    platform: Literal["desktop", "android", "ios", "web"] | None = Field(
        default=None,
        description="Value of the X-Platform header. Detected when unset.",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {value!r}")
        return value.rstrip("/")


class StreamConfig(BaseModel):
    """Server-push channel settings."""

    path: str = Field(default="/api/sse", description="Event stream path on the API server")
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)
    read_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Idle read timeout for the stream. None waits forever.",
    )


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "console"] = "console"
    file_path: Path | None = None


class SyncConfig(BaseModel):
    """Top-level configuration for a notesync client."""

    transport: TransportConfig = Field(default_factory=TransportConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def with_env_overrides(self) -> SyncConfig:
        """Return a copy with NOTESYNC_API_URL / NOTESYNC_PLATFORM applied."""
        updates: dict[str, object] = {}
        api_url = os.environ.get(API_URL_ENV)
        if api_url:
            updates["base_url"] = api_url
        platform = os.environ.get(PLATFORM_ENV)
        if platform:
            updates["platform"] = platform
        if not updates:
            return self
        data = self.transport.model_dump()
        data.update(updates)
        try:
            transport = TransportConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid environment override: {exc}") from exc
        return self.model_copy(update={"transport": transport})

    @classmethod
    def from_yaml(cls, path: Path) -> SyncConfig:
        """Load configuration from a YAML file."""
        try:
            with open(path) as f:
                text = f.read()
        except OSError as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> SyncConfig:
        """Load configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_str) or {}
            return cls.model_validate(data)
        except (yaml.YAMLError, ValidationError) as exc:
            raise ConfigError(str(exc)) from exc
