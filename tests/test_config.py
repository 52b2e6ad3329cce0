"""Tests for notesync.core.config."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from notesync.core.config import (
    ReconnectConfig,
    RetryConfig,
    StreamConfig,
    SyncConfig,
    TransportConfig,
)
from notesync.exceptions import ConfigError


class TestRetryConfig:
    def test_defaults(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.initial_delay_ms == 1000
        assert config.backoff_multiplier == 2.0
        assert config.max_delay_ms == 10000
        assert config.jitter_fraction == 0.25

    def test_initial_delay_above_cap_rejected(self):
        with pytest.raises(ValidationError, match="must not exceed"):
            RetryConfig(initial_delay_ms=20000, max_delay_ms=10000)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"backoff_multiplier": 0.5},
            {"jitter_fraction": 1.5},
            {"initial_delay_ms": -1},
        ],
    )
    def test_out_of_range_values_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            RetryConfig(**kwargs)

    def test_reconnect_shares_shape(self):
        assert ReconnectConfig().model_dump() == RetryConfig().model_dump()


class TestTransportConfig:
    def test_trailing_slash_stripped(self):
        assert TransportConfig(base_url="http://localhost:3001/").base_url == "http://localhost:3001"

    def test_non_http_url_rejected(self):
        with pytest.raises(ValidationError, match="http"):
            TransportConfig(base_url="localhost:3001")

    def test_unknown_platform_rejected(self):
        with pytest.raises(ValidationError):
            TransportConfig(platform="toaster")


class TestSyncConfigLoading:
    def test_empty_yaml_gives_defaults(self):
        config = SyncConfig.from_yaml_string("")
        assert config == SyncConfig()
        assert config.stream == StreamConfig()

    def test_nested_sections(self):
        config = SyncConfig.from_yaml_string(
            """
transport:
  base_url: https://api.example.com
  timeout_seconds: 5
retry:
  max_attempts: 5
stream:
  path: /events
  reconnect:
    initial_delay_ms: 500
logging:
  level: DEBUG
  format: json
"""
        )
        assert config.transport.base_url == "https://api.example.com"
        assert config.transport.timeout_seconds == 5
        assert config.retry.max_attempts == 5
        assert config.stream.path == "/events"
        assert config.stream.reconnect.initial_delay_ms == 500
        assert config.logging.format == "json"

    def test_invalid_values_raise_config_error(self):
        with pytest.raises(ConfigError):
            SyncConfig.from_yaml_string("retry:\n  max_attempts: 0\n")

    def test_malformed_yaml_raises_config_error(self):
        with pytest.raises(ConfigError):
            SyncConfig.from_yaml_string("retry: [unclosed")

    def test_from_file(self, tmp_path: Path):
        path = tmp_path / "notesync.yaml"
        path.write_text("transport:\n  platform: web\n")
        assert SyncConfig.from_yaml(path).transport.platform == "web"

    def test_missing_file_raises_config_error(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Cannot read"):
            SyncConfig.from_yaml(tmp_path / "missing.yaml")


class TestEnvOverrides:
    def test_no_env_returns_same_config(self, monkeypatch):
        monkeypatch.delenv("NOTESYNC_API_URL", raising=False)
        monkeypatch.delenv("NOTESYNC_PLATFORM", raising=False)
        config = SyncConfig()
        assert config.with_env_overrides() is config

    def test_env_overrides_transport(self, monkeypatch):
        monkeypatch.setenv("NOTESYNC_API_URL", "https://staging.example.com/")
        monkeypatch.setenv("NOTESYNC_PLATFORM", "android")

        config = SyncConfig().with_env_overrides()

        assert config.transport.base_url == "https://staging.example.com"
        assert config.transport.platform == "android"

    def test_invalid_env_override_raises_config_error(self, monkeypatch):
        monkeypatch.setenv("NOTESYNC_API_URL", "not-a-url")
        monkeypatch.delenv("NOTESYNC_PLATFORM", raising=False)
        with pytest.raises(ConfigError, match="environment override"):
            SyncConfig().with_env_overrides()
