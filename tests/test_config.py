"""Unit tests for MonitorConfig."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from monitor_stream.config import DEFAULT_URL, URL_ENV_VAR, MonitorConfig


class TestMonitorConfig:
    """Tests for defaults and validation."""

    def test_defaults(self) -> None:
        config = MonitorConfig()
        assert config.url == DEFAULT_URL == "ws://localhost:4001/stream"
        assert config.reconnect_interval == 3.0
        assert config.max_reconnect_attempts == 10
        assert config.heartbeat_interval == 30.0
        assert config.complete_ttl == 3.0
        assert config.error_ttl == 5.0
        assert config.max_events == 1000

    @pytest.mark.parametrize("url", ["ws://host:1/stream", "wss://secure.example/stream"])
    def test_accepts_websocket_urls(self, url: str) -> None:
        assert MonitorConfig(url=url).url == url

    @pytest.mark.parametrize("url", ["http://localhost:4001", "localhost:4001", ""])
    def test_rejects_other_urls(self, url: str) -> None:
        with pytest.raises(ValidationError):
            MonitorConfig(url=url)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("reconnect_interval", 0),
            ("heartbeat_interval", -1),
            ("max_reconnect_attempts", -1),
            ("max_events", 0),
        ],
    )
    def test_rejects_out_of_range_values(self, field: str, value: float) -> None:
        with pytest.raises(ValidationError):
            MonitorConfig(**{field: value})

    def test_zero_reconnect_attempts_allowed(self) -> None:
        assert MonitorConfig(max_reconnect_attempts=0).max_reconnect_attempts == 0

    def test_is_frozen(self) -> None:
        config = MonitorConfig()
        with pytest.raises(ValidationError):
            config.url = "ws://other/stream"  # type: ignore[misc]


class TestFromEnv:
    """Tests for MonitorConfig.from_env."""

    def test_empty_environment_uses_defaults(self) -> None:
        assert MonitorConfig.from_env(environ={}) == MonitorConfig()

    def test_reads_url_from_environment(self) -> None:
        config = MonitorConfig.from_env(environ={URL_ENV_VAR: "ws://remote:4001/stream"})
        assert config.url == "ws://remote:4001/stream"

    def test_empty_variable_is_ignored(self) -> None:
        assert MonitorConfig.from_env(environ={URL_ENV_VAR: ""}).url == DEFAULT_URL

    def test_overrides_win_over_environment(self) -> None:
        config = MonitorConfig.from_env(
            environ={URL_ENV_VAR: "ws://remote:4001/stream"},
            url="ws://override:4001/stream",
        )
        assert config.url == "ws://override:4001/stream"

    def test_none_overrides_are_ignored(self) -> None:
        config = MonitorConfig.from_env(environ={}, url=None, reconnect_interval=None, max_events=50)
        assert config.url == DEFAULT_URL
        assert config.reconnect_interval == 3.0
        assert config.max_events == 50

    def test_uses_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(URL_ENV_VAR, "wss://from-env/stream")
        assert MonitorConfig.from_env().url == "wss://from-env/stream"
