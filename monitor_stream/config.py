"""Client configuration for monitor-stream.

All intervals are expressed in seconds.  The defaults match the monitor
server's expectations: reconnect every 3 s up to 10 times, heartbeat every
30 s, and keep terminal command states visible for 3 s (complete) or 5 s
(error).

Example usage::

    config = MonitorConfig.from_env()
    config = MonitorConfig(url="ws://monitor.local:4001/stream", max_events=200)
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_URL = "ws://localhost:4001/stream"
URL_ENV_VAR = "MONITOR_WS_URL"


class MonitorConfig(BaseModel):
    """Settings shared by the transport, projector, scheduler, and store.

    Attributes:
        url: WebSocket endpoint of the monitor server.
        reconnect_interval: Fixed delay before each reconnect attempt.
        max_reconnect_attempts: Reconnects allowed before giving up.
        heartbeat_interval: Delay between ``ping`` sentinels while connected.
        open_timeout: Maximum time allowed for the opening handshake.
        complete_ttl: How long a completed command stays visible.
        error_ttl: How long a failed command stays visible.
        max_events: Capacity of the in-memory event log.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(default=DEFAULT_URL, description="Monitor server WebSocket URL")
    reconnect_interval: float = Field(default=3.0, gt=0)
    max_reconnect_attempts: int = Field(default=10, ge=0)
    heartbeat_interval: float = Field(default=30.0, gt=0)
    open_timeout: float = Field(default=10.0, gt=0)
    complete_ttl: float = Field(default=3.0, gt=0)
    error_ttl: float = Field(default=5.0, gt=0)
    max_events: int = Field(default=1000, ge=1)

    @field_validator("url")
    @classmethod
    def require_ws_scheme(cls, v: str) -> str:
        """Reject URLs that are not ``ws://`` or ``wss://``."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError(f"URL must start with ws:// or wss://, got '{v}'")
        return v

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "MonitorConfig":
        """Build a config from the environment, then apply explicit overrides.

        Only ``MONITOR_WS_URL`` is read from the environment.  Overrides whose
        value is ``None`` are ignored so CLI options can be passed through
        unconditionally.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        if env.get(URL_ENV_VAR):
            values["url"] = env[URL_ENV_VAR]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
