"""High-level monitor client wiring decoder, store, projector, and transport.

``MonitorClient`` is the object applications hold.  It owns one instance of
every component, routes inbound frames through the decoder into the store
and the projector, and releases everything as one unit on exit::

    async with MonitorClient(MonitorConfig(url="ws://localhost:4001/stream")) as client:
        await client.wait_for_snapshot(timeout=10.0)
        async with client.bus.subscribe() as updates:
            ...

Frames are processed one at a time; a malformed frame or a failure while
applying one event is logged and dropped without touching the connection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from monitor_stream.config import MonitorConfig
from monitor_stream.decoder import MessageDecoder
from monitor_stream.errors import DecodeError, ReconnectExhausted
from monitor_stream.event_bus import EventBus
from monitor_stream.models import EventEnvelope, InitEnvelope, StateSnapshot
from monitor_stream.projector import StateProjector
from monitor_stream.scheduler import EphemeralStateScheduler
from monitor_stream.state import MonitorState
from monitor_stream.store import EventStore
from monitor_stream.transport import (
    Connector,
    Frame,
    TransportManager,
    TransportStatus,
)

logger = logging.getLogger(__name__)


class MonitorClient:
    """Resilient streaming client for a monitor server.

    Args:
        config: Client settings.  Defaults to :meth:`MonitorConfig.from_env`.
        connector: Optional socket factory, mainly for tests.
        loop: Optional event loop for timers, mainly for tests.
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        connector: Optional[Connector] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.config = config or MonitorConfig.from_env()
        self.bus = EventBus()
        self.state = MonitorState(EventStore(max_events=self.config.max_events), bus=self.bus)
        self.decoder = MessageDecoder()
        self.scheduler = EphemeralStateScheduler(self.state, loop=loop)
        self.projector = StateProjector(
            self.state,
            self.scheduler,
            complete_ttl=self.config.complete_ttl,
            error_ttl=self.config.error_ttl,
        )
        self.transport = TransportManager(
            self.config,
            self.state,
            on_frame=self.handle_frame,
            connector=connector,
            loop=loop,
        )
        self._snapshot_seen = asyncio.Event()
        self._failed = asyncio.Event()
        self.transport.add_status_listener(self._on_transport_status)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Start connecting; see :meth:`TransportManager.connect`."""
        self.transport.connect()

    def disconnect(self) -> None:
        """Disconnect without auto-reconnect; see :meth:`TransportManager.disconnect`."""
        self.transport.disconnect()

    def reconnect(self) -> None:
        """Reconnect with a fresh attempt budget."""
        self._snapshot_seen.clear()
        self.transport.reconnect()

    async def aclose(self) -> None:
        """Close the socket, cancel every timer, and close the update bus."""
        await self.transport.aclose()
        self.scheduler.cancel_all()
        self.bus.close()

    async def __aenter__(self) -> "MonitorClient":
        self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def handle_frame(self, frame: Frame) -> None:
        """Decode one inbound frame and apply it.

        Never raises: decode and apply failures are confined to this frame.
        """
        try:
            envelope = self.decoder.decode(frame)
        except DecodeError as exc:
            logger.warning("Dropping frame: %s", exc)
            return
        if envelope is None:
            return

        try:
            if isinstance(envelope, InitEnvelope):
                self._apply_init(envelope)
            else:
                self._apply_event(envelope)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to apply %s envelope; frame dropped", envelope.type)

    def _apply_init(self, envelope: InitEnvelope) -> None:
        # Projections first, so the SNAPSHOT update already carries them.
        self.projector.replay(envelope.events)
        self.state.load_snapshot(envelope.events)
        self._snapshot_seen.set()

    def _apply_event(self, envelope: EventEnvelope) -> None:
        self.state.record_event(envelope.event)
        self.projector.apply(envelope.event)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def snapshot(self) -> StateSnapshot:
        """Return an immutable view of the current state."""
        return self.state.snapshot()

    async def wait_for_snapshot(self, timeout: Optional[float] = None) -> StateSnapshot:
        """Wait until an ``init`` snapshot has been applied.

        Args:
            timeout: Seconds to wait; ``None`` waits indefinitely.

        Returns:
            The state right after the snapshot was applied (or later).

        Raises:
            ReconnectExhausted: If the transport gives up before a snapshot.
            asyncio.TimeoutError: If ``timeout`` elapses first.
        """
        if not self._snapshot_seen.is_set() and self._failed.is_set():
            raise ReconnectExhausted()

        snapshot = asyncio.ensure_future(self._snapshot_seen.wait())
        failed = asyncio.ensure_future(self._failed.wait())
        try:
            await asyncio.wait(
                {snapshot, failed},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            snapshot.cancel()
            failed.cancel()

        if self._snapshot_seen.is_set():
            return self.snapshot()
        if self._failed.is_set():
            raise ReconnectExhausted()
        raise asyncio.TimeoutError()

    def _on_transport_status(self, status: TransportStatus) -> None:
        if status is TransportStatus.FAILED:
            self._failed.set()
        elif status is TransportStatus.CONNECTING:
            self._failed.clear()
