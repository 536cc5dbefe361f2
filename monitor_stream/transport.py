"""WebSocket connection lifecycle for monitor-stream.

This module provides ``TransportManager``, the only component that touches
the network.  It owns the socket, reconnects after unexpected closes, sends
heartbeats, and forwards every inbound frame except heartbeat replies to a
frame handler.

State machine::

    IDLE -> CONNECTING -> OPEN -> RECONNECTING -> CONNECTING -> ...
                                \\-> FAILED       (reconnect budget exhausted)
    any  -> IDLE                                 (disconnect())
    any  -> CLOSING -> IDLE                      (aclose())

Everything runs on the asyncio event loop; no method blocks.  The socket
factory is injectable so the state machine can be exercised without a
network.

Example usage (async context)::

    transport = TransportManager(config, state, on_frame=client.handle_frame)
    transport.connect()
    ...
    await transport.aclose()
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Union

import websockets

from monitor_stream.config import MonitorConfig
from monitor_stream.decoder import PING, PONG
from monitor_stream.errors import (
    CONNECTION_ERROR_MESSAGE,
    RECONNECT_EXHAUSTED_MESSAGE,
    TransportError,
    TransportStateError,
)
from monitor_stream.state import MonitorState

logger = logging.getLogger(__name__)

Frame = Union[str, bytes]


class Socket(Protocol):
    """The subset of a websockets client connection the transport relies on."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[Frame]: ...


Connector = Callable[[str], Awaitable[Socket]]
FrameHandler = Callable[[Frame], None]


class TransportStatus(str, Enum):
    """Connection state machine."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


StatusListener = Callable[[TransportStatus], None]

_TRANSITIONS: dict[TransportStatus, frozenset[TransportStatus]] = {
    TransportStatus.IDLE: frozenset({TransportStatus.CONNECTING}),
    TransportStatus.CONNECTING: frozenset(
        {
            TransportStatus.OPEN,
            TransportStatus.RECONNECTING,
            TransportStatus.FAILED,
            TransportStatus.CLOSING,
            TransportStatus.IDLE,
        }
    ),
    TransportStatus.OPEN: frozenset(
        {
            TransportStatus.RECONNECTING,
            TransportStatus.FAILED,
            TransportStatus.CLOSING,
            TransportStatus.IDLE,
        }
    ),
    TransportStatus.CLOSING: frozenset({TransportStatus.IDLE}),
    TransportStatus.RECONNECTING: frozenset(
        {TransportStatus.CONNECTING, TransportStatus.CLOSING, TransportStatus.IDLE}
    ),
    TransportStatus.FAILED: frozenset(
        {TransportStatus.CONNECTING, TransportStatus.CLOSING, TransportStatus.IDLE}
    ),
}


def websocket_connector(config: MonitorConfig) -> Connector:
    """Return a connector that opens a real WebSocket with ``websockets``.

    Protocol-level pings are disabled; liveness is handled by the text
    ``ping``/``pong`` heartbeat the monitor server understands.
    """

    async def _connect(url: str) -> Socket:
        return await websockets.connect(  # type: ignore[return-value]
            url,
            open_timeout=config.open_timeout,
            ping_interval=None,
        )

    return _connect


class TransportManager:
    """Owns one WebSocket connection and keeps it alive.

    Args:
        config: Endpoint, reconnect, and heartbeat settings.
        state: State container whose connection state this transport writes.
        on_frame: Called synchronously with every inbound frame other than
            a heartbeat reply.
        connector: Coroutine factory opening a socket for a URL.  Defaults to
            :func:`websocket_connector`.
        loop: Event loop for tasks and timers.  Defaults to the running loop.
    """

    def __init__(
        self,
        config: MonitorConfig,
        state: MonitorState,
        on_frame: FrameHandler,
        connector: Optional[Connector] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._config = config
        self._state = state
        self._on_frame = on_frame
        self._connector = connector or websocket_connector(config)
        self._loop = loop

        self._status = TransportStatus.IDLE
        self._attempts = 0
        self._last_error: Optional[TransportError] = None

        self._socket: Optional[Socket] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._status_listeners: List[StatusListener] = []

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def status(self) -> TransportStatus:
        """Current state of the connection state machine."""
        return self._status

    @property
    def attempts(self) -> int:
        """Reconnect attempts made since the last successful open."""
        return self._attempts

    @property
    def last_error(self) -> Optional[TransportError]:
        """The most recent transport failure, if any."""
        return self._last_error

    @property
    def reconnect_pending(self) -> bool:
        """Whether a reconnect timer is armed."""
        return self._reconnect_handle is not None

    def add_status_listener(self, listener: StatusListener) -> None:
        """Register a callback invoked with the new status on every transition."""
        self._status_listeners.append(listener)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open the connection unless one is already open or opening."""
        if self._status in (TransportStatus.OPEN, TransportStatus.CONNECTING):
            return
        self._cancel_reconnect()
        self._begin_connect()

    def disconnect(self) -> None:
        """Close the connection and suppress automatic reconnection."""
        self._cancel_reconnect()
        self._cancel_heartbeat()
        self._attempts = self._config.max_reconnect_attempts
        task, self._task = self._task, None
        self._socket = None
        if task is not None:
            # The connection task closes its socket while unwinding.
            task.cancel()
        if self._status is not TransportStatus.IDLE:
            self._transition(TransportStatus.IDLE)
            logger.info("Disconnected from %s", self._config.url)
        self._state.set_connection(connected=False, connecting=False)

    def reconnect(self) -> None:
        """Disconnect, then connect again with a fresh reconnect budget."""
        self.disconnect()
        self._attempts = 0
        self.connect()

    async def aclose(self) -> None:
        """Tear down the socket, the heartbeat, and every pending timer together.

        A call made while another ``aclose()`` is in progress returns at once.
        """
        if self._status is TransportStatus.CLOSING:
            return
        self._cancel_reconnect()
        self._attempts = self._config.max_reconnect_attempts
        heartbeat, self._heartbeat_task = self._heartbeat_task, None
        task, self._task = self._task, None
        self._socket = None

        if self._status is not TransportStatus.IDLE:
            self._transition(TransportStatus.CLOSING)
        for pending in (heartbeat, task):
            if pending is None:
                continue
            pending.cancel()
            try:
                await pending
            except asyncio.CancelledError:
                pass
        if self._status is TransportStatus.CLOSING:
            self._transition(TransportStatus.IDLE)
        self._state.set_connection(connected=False, connecting=False)
        logger.debug("Transport closed")

    # ------------------------------------------------------------------
    # Connection task
    # ------------------------------------------------------------------

    def _begin_connect(self) -> None:
        self._transition(TransportStatus.CONNECTING)
        self._state.set_connection(connected=False, connecting=True, clear_error=True)
        logger.info("Connecting to %s", self._config.url)
        self._task = self._get_loop().create_task(
            self._run(), name="monitor_stream_connection"
        )

    async def _run(self) -> None:
        """Open the socket, pump frames until it closes, then report the close.

        A task that has been superseded by ``disconnect()`` or ``aclose()``
        closes its socket and reports nothing.
        """
        me = asyncio.current_task()
        try:
            socket = await self._connector(self._config.url)
        except Exception as exc:  # noqa: BLE001
            if self._task is me:
                self._handle_error(exc)
                self._handle_close()
            return

        if self._task is not me:
            await socket.close()
            return

        self._socket = socket
        self._handle_open(socket)
        try:
            async for frame in socket:
                self._handle_message(frame)
        except Exception as exc:  # noqa: BLE001
            if self._task is me:
                self._handle_error(exc)
        finally:
            if self._task is not me:
                await socket.close()

        if self._task is me:
            self._handle_close()

    async def _heartbeat(self, socket: Socket) -> None:
        """Send the ``ping`` sentinel every heartbeat interval while open."""
        while True:
            await asyncio.sleep(self._config.heartbeat_interval)
            try:
                await socket.send(PING)
            except Exception as exc:  # noqa: BLE001
                # The close itself arrives through the connection task.
                self._handle_error(exc)
                return
            logger.debug("Heartbeat sent")

    # ------------------------------------------------------------------
    # Socket callbacks
    # ------------------------------------------------------------------

    def _handle_open(self, socket: Socket) -> None:
        self._transition(TransportStatus.OPEN)
        self._attempts = 0
        self._last_error = None
        self._state.set_connection(connected=True, connecting=False, clear_error=True)
        self._heartbeat_task = self._get_loop().create_task(
            self._heartbeat(socket), name="monitor_stream_heartbeat"
        )
        logger.info("Connected to %s", self._config.url)

    def _handle_message(self, frame: Frame) -> None:
        if frame == PONG:
            return
        try:
            self._on_frame(frame)
        except Exception:  # noqa: BLE001
            logger.exception("Frame handler failed; frame dropped")

    def _handle_error(self, exc: BaseException) -> None:
        self._last_error = TransportError(f"{type(exc).__name__}: {exc}")
        logger.warning("Transport error on %s: %s", self._config.url, self._last_error)
        self._state.set_connection(error=CONNECTION_ERROR_MESSAGE)

    def _handle_close(self) -> None:
        self._cancel_heartbeat()
        self._socket = None
        self._task = None
        self._state.set_connection(connected=False, connecting=False)

        limit = self._config.max_reconnect_attempts
        if self._attempts < limit:
            self._attempts += 1
            interval = self._config.reconnect_interval
            logger.info(
                "Connection closed; reconnecting in %.1fs (attempt %d/%d)",
                interval,
                self._attempts,
                limit,
            )
            self._transition(TransportStatus.RECONNECTING)
            self._reconnect_handle = self._get_loop().call_later(
                interval, self._reconnect_due
            )
        else:
            self._transition(TransportStatus.FAILED)
            logger.warning(RECONNECT_EXHAUSTED_MESSAGE)
            self._state.set_connection(error=RECONNECT_EXHAUSTED_MESSAGE)

    def _reconnect_due(self) -> None:
        self._reconnect_handle = None
        if self._status is TransportStatus.RECONNECTING:
            self._begin_connect()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, target: TransportStatus) -> None:
        if target not in _TRANSITIONS[self._status]:
            raise TransportStateError(self._status.value, target.value)
        logger.debug("Transport %s -> %s", self._status.value, target.value)
        self._status = target
        for listener in self._status_listeners:
            listener(target)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _cancel_heartbeat(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()
