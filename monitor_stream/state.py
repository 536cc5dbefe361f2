"""The explicitly owned state container shared by the client components.

``MonitorState`` holds the event log, the two projections, and the connection
state.  The transport writes only the connection state; the projector and the
scheduler write only the projections.  Every write publishes a
``MonitorUpdate`` on the optional bus so renderers never poll.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from monitor_stream.event_bus import EventBus
from monitor_stream.models import (
    ActiveAgent,
    ConnectionState,
    CurrentCommand,
    MonitorEvent,
    MonitorUpdate,
    Projections,
    StateSnapshot,
    UpdateKind,
)
from monitor_stream.store import EventStore

logger = logging.getLogger(__name__)


class MonitorState:
    """Mutable holder of the client's authoritative state.

    Args:
        store: The event log.  A default-capacity store is created if omitted.
        bus: Optional bus that receives a ``MonitorUpdate`` on every change.
    """

    def __init__(
        self,
        store: Optional[EventStore] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._store = store if store is not None else EventStore()
        self._bus = bus
        self._projections = Projections()
        self._connection = ConnectionState()

    # ------------------------------------------------------------------
    # Read interface
    # ------------------------------------------------------------------

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def projections(self) -> Projections:
        return self._projections

    @property
    def active_agent(self) -> Optional[ActiveAgent]:
        return self._projections.active_agent

    @property
    def current_command(self) -> Optional[CurrentCommand]:
        return self._projections.current_command

    @property
    def connection(self) -> ConnectionState:
        return self._connection

    def snapshot(self) -> StateSnapshot:
        """Return an immutable view of the whole state."""
        return StateSnapshot(
            connection=self._connection,
            active_agent=self._projections.active_agent,
            current_command=self._projections.current_command,
            event_count=len(self._store),
        )

    # ------------------------------------------------------------------
    # Mutate interface
    # ------------------------------------------------------------------

    def load_snapshot(self, batch: Iterable[MonitorEvent]) -> None:
        """Replace the event log with a replayed batch."""
        self._store.replace_snapshot(batch)
        self._publish(UpdateKind.SNAPSHOT)

    def record_event(self, event: MonitorEvent) -> None:
        """Append one live event to the log."""
        self._store.append(event)
        self._publish(UpdateKind.EVENT, event)

    def set_projections(self, projections: Projections) -> None:
        """Install new projections; publishes only when they changed."""
        if projections == self._projections:
            return
        self._projections = projections
        self._publish(UpdateKind.STATE)

    def set_current_command(self, command: Optional[CurrentCommand]) -> None:
        self.set_projections(
            self._projections.model_copy(update={"current_command": command})
        )

    def set_connection(
        self,
        *,
        connected: Optional[bool] = None,
        connecting: Optional[bool] = None,
        error: Optional[str] = None,
        clear_error: bool = False,
    ) -> None:
        """Update the connection state; unspecified fields keep their value."""
        current = self._connection
        updated = ConnectionState(
            connected=current.connected if connected is None else connected,
            connecting=current.connecting if connecting is None else connecting,
            error=None if clear_error else (error if error is not None else current.error),
        )
        if updated == current:
            return
        self._connection = updated
        logger.debug(
            "Connection state: connected=%s connecting=%s error=%s",
            updated.connected,
            updated.connecting,
            updated.error,
        )
        self._publish(UpdateKind.STATE)

    def _publish(self, kind: UpdateKind, event: Optional[MonitorEvent] = None) -> None:
        if self._bus is None:
            return
        self._bus.publish(MonitorUpdate(kind=kind, snapshot=self.snapshot(), event=event))
