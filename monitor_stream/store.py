"""Bounded in-memory event log for monitor-stream.

This module provides the ``EventStore`` that holds every accepted
``MonitorEvent``.  It supports:

- Replacing the whole history with an ``init`` snapshot.
- Appending live events in arrival order.
- A timestamp-ascending view for the projector, independent of arrival order.
- Querying events with optional filtering via ``EventFilter``.
- Counting and clearing stored events.

The store is bounded: once ``max_events`` entries are held, each append drops
the oldest arrival.

Example usage::

    store = EventStore(max_events=500)
    store.replace_snapshot(init_envelope.events)
    store.append(live_event)

    commands = store.query(EventFilter(event_type="CommandStart"))
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional

from monitor_stream.models import EventFilter, MonitorEvent

logger = logging.getLogger(__name__)

EvictionListener = Callable[[MonitorEvent], None]


class EventStore:
    """Ordered in-memory store for ``MonitorEvent`` records.

    Args:
        max_events: Capacity of the log.  Pass a large value to effectively
            disable eviction.
    """

    def __init__(self, max_events: int = 1000) -> None:
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        self._max_events = max_events
        self._events: Deque[MonitorEvent] = deque(maxlen=max_events)
        self._eviction_listeners: List[EvictionListener] = []

    def add_eviction_listener(self, listener: EvictionListener) -> None:
        """Register a callback invoked with each event ``append`` evicts.

        ``replace_snapshot`` does not notify; it discards the whole history.
        """
        self._eviction_listeners.append(listener)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def replace_snapshot(self, batch: Iterable[MonitorEvent]) -> None:
        """Discard the current history and load ``batch`` in its given order.

        If the batch is larger than the capacity only the last ``max_events``
        entries are kept.

        Args:
            batch: The replayed events from an ``init`` envelope.
        """
        self._events.clear()
        self._events.extend(batch)
        logger.debug("Loaded snapshot of %d events", len(self._events))

    def append(self, event: MonitorEvent) -> None:
        """Add one live event at the end of the arrival order.

        Args:
            event: The event to store.
        """
        evicted: Optional[MonitorEvent] = None
        if len(self._events) == self._max_events:
            evicted = self._events[0]
            logger.debug("Event log full (%d); evicting oldest", self._max_events)
        self._events.append(event)
        if evicted is not None:
            for listener in self._eviction_listeners:
                listener(evicted)

    def clear(self) -> None:
        """Delete all events from the store."""
        self._events.clear()
        logger.debug("Cleared all events from store")

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    @property
    def max_events(self) -> int:
        """Capacity of the log."""
        return self._max_events

    @property
    def events(self) -> list[MonitorEvent]:
        """All stored events in arrival (display) order."""
        return list(self._events)

    def ordered(self) -> list[MonitorEvent]:
        """All stored events in ascending timestamp order.

        The sort is stable, so events sharing a timestamp keep their arrival
        order.
        """
        return sorted(self._events, key=lambda e: e.timestamp)

    def latest(self, n: int) -> list[MonitorEvent]:
        """Return the ``n`` most recently arrived events, oldest first."""
        if n <= 0:
            return []
        return list(self._events)[-n:]

    def query(self, event_filter: Optional[EventFilter] = None) -> list[MonitorEvent]:
        """Query stored events with optional filtering.

        Events are returned in ascending timestamp order.

        Args:
            event_filter: An :class:`~monitor_stream.models.EventFilter`
                specifying filter criteria and pagination.  If ``None``, up to
                100 events are returned.

        Returns:
            A list of matching events.
        """
        if event_filter is None:
            event_filter = EventFilter()

        matched = [e for e in self.ordered() if event_filter.matches(e)]
        start = event_filter.offset
        return matched[start : start + event_filter.limit]

    def count(self, event_filter: Optional[EventFilter] = None) -> int:
        """Count stored events matching an optional filter.

        Pagination fields of the filter are ignored.

        Args:
            event_filter: Optional filter criteria. If ``None``, counts all events.

        Returns:
            The number of matching events.
        """
        if event_filter is None:
            return len(self._events)
        return sum(1 for e in self._events if event_filter.matches(e))

    def __len__(self) -> int:
        return len(self._events)
