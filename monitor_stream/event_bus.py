"""Async in-process update bus for monitor-stream.

This module provides an ``EventBus`` that fans out ``MonitorUpdate`` instances
to multiple async subscribers (e.g. a terminal renderer or a dashboard
adapter).

Every subscriber gets its own bounded ``asyncio.Queue``.  Publishing never
blocks: when a subscriber falls behind, updates for that subscriber are
dropped and a warning is logged.  All calls must happen on the event loop
thread.

Example usage (async context)::

    bus = EventBus()
    state = MonitorState(store, bus=bus)

    async with bus.subscribe() as queue:
        while True:
            update = await queue.get()
            if update is None:
                break  # bus closed
            render(update.snapshot)

    bus.close()
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Set

from monitor_stream.models import MonitorUpdate

logger = logging.getLogger(__name__)

# Maximum number of updates buffered per subscriber queue before dropping.
_SUBSCRIBER_QUEUE_SIZE = 512


class EventBus:
    """Fan-out bus that distributes ``MonitorUpdate`` objects.

    :class:`~monitor_stream.state.MonitorState` publishes an update for every
    accepted event and every projection or connection change.  Consumers
    subscribe via :meth:`subscribe`.

    Args:
        queue_size: Capacity of each subscriber queue.
    """

    def __init__(self, queue_size: int = _SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: Set[asyncio.Queue[Optional[MonitorUpdate]]] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        """Whether :meth:`close` has been called."""
        return self._closed

    def close(self) -> None:
        """Notify all subscribers with a ``None`` sentinel and stop publishing.

        Subsequent calls are no-ops.
        """
        if self._closed:
            return
        self._closed = True
        for q in list(self._subscribers):
            try:
                q.put_nowait(None)
            except asyncio.QueueFull:
                logger.warning("Subscriber queue full when sending close sentinel")
        logger.debug("EventBus closed")

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, update: MonitorUpdate) -> None:
        """Deliver an update to every subscriber without blocking.

        Args:
            update: The ``MonitorUpdate`` to publish.
        """
        if self._closed:
            logger.debug("EventBus closed; dropping %s update", update.kind.value)
            return
        for q in list(self._subscribers):
            try:
                q.put_nowait(update)
            except asyncio.QueueFull:
                logger.warning(
                    "Subscriber queue full; dropping %s update for one subscriber",
                    update.kind.value,
                )

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def subscribe(
        self,
    ) -> AsyncGenerator[asyncio.Queue[Optional[MonitorUpdate]], None]:
        """Context manager that yields a per-subscriber async queue.

        The queue item is either a ``MonitorUpdate`` or ``None`` (sentinel
        indicating the bus has closed).  Subscribing to a closed bus yields a
        queue that already holds the sentinel.

        Yields:
            An ``asyncio.Queue`` of ``Optional[MonitorUpdate]``.
        """
        queue: asyncio.Queue[Optional[MonitorUpdate]] = asyncio.Queue(
            maxsize=self._queue_size
        )
        if self._closed:
            queue.put_nowait(None)
        self._subscribers.add(queue)
        logger.debug("New subscriber added; total=%d", len(self._subscribers))
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)
            logger.debug("Subscriber removed; total=%d", len(self._subscribers))

    @property
    def subscriber_count(self) -> int:
        """Return the number of currently active subscribers."""
        return len(self._subscribers)
