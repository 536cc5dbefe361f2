"""Time-based invalidation of terminal command states.

A completed or failed command stays visible for a short TTL and is then
cleared.  The clear is conditional: when the timer fires, the predicate is
evaluated against the *current* command in ``MonitorState``, so a timer
scheduled for an old command never erases a newer one.

Example usage::

    scheduler = EphemeralStateScheduler(state)
    scheduler.schedule_clear(lambda cmd: cmd == completed, delay=3.0)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Set

from monitor_stream.models import CurrentCommand
from monitor_stream.state import MonitorState

logger = logging.getLogger(__name__)

ClearPredicate = Callable[[Optional[CurrentCommand]], bool]
ExpiryListener = Callable[[CurrentCommand], None]


class EphemeralStateScheduler:
    """Schedules conditional clears of the current command.

    Args:
        state: The state container whose current command is cleared.
        loop: Event loop used for timers.  Defaults to the running loop at
            scheduling time.
    """

    def __init__(
        self,
        state: MonitorState,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._state = state
        self._loop = loop
        self._handles: Set[asyncio.TimerHandle] = set()
        self._listeners: List[ExpiryListener] = []

    def add_listener(self, listener: ExpiryListener) -> None:
        """Register a callback invoked with every command the scheduler clears."""
        self._listeners.append(listener)

    def schedule_clear(self, predicate: ClearPredicate, delay: float) -> asyncio.TimerHandle:
        """Clear the current command after ``delay`` seconds if ``predicate`` holds.

        Args:
            predicate: Called at fire time with the live current command.
            delay: Seconds to wait before re-checking.

        Returns:
            The timer handle; cancelling it abandons the clear.
        """
        loop = self._loop or asyncio.get_running_loop()
        handle: Optional[asyncio.TimerHandle] = None

        def _fire() -> None:
            self._handles.discard(handle)  # type: ignore[arg-type]
            self._fire(predicate)

        handle = loop.call_later(delay, _fire)
        self._handles.add(handle)
        logger.debug("Scheduled conditional clear in %.3fs", delay)
        return handle

    def cancel_all(self) -> None:
        """Cancel every pending clear."""
        for handle in self._handles:
            handle.cancel()
        if self._handles:
            logger.debug("Cancelled %d pending clear(s)", len(self._handles))
        self._handles.clear()

    @property
    def pending(self) -> int:
        """Number of clears that have not fired or been cancelled."""
        return len(self._handles)

    def _fire(self, predicate: ClearPredicate) -> None:
        current = self._state.current_command
        if current is None or not predicate(current):
            logger.debug("Clear skipped; current command no longer matches")
            return
        self._state.set_current_command(None)
        logger.debug("Cleared %s command '%s'", current.status.value, current.name)
        for listener in self._listeners:
            listener(current)
