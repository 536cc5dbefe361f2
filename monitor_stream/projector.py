"""Derivation of the active-agent and current-command projections.

The heart of this module is :func:`reduce`, a pure function that folds one
``MonitorEvent`` into a ``Projections`` value.  ``StateProjector`` applies it
to the live ``MonitorState`` in timestamp order and registers auto-clears
for terminal command states with the ``EphemeralStateScheduler``.

Transition rules:

- ``AgentActivated``: replace the active agent.
- ``AgentDeactivated``: clear the active agent.
- ``CommandStart``: replace the current command with a running one.
- ``CommandComplete`` / ``CommandError``: mark the current command complete or
  failed, if there is one.  Live application schedules an auto-clear.
- Anything else: no change.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Set, Tuple

from monitor_stream.models import (
    EMPTY_PROJECTIONS,
    ActiveAgent,
    CommandStatus,
    CurrentCommand,
    EventType,
    MonitorEvent,
    Projections,
)
from monitor_stream.scheduler import EphemeralStateScheduler
from monitor_stream.state import MonitorState

logger = logging.getLogger(__name__)

UNKNOWN_AGENT_ID = "unknown"
UNKNOWN_AGENT_NAME = "Unknown Agent"
UNKNOWN_COMMAND = "unknown"

_TERMINAL_STATUS = {
    EventType.COMMAND_COMPLETE: CommandStatus.COMPLETE,
    EventType.COMMAND_ERROR: CommandStatus.ERROR,
}

# (name, started_at, agent_id) identifies one command run.
_CommandKey = Tuple[str, int, Optional[str]]


def _text(data: Mapping[str, Any], key: str) -> Optional[str]:
    """Return ``data[key]`` as a string, or ``None`` when missing or empty."""
    value = data.get(key)
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def _command_key(command: CurrentCommand) -> _CommandKey:
    return (command.name, command.started_at, command.agent_id)


def reduce(projections: Projections, event: MonitorEvent) -> Projections:
    """Fold one event into the projections.

    Args:
        projections: The projections before the event.
        event: The event to apply.

    Returns:
        The projections after the event.  ``projections`` itself is returned
        unchanged for events that do not affect either projection.
    """
    event_type = event.event_type
    data = event.data

    if event_type is EventType.AGENT_ACTIVATED:
        agent = ActiveAgent(
            id=_text(data, "agentId") or UNKNOWN_AGENT_ID,
            name=_text(data, "agentName") or UNKNOWN_AGENT_NAME,
            persona=_text(data, "persona"),
            activated_at=event.timestamp,
        )
        return projections.model_copy(update={"active_agent": agent})

    if event_type is EventType.AGENT_DEACTIVATED:
        return projections.model_copy(update={"active_agent": None})

    if event_type is EventType.COMMAND_START:
        command = CurrentCommand(
            name=_text(data, "command") or UNKNOWN_COMMAND,
            started_at=event.timestamp,
            status=CommandStatus.RUNNING,
            agent_id=_text(data, "agentId"),
        )
        return projections.model_copy(update={"current_command": command})

    if event_type in _TERMINAL_STATUS:
        current = projections.current_command
        if current is None:
            return projections
        finished = current.model_copy(update={"status": _TERMINAL_STATUS[event_type]})
        return projections.model_copy(update={"current_command": finished})

    return projections


def fold(events: Iterable[MonitorEvent], initial: Projections = EMPTY_PROJECTIONS) -> Projections:
    """Apply :func:`reduce` over ``events`` in the order given."""
    projections = initial
    for event in events:
        projections = reduce(projections, event)
    return projections


def _start_keys(events: Iterable[MonitorEvent]) -> Set[_CommandKey]:
    """Keys of the commands started by ``events``."""
    keys: Set[_CommandKey] = set()
    for event in events:
        if event.event_type is EventType.COMMAND_START:
            command = reduce(EMPTY_PROJECTIONS, event).current_command
            keys.add(_command_key(command))  # type: ignore[arg-type]
    return keys


class StateProjector:
    """Applies events to the live projections of a ``MonitorState``.

    Re-folds start from a checkpoint: the projections of every event the
    bounded log has already evicted.  Effects of evicted events therefore
    survive a re-fold.

    Args:
        state: The state container holding the event log and projections.
        scheduler: Scheduler used to auto-clear terminal command states.
        complete_ttl: Seconds a completed command stays visible.
        error_ttl: Seconds a failed command stays visible.
    """

    def __init__(
        self,
        state: MonitorState,
        scheduler: EphemeralStateScheduler,
        complete_ttl: float = 3.0,
        error_ttl: float = 5.0,
    ) -> None:
        self._state = state
        self._scheduler = scheduler
        self._ttl = {
            CommandStatus.COMPLETE: complete_ttl,
            CommandStatus.ERROR: error_ttl,
        }
        # Newest timestamp folded into the live projections.
        self._watermark: Optional[int] = None
        # Projections of the events no longer held by the store.
        self._checkpoint: Projections = EMPTY_PROJECTIONS
        self._expired: Set[_CommandKey] = set()
        scheduler.add_listener(self._remember_expired)
        state.store.add_eviction_listener(self._advance_checkpoint)

    def apply(self, event: MonitorEvent) -> Projections:
        """Apply one live event that has already been recorded in the store.

        An event older than the newest applied one cannot be folded
        incrementally; the projections are then recomputed by folding the
        store's timestamp-ordered view onto the checkpoint.

        Returns:
            The projections after the event.
        """
        if self._watermark is not None and event.timestamp < self._watermark:
            logger.debug(
                "Out-of-order %s at %d (watermark %d); re-folding log",
                event.type,
                event.timestamp,
                self._watermark,
            )
            return self._install(fold(self._state.store.ordered(), self._checkpoint))

        self._watermark = event.timestamp
        projections = reduce(self._state.projections, event)
        self._state.set_projections(projections)

        # A repeated terminal event adds a second timer; the earlier one still clears.
        after = projections.current_command
        if event.event_type in _TERMINAL_STATUS and after is not None:
            self._schedule_clear(after)
        return projections

    def replay(self, batch: Iterable[MonitorEvent]) -> Projections:
        """Rebuild the projections from an authoritative ``init`` snapshot.

        The batch is folded from empty projections in timestamp order, which
        yields the same result as applying each event live.  Timers are not
        started for intermediate terminal states; only the final command, if
        it is terminal, is scheduled for auto-clear with a fresh TTL.

        Entries of an oversized batch that the store will not retain are
        folded into the checkpoint.

        Returns:
            The projections after the replay.
        """
        events = list(batch)
        ordered = sorted(events, key=lambda e: e.timestamp)
        overflow = len(events) - self._state.store.max_events
        dropped = events[:overflow] if overflow > 0 else []
        self._checkpoint = fold(sorted(dropped, key=lambda e: e.timestamp))

        self._scheduler.cancel_all()
        # Forget expiries for commands the server no longer reports.
        self._expired &= _start_keys(ordered)
        self._watermark = ordered[-1].timestamp if ordered else None
        projections = self._install(fold(ordered))
        logger.info(
            "Replayed %d events: agent=%s command=%s",
            len(ordered),
            projections.active_agent.name if projections.active_agent else None,
            projections.current_command.name if projections.current_command else None,
        )
        return projections

    def _install(self, projections: Projections) -> Projections:
        """Install re-folded projections, honouring clears that already fired."""
        command = projections.current_command
        if command is not None and _command_key(command) in self._expired:
            projections = projections.model_copy(update={"current_command": None})
            command = None
        self._state.set_projections(projections)
        if command is not None and command.status.is_terminal:
            self._schedule_clear(command)
        return projections

    def _schedule_clear(self, command: CurrentCommand) -> None:
        self._scheduler.schedule_clear(
            lambda current: current == command,
            self._ttl[command.status],
        )

    def _advance_checkpoint(self, event: MonitorEvent) -> None:
        self._checkpoint = reduce(self._checkpoint, event)

    def _remember_expired(self, command: CurrentCommand) -> None:
        # Only commands a re-fold can still reach need remembering.
        reachable = _start_keys(self._state.store.events)
        if self._checkpoint.current_command is not None:
            reachable.add(_command_key(self._checkpoint.current_command))
        self._expired &= reachable
        self._expired.add(_command_key(command))
