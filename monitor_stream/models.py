"""Pydantic models for monitor events, projections, and wire envelopes.

This module defines the core data structures used throughout monitor-stream:

- ``EventType``: The event types the projector understands.
- ``MonitorEvent``: A single immutable event received from the monitor server.
- ``ActiveAgent`` / ``CurrentCommand``: The singleton projections derived from
  the event log.
- ``ConnectionState``: The UI-facing view of the transport.
- ``InitEnvelope`` / ``EventEnvelope``: The two JSON envelopes of the wire
  protocol, discriminated on ``type``.
- ``EventFilter``: A query/filter schema for searching the event store.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EventType(str, Enum):
    """Event types that drive the active-agent and current-command projections.

    Events of any other type are kept in the log but never projected.
    """

    AGENT_ACTIVATED = "AgentActivated"
    AGENT_DEACTIVATED = "AgentDeactivated"
    COMMAND_START = "CommandStart"
    COMMAND_COMPLETE = "CommandComplete"
    COMMAND_ERROR = "CommandError"


class CommandStatus(str, Enum):
    """Lifecycle status of the tracked command."""

    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        """Whether the status is eligible for automatic clearing."""
        return self is not CommandStatus.RUNNING


class MonitorEvent(BaseModel):
    """A single event emitted by the monitor server.

    Attributes:
        type: Event type discriminant, e.g. ``"CommandStart"``.  Unknown types
            are accepted and retained.
        timestamp: Event time in milliseconds since the epoch.  This is the
            ordering key for projection.
        data: Arbitrary event payload.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1, description="Event type discriminant")
    timestamp: int = Field(..., description="Event time in epoch milliseconds")
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary event payload",
    )

    @model_validator(mode="before")
    @classmethod
    def null_data_is_empty(cls, values: Any) -> Any:
        """Treat an explicit ``"data": null`` as an empty payload."""
        if isinstance(values, dict) and values.get("data") is None:
            values = {**values, "data": {}}
        return values

    @property
    def event_type(self) -> Optional[EventType]:
        """The recognized :class:`EventType`, or ``None`` for pass-through events."""
        try:
            return EventType(self.type)
        except ValueError:
            return None


class ActiveAgent(BaseModel):
    """The agent currently active on the monitored system."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    persona: Optional[str] = None
    activated_at: int


class CurrentCommand(BaseModel):
    """The command currently tracked on the monitored system."""

    model_config = ConfigDict(frozen=True)

    name: str
    started_at: int
    status: CommandStatus = CommandStatus.RUNNING
    agent_id: Optional[str] = None


class Projections(BaseModel):
    """The pair of singleton projections the reducer folds over."""

    model_config = ConfigDict(frozen=True)

    active_agent: Optional[ActiveAgent] = None
    current_command: Optional[CurrentCommand] = None


EMPTY_PROJECTIONS = Projections()


class ConnectionState(BaseModel):
    """UI-facing view of the transport status."""

    model_config = ConfigDict(frozen=True)

    connected: bool = False
    connecting: bool = False
    error: Optional[str] = None


class StateSnapshot(BaseModel):
    """Read-only view of the whole client state at one instant."""

    model_config = ConfigDict(frozen=True)

    connection: ConnectionState = Field(default_factory=ConnectionState)
    active_agent: Optional[ActiveAgent] = None
    current_command: Optional[CurrentCommand] = None
    event_count: int = 0


class UpdateKind(str, Enum):
    """What triggered a :class:`MonitorUpdate`."""

    SNAPSHOT = "snapshot"
    EVENT = "event"
    STATE = "state"


class MonitorUpdate(BaseModel):
    """An item delivered to :class:`~monitor_stream.event_bus.EventBus` subscribers.

    ``event`` is set for ``EVENT`` updates only.
    """

    model_config = ConfigDict(frozen=True)

    kind: UpdateKind
    snapshot: StateSnapshot
    event: Optional[MonitorEvent] = None


# ---------------------------------------------------------------------------
# Wire envelopes
# ---------------------------------------------------------------------------


class InitEnvelope(BaseModel):
    """Replayed history sent once after every (re)connection."""

    type: Literal["init"]
    events: list[MonitorEvent]


class EventEnvelope(BaseModel):
    """A single live event."""

    type: Literal["event"]
    event: MonitorEvent


Envelope = Annotated[Union[InitEnvelope, EventEnvelope], Field(discriminator="type")]


class EventFilter(BaseModel):
    """Query and filter schema for searching the in-memory event store.

    All fields are optional; omitting a field means no filtering on that axis.

    Attributes:
        event_type: Filter to events of this exact type string.
        since: Return only events at or after this epoch-ms timestamp.
        until: Return only events at or before this epoch-ms timestamp.
        limit: Maximum number of events to return (default 100, max 1000).
        offset: Number of events to skip for pagination.
    """

    event_type: Optional[str] = Field(
        default=None,
        description="Filter by event type",
    )
    since: Optional[int] = Field(
        default=None,
        description="Return events at or after this epoch-ms timestamp",
    )
    until: Optional[int] = Field(
        default=None,
        description="Return events at or before this epoch-ms timestamp",
    )
    limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum number of events to return",
    )
    offset: int = Field(
        default=0,
        ge=0,
        description="Number of events to skip for pagination",
    )

    def matches(self, event: MonitorEvent) -> bool:
        """Return ``True`` if ``event`` passes every criterion except pagination."""
        if self.event_type is not None and event.type != self.event_type:
            return False
        if self.since is not None and event.timestamp < self.since:
            return False
        if self.until is not None and event.timestamp > self.until:
            return False
        return True
