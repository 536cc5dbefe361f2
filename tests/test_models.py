"""Unit tests for Pydantic models and enumerations.

Covers:
- EventType and CommandStatus enum values.
- MonitorEvent validation, immutability, and type recognition.
- Projection models (ActiveAgent, CurrentCommand) defaults and immutability.
- EventFilter validation and matching.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from monitor_stream.models import (
    ActiveAgent,
    CommandStatus,
    ConnectionState,
    CurrentCommand,
    EventFilter,
    EventType,
    MonitorEvent,
    Projections,
)


# ---------------------------------------------------------------------------
# Enum tests
# ---------------------------------------------------------------------------


class TestEventType:
    """Tests for the EventType enumeration."""

    def test_expected_members_exist(self) -> None:
        """The five projected event types should be defined."""
        expected = {
            "AgentActivated",
            "AgentDeactivated",
            "CommandStart",
            "CommandComplete",
            "CommandError",
        }
        assert {m.value for m in EventType} == expected

    def test_construct_from_string(self) -> None:
        """EventType should be constructable from its wire value."""
        assert EventType("CommandStart") is EventType.COMMAND_START

    def test_invalid_string_raises(self) -> None:
        """An unknown wire value should raise ValueError."""
        with pytest.raises(ValueError):
            EventType("ToolCall")


class TestCommandStatus:
    """Tests for CommandStatus."""

    def test_running_is_not_terminal(self) -> None:
        assert CommandStatus.RUNNING.is_terminal is False

    def test_complete_and_error_are_terminal(self) -> None:
        assert CommandStatus.COMPLETE.is_terminal is True
        assert CommandStatus.ERROR.is_terminal is True


# ---------------------------------------------------------------------------
# MonitorEvent tests
# ---------------------------------------------------------------------------


class TestMonitorEvent:
    """Tests for MonitorEvent validation."""

    def test_minimal_event(self) -> None:
        """An event without data should default to an empty payload."""
        event = MonitorEvent(type="CommandStart", timestamp=1000)
        assert event.data == {}
        assert event.timestamp == 1000

    def test_null_data_becomes_empty(self) -> None:
        """An explicit null payload should be treated as empty."""
        event = MonitorEvent.model_validate({"type": "X", "timestamp": 1, "data": None})
        assert event.data == {}

    def test_missing_timestamp_raises(self) -> None:
        with pytest.raises(ValidationError):
            MonitorEvent.model_validate({"type": "CommandStart"})

    def test_non_numeric_timestamp_raises(self) -> None:
        with pytest.raises(ValidationError):
            MonitorEvent.model_validate({"type": "CommandStart", "timestamp": "soon"})

    def test_empty_type_raises(self) -> None:
        with pytest.raises(ValidationError):
            MonitorEvent(type="", timestamp=1)

    def test_event_is_immutable(self) -> None:
        """Assigning to a field of a received event should fail."""
        event = MonitorEvent(type="CommandStart", timestamp=1000)
        with pytest.raises(ValidationError):
            event.timestamp = 2000  # type: ignore[misc]

    def test_recognized_event_type(self) -> None:
        event = MonitorEvent(type="AgentActivated", timestamp=1)
        assert event.event_type is EventType.AGENT_ACTIVATED

    def test_unrecognized_event_type_is_none(self) -> None:
        """Unknown types are kept but report no EventType."""
        event = MonitorEvent(type="FileWritten", timestamp=1)
        assert event.type == "FileWritten"
        assert event.event_type is None

    def test_events_with_same_fields_are_equal(self) -> None:
        a = MonitorEvent(type="CommandStart", timestamp=1, data={"command": "build"})
        b = MonitorEvent(type="CommandStart", timestamp=1, data={"command": "build"})
        assert a == b


# ---------------------------------------------------------------------------
# Projection model tests
# ---------------------------------------------------------------------------


class TestProjectionModels:
    """Tests for ActiveAgent, CurrentCommand, Projections, ConnectionState."""

    def test_agent_persona_is_optional(self) -> None:
        agent = ActiveAgent(id="dev", name="Dex", activated_at=10)
        assert agent.persona is None

    def test_command_defaults_to_running(self) -> None:
        command = CurrentCommand(name="build", started_at=10)
        assert command.status is CommandStatus.RUNNING
        assert command.agent_id is None

    def test_command_is_immutable(self) -> None:
        command = CurrentCommand(name="build", started_at=10)
        with pytest.raises(ValidationError):
            command.status = CommandStatus.COMPLETE  # type: ignore[misc]

    def test_model_copy_changes_only_status(self) -> None:
        command = CurrentCommand(name="build", started_at=10, agent_id="dev")
        done = command.model_copy(update={"status": CommandStatus.COMPLETE})
        assert done.name == "build"
        assert done.started_at == 10
        assert done.agent_id == "dev"
        assert done.status is CommandStatus.COMPLETE

    def test_empty_projections(self) -> None:
        projections = Projections()
        assert projections.active_agent is None
        assert projections.current_command is None

    def test_connection_state_defaults(self) -> None:
        state = ConnectionState()
        assert state.connected is False
        assert state.connecting is False
        assert state.error is None


# ---------------------------------------------------------------------------
# EventFilter tests
# ---------------------------------------------------------------------------


class TestEventFilter:
    """Tests for EventFilter validation and matching."""

    def test_defaults(self) -> None:
        f = EventFilter()
        assert f.limit == 100
        assert f.offset == 0
        assert f.event_type is None

    def test_limit_bounds(self) -> None:
        with pytest.raises(ValidationError):
            EventFilter(limit=0)
        with pytest.raises(ValidationError):
            EventFilter(limit=1001)

    def test_negative_offset_raises(self) -> None:
        with pytest.raises(ValidationError):
            EventFilter(offset=-1)

    def test_matches_type(self) -> None:
        f = EventFilter(event_type="CommandStart")
        assert f.matches(MonitorEvent(type="CommandStart", timestamp=1))
        assert not f.matches(MonitorEvent(type="CommandError", timestamp=1))

    def test_matches_time_window_inclusive(self) -> None:
        f = EventFilter(since=100, until=200)
        assert f.matches(MonitorEvent(type="X", timestamp=100))
        assert f.matches(MonitorEvent(type="X", timestamp=200))
        assert not f.matches(MonitorEvent(type="X", timestamp=99))
        assert not f.matches(MonitorEvent(type="X", timestamp=201))
