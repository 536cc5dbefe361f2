"""Decoding of raw WebSocket frames into typed envelopes.

The monitor server sends either the literal heartbeat reply ``"pong"`` or a
JSON envelope::

    {"type": "init", "events": [MonitorEvent, ...]}
    {"type": "event", "event": MonitorEvent}

Heartbeat replies decode to ``None``.  Anything else that is not a valid
envelope raises :class:`~monitor_stream.errors.DecodeError`.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from pydantic import TypeAdapter, ValidationError

from monitor_stream.errors import DecodeError
from monitor_stream.models import Envelope, EventEnvelope, InitEnvelope

logger = logging.getLogger(__name__)

PING = "ping"
PONG = "pong"

# Longest frame excerpt kept on a DecodeError for logging.
_EXCERPT_LENGTH = 120

_ENVELOPE_ADAPTER: TypeAdapter[Union[InitEnvelope, EventEnvelope]] = TypeAdapter(Envelope)


class MessageDecoder:
    """Stateless parser for inbound frames.

    Example::

        decoder = MessageDecoder()
        envelope = decoder.decode('{"type": "event", "event": {...}}')
    """

    def decode(
        self, frame: Union[str, bytes]
    ) -> Optional[Union[InitEnvelope, EventEnvelope]]:
        """Parse one frame.

        Args:
            frame: The raw text frame.  Binary frames are decoded as UTF-8.

        Returns:
            The decoded envelope, or ``None`` for a heartbeat reply.

        Raises:
            DecodeError: If the frame is not valid JSON or does not match either
                envelope shape.
        """
        if isinstance(frame, bytes):
            try:
                frame = frame.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise DecodeError(f"binary frame is not UTF-8 ({exc})") from exc

        if frame == PONG:
            return None

        try:
            envelope = _ENVELOPE_ADAPTER.validate_json(frame)
        except ValidationError as exc:
            raise DecodeError(_summarize(exc), frame=frame[:_EXCERPT_LENGTH]) from exc

        if isinstance(envelope, InitEnvelope):
            logger.debug("Decoded init envelope with %d events", len(envelope.events))
        else:
            logger.debug("Decoded event envelope (%s)", envelope.event.type)
        return envelope


def _summarize(exc: ValidationError) -> str:
    """Condense a pydantic validation error into a one-line message."""
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return f"{location}: {first.get('msg', 'invalid')} ({exc.error_count()} error(s))"
