"""Exception types raised by the monitor client."""

CONNECTION_ERROR_MESSAGE = "Connection error"
RECONNECT_EXHAUSTED_MESSAGE = "Connection lost. Max reconnect attempts reached."


class MonitorError(Exception):
    """Base class for all monitor client errors."""


class TransportError(MonitorError):
    """Raised or recorded when the socket fails to open, send, or close."""


class ReconnectExhausted(TransportError):
    """Raised when the transport gave up reconnecting.

    Recovery requires an explicit ``reconnect()``.
    """

    def __init__(self) -> None:
        super().__init__(RECONNECT_EXHAUSTED_MESSAGE)


class DecodeError(MonitorError):
    """Raised when an inbound frame is not a valid envelope."""

    def __init__(self, details: str, frame: str = "") -> None:
        self.frame = frame
        super().__init__(f"Malformed frame: {details}")


class TransportStateError(RuntimeError):
    """Raised on an illegal transport state transition."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Illegal transport transition {current} -> {target}")
