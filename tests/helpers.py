"""Shared fakes and factories for the monitor-stream test suite.

- ``FakeLoop``: a manually advanced clock implementing ``call_later``, used to
  drive TTL timers deterministically.
- ``FakeSocket`` / ``FakeConnector``: an in-memory stand-in for a websockets
  client connection and the factory that opens it.
- ``make_event``: factory helper for ``MonitorEvent``.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Iterable, List, Optional

from monitor_stream.models import MonitorEvent


# ---------------------------------------------------------------------------
# Event helpers
# ---------------------------------------------------------------------------


def make_event(event_type: str, timestamp: int, **data: Any) -> MonitorEvent:
    """Factory helper to create a MonitorEvent with a keyword payload."""
    return MonitorEvent(type=event_type, timestamp=timestamp, data=data)


def init_frame(events: Iterable[MonitorEvent]) -> str:
    """Serialize events as an ``init`` envelope."""
    return json.dumps({"type": "init", "events": [e.model_dump() for e in events]})


def event_frame(event: MonitorEvent) -> str:
    """Serialize one event as an ``event`` envelope."""
    return json.dumps({"type": "event", "event": event.model_dump()})


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the running loop until it holds or ``timeout`` elapses."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# Fake event loop clock
# ---------------------------------------------------------------------------


class FakeTimerHandle:
    """Minimal ``asyncio.TimerHandle`` stand-in."""

    def __init__(self, when: float, callback: Callable[..., None], args: tuple) -> None:
        self._when = when
        self._callback = callback
        self._args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def when(self) -> float:
        return self._when

    def run(self) -> None:
        self._callback(*self._args)


class FakeLoop:
    """A clock that only moves when :meth:`advance` is called."""

    def __init__(self) -> None:
        self._now = 0.0
        self._timers: List[FakeTimerHandle] = []

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., None], *args: Any) -> FakeTimerHandle:
        handle = FakeTimerHandle(self._now + delay, callback, args)
        self._timers.append(handle)
        return handle

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in deadline order."""
        target = self._now + seconds
        while True:
            due = [h for h in self._timers if not h.cancelled() and h.when() <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when())
            self._timers.remove(handle)
            self._now = handle.when()
            handle.run()
        self._now = target
        self._timers = [h for h in self._timers if not h.cancelled()]

    @property
    def pending(self) -> int:
        return sum(1 for h in self._timers if not h.cancelled())


# ---------------------------------------------------------------------------
# Fake WebSocket
# ---------------------------------------------------------------------------

_EOF = object()


class FakeSocket:
    """In-memory WebSocket connection driven by the test."""

    def __init__(self, frames: Iterable[str] = ()) -> None:
        self.sent: List[str] = []
        self.closed = False
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        for frame in frames:
            self._inbox.put_nowait(frame)

    def feed(self, frame: str) -> None:
        """Deliver a frame from the server."""
        self._inbox.put_nowait(frame)

    def server_close(self) -> None:
        """Simulate a clean close initiated by the server."""
        self.closed = True
        self._inbox.put_nowait(_EOF)

    def server_error(self, exc: BaseException) -> None:
        """Simulate an abnormal close surfacing as an exception."""
        self.closed = True
        self._inbox.put_nowait(exc)

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionError("socket is closed")
        self.sent.append(message)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(_EOF)

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is _EOF:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnector:
    """Socket factory that records every connection attempt.

    Args:
        fail: When ``True`` every attempt raises ``OSError``.
        frames: Frames pre-loaded into every socket it opens.
    """

    def __init__(self, fail: bool = False, frames: Iterable[str] = ()) -> None:
        self.fail = fail
        self.frames = list(frames)
        self.calls = 0
        self.urls: List[str] = []
        self.sockets: List[FakeSocket] = []

    async def __call__(self, url: str) -> FakeSocket:
        self.calls += 1
        self.urls.append(url)
        await asyncio.sleep(0)
        if self.fail:
            raise OSError("Connection refused")
        socket = FakeSocket(self.frames)
        self.sockets.append(socket)
        return socket

    @property
    def last(self) -> Optional[FakeSocket]:
        return self.sockets[-1] if self.sockets else None
