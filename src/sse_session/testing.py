"""
Test doubles for sse_session.

Provides an in-memory output sink and a manually driven connection so a
Session can be exercised without an HTTP server.
"""

from collections.abc import Callable
from typing import Any

from .errors import SinkClosedError
from .parser import ServerSentEvent, iter_events


class MemorySink:
    """Output sink that records every operation in order.

    Usage:
        sink = MemorySink()
        conn = ManualConnection()
        session = Session(sink, conn)
        session.send({"message": "hi"})
        assert sink.events()[0].json() == {"message": "hi"}
    """

    def __init__(self, raise_when_closed: bool = True):
        self.operations: list[tuple[str, ...]] = []
        self.headers: list[tuple[str, str]] = []
        self.writes: list[str] = []
        self.raise_when_closed = raise_when_closed
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def set_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))
        self.operations.append(("set_header", name, value))

    def flush_headers(self) -> None:
        self.operations.append(("flush_headers",))

    def write(self, chunk: str) -> None:
        if self._closed and self.raise_when_closed:
            raise SinkClosedError("Write to closed memory sink")
        self.writes.append(chunk)
        self.operations.append(("write", chunk))

    def close(self) -> None:
        self._closed = True
        self.operations.append(("close",))

    @property
    def text(self) -> str:
        """Everything written so far."""
        return "".join(self.writes)

    def events(self, include_comments: bool = False) -> list[ServerSentEvent]:
        """Parse the written text back into events."""
        return list(iter_events(self.text, include_comments=include_comments))

    def clear(self) -> None:
        self.writes.clear()


class ManualConnection:
    """Connection whose close notification is fired by the test.

    Unlike a real connection, ``close()`` notifies on every call so tests can
    check that a session reacts only to the first one.
    """

    def __init__(self) -> None:
        self.callbacks: list[Callable[[], Any]] = []

    def on_close(self, callback: Callable[[], Any]) -> None:
        self.callbacks.append(callback)

    def close(self) -> None:
        for callback in list(self.callbacks):
            callback()


__all__ = ["MemorySink", "ManualConnection"]
