#!/usr/bin/env python3
# src/sse_session/sinks.py
"""
Collaborator interfaces consumed by Session, plus the asyncio implementations
used by the Starlette adapter.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol, runtime_checkable

from .errors import SinkClosedError

logger = logging.getLogger(__name__)


@runtime_checkable
class OutputSink(Protocol):
    """Writable side of an SSE response."""

    @property
    def closed(self) -> bool: ...

    def set_header(self, name: str, value: str) -> None: ...

    def flush_headers(self) -> None: ...

    def write(self, chunk: str) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class Connection(Protocol):
    """Readable side of a client connection; only its close signal is used."""

    def on_close(self, callback: Callable[[], Any]) -> None: ...


class QueueSink:
    """Output sink backed by an asyncio queue.

    ``stream()`` drains the queue and is meant to be handed to a
    ``StreamingResponse`` as its body iterator. ``write`` may be called from
    any thread.
    """

    _SENTINEL = None

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self.headers: dict[str, str] = {}
        self.headers_sent = False
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def set_header(self, name: str, value: str) -> None:
        if self.headers_sent:
            logger.warning(f"Ignoring header {name} set after headers were sent")
            return
        self.headers[name] = value

    def flush_headers(self) -> None:
        self.headers_sent = True

    def write(self, chunk: str) -> None:
        if self._closed:
            raise SinkClosedError("Write to closed SSE sink")
        self._put(chunk)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._put(self._SENTINEL)

    def _put(self, item: str | None) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(item)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    async def stream(self, connection: "StreamConnection | None" = None) -> AsyncIterator[str]:
        """Yield written chunks until the sink is closed.

        When iteration stops for any reason (sink closed, client gone,
        response cancelled) the connection is notified.
        """
        try:
            while True:
                chunk = await self._queue.get()
                if chunk is self._SENTINEL:
                    break
                yield chunk
        finally:
            self._closed = True
            if connection is not None:
                connection.notify_close()


class StreamConnection:
    """Connection whose close notification fires once."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[[], Any]] = []
        self.closed = False

    def on_close(self, callback: Callable[[], Any]) -> None:
        if self.closed:
            callback()
            return
        self._callbacks.append(callback)

    def notify_close(self) -> None:
        if self.closed:
            return
        self.closed = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


__all__ = ["OutputSink", "Connection", "QueueSink", "StreamConnection"]
