#!/usr/bin/env python3
# src/sse_session/session.py
"""
Per-connection SSE session.

A Session owns everything one client stream needs: the pending-line buffer,
event-type subscriptions, the acknowledgement table, send rate state and the
heartbeat task. It is created once per accepted connection, on the event loop
that serves it, and is torn down by the connection's close notification.

Usage:
    sink = QueueSink()
    connection = StreamConnection()
    session = Session(sink, connection, heartbeatIntervalMs=10000)

    session.subscribe("price")
    session.send({"symbol": "ACME", "price": 12.5}, event="price", id="42")
    session.comment("still here")
"""

import asyncio
import contextlib
import inspect
import logging
import threading
import uuid
from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import Any, TypedDict

from .acknowledgements import AcknowledgementTable
from .buffer import EventBuffer
from .config import SessionConfig
from .constants import (
    CACHE_CONTROL_NO_CACHE,
    CONNECTION_KEEP_ALIVE,
    CONTENT_TYPE_SSE,
    FIELD_EVENT_ID,
    HEADER_CACHE_CONTROL,
    HEADER_CONNECTION,
    HEADER_CONTENT_TYPE,
    HEADER_RETRY,
    HEARTBEAT_COMMENT,
    RECONNECTING_COMMENT,
)
from .errors import SinkClosedError
from .formatting import encode_data, format_comment, format_event, render
from .rate_limiter import SendRateLimiter
from .sinks import Connection, OutputSink
from .subscriptions import SubscriptionSet

logger = logging.getLogger(__name__)


class SendOptions(TypedDict, total=False):
    """Per-event options for ``Session.send``."""

    event: str
    retry: int
    id: str
    eventId: str


class Session:
    """One client's SSE stream, from preamble to close."""

    def __init__(
        self,
        sink: OutputSink,
        connection: Connection,
        config: SessionConfig | Mapping[str, Any] | None = None,
        **options: Any,
    ):
        self.config = SessionConfig.build(config, **options)
        self.session_id = uuid.uuid4().hex
        self._loop = asyncio.get_running_loop()
        self._sink = sink
        self._lock = threading.Lock()

        self._buffer = EventBuffer(self.config.buffer_size)
        self._subscriptions = SubscriptionSet()
        self._acknowledgements = AcknowledgementTable(self.config.max_acknowledgements)
        self._rate = SendRateLimiter(
            max_per_window=self.config.max_requests_per_second,
            throttle_ms=self.config.throttle_ms,
            loop=self._loop,
        )
        self._batch_depth = 0
        self._closed = False
        self._connected = False
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._callback_tasks: set[asyncio.Future[Any]] = set()
        self._close_listeners: list[Callable[[], Any]] = []

        self._write_preamble()
        if self.config.id:
            self._write_comment(f"id: {self.config.id}")

        self._heartbeat_task = self._loop.create_task(self._heartbeat_loop())
        connection.on_close(self._handle_close)

        if not self._closed:
            self._connected = True
        logger.debug(f"Opened SSE session {self.short_id}...")

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Session {self.short_id} {state}>"

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def short_id(self) -> str:
        return self.session_id[:8]

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def heartbeat_active(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    @property
    def rate_limiter(self) -> SendRateLimiter:
        return self._rate

    @property
    def buffered_lines(self) -> int:
        return len(self._buffer)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def send(self, data: Any, options: SendOptions | None = None, **kwargs: Any) -> bool:
        """Emit one event.

        Options (as a mapping or keywords): ``event``, ``id``, ``retry`` and
        ``eventId`` (``event_id`` is accepted too).

        Throttled, rate-limited and unsubscribed sends are dropped silently.
        A payload that cannot be encoded raises ``PayloadSerializationError``
        before anything is written.

        Returns:
            True if a record was composed, False if it was dropped.
        """
        opts: dict[str, Any] = {**(options or {}), **kwargs}
        event = opts.get("event")
        event_id = opts.get(FIELD_EVENT_ID, opts.get("event_id"))

        if self._closed:
            logger.debug(f"Dropped send on closed session {self.short_id}...")
            return False
        if not self._rate.allow():
            logger.debug(f"Dropped send on session {self.short_id}... (throttled or rate limited)")
            return False
        if event and not self._subscriptions.is_subscribed(self.session_id, event):
            logger.debug(f"Dropped '{event}' event on session {self.short_id}... (not subscribed)")
            return False

        lines = format_event(
            encode_data(data),
            event=event,
            id=opts.get("id"),
            retry=opts.get("retry"),
            event_id=event_id,
        )

        with self._lock:
            # Re-check under the lock; another thread may have used the budget
            if self._closed or not self._rate.allow():
                return False

            if self._buffer.would_overflow(lines):
                self._emit(self._buffer.drain())
            self._buffer.append(lines)
            if self._batch_depth == 0 or self._buffer.is_full:
                self._emit(self._buffer.drain())

            if event_id:
                if self.config.auto_acknowledge:
                    self._acknowledgements.mark(event_id)
                else:
                    self._acknowledgements.track(event_id)

            self._rate.record()
        return True

    def comment(self, text: str) -> bool:
        """Write a comment record directly to the sink.

        Bypasses the buffer, throttling and subscriptions.
        """
        if self._closed:
            return False
        return self._write_comment(text)

    def acknowledge(self, event_id: str) -> bool:
        """Mark a tracked event as acknowledged. Unknown ids are ignored."""
        acknowledged = self._acknowledgements.acknowledge(event_id)
        if not acknowledged:
            logger.debug(f"Ignoring acknowledgement for unknown event {event_id}")
        return acknowledged

    def track(self, event_id: str) -> None:
        """Record an event id as awaiting acknowledgement."""
        self._acknowledgements.track(event_id)

    def is_acknowledged(self, event_id: str) -> bool | None:
        """Acknowledged flag for an event id, None if it was never recorded."""
        return self._acknowledgements.get(event_id)

    def subscribe(self, event_type: str) -> None:
        self._subscriptions.subscribe(self.session_id, event_type)

    def unsubscribe(self, event_type: str) -> None:
        self._subscriptions.unsubscribe(self.session_id, event_type)

    def is_subscribed(self, event_type: str) -> bool:
        return self._subscriptions.is_subscribed(self.session_id, event_type)

    @property
    def subscriptions(self) -> frozenset[str]:
        return self._subscriptions.event_types(self.session_id)

    @property
    def subscription_set(self) -> SubscriptionSet:
        return self._subscriptions

    @contextlib.contextmanager
    def batch(self) -> Iterator["Session"]:
        """Hold sent records in the buffer until the block exits.

        The buffer is still flushed early whenever the next record would
        overflow ``buffer_size``.
        """
        with self._lock:
            self._batch_depth += 1
        try:
            yield self
        finally:
            with self._lock:
                self._batch_depth -= 1
                if self._batch_depth == 0:
                    self._flush_locked()

    def flush(self) -> None:
        """Write any buffered records now."""
        with self._lock:
            self._flush_locked()

    def add_close_listener(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` after ``on_close`` when the session closes.

        Runs immediately if the session is already closed.
        """
        if self._closed:
            self._run_callback(callback, "close listener")
            return
        self._close_listeners.append(callback)

    def close(self) -> None:
        """End the stream from the server side."""
        if self._closed:
            return
        self.flush()
        self._handle_close()
        self._sink.close()

    async def wait_closed(self) -> None:
        """Wait for close callbacks scheduled on the event loop."""
        if self._callback_tasks:
            await asyncio.gather(*self._callback_tasks, return_exceptions=True)
        if self._heartbeat_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()
        await self.wait_closed()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write_preamble(self) -> None:
        self._sink.set_header(HEADER_CONTENT_TYPE, CONTENT_TYPE_SSE)
        self._sink.set_header(HEADER_CACHE_CONTROL, CACHE_CONTROL_NO_CACHE)
        self._sink.set_header(HEADER_CONNECTION, CONNECTION_KEEP_ALIVE)
        if self.config.retry is not None:
            self._sink.set_header(HEADER_RETRY, str(self.config.retry))
        self._sink.flush_headers()

    def _write_comment(self, text: str) -> bool:
        with self._lock:
            return self._emit(render(format_comment(text)))

    def _flush_locked(self) -> None:
        if self._closed:
            return
        self._flush_buffer()

    def _flush_buffer(self) -> None:
        if len(self._buffer):
            self._emit(self._buffer.drain())

    def _emit(self, text: str) -> bool:
        """Write to the sink; the caller holds the lock.

        Writes to a closed sink are dropped.
        """
        if self._sink.closed:
            logger.debug(f"Skipped write to closed sink for session {self.short_id}...")
            return False
        try:
            self._sink.write(text)
        except (SinkClosedError, ConnectionError) as e:
            logger.debug(f"Write after close on session {self.short_id}...: {e}")
            return False
        return True

    async def _heartbeat_loop(self) -> None:
        interval = self.config.heartbeat_interval
        callback = self.config.heartbeat_callback
        while True:
            await asyncio.sleep(interval)
            self._write_comment(HEARTBEAT_COMMENT)
            if callback is None:
                continue
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Heartbeat callback failed for session {self.short_id}...")

    def _handle_close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._heartbeat_task is not None:
            self._call_in_loop(self._heartbeat_task.cancel)
        self._call_in_loop(self._rate.cancel)

        self._run_callback(self.config.on_close, "on_close")
        listeners, self._close_listeners = self._close_listeners, []
        for listener in listeners:
            self._run_callback(listener, "close listener")

        with self._lock:
            # Records held by an open batch go out ahead of the close notice
            self._flush_buffer()
            if self._connected:
                self._connected = False
                self._emit(render(format_comment(RECONNECTING_COMMENT)))
        logger.debug(f"Closed SSE session {self.short_id}...")

    def _call_in_loop(self, fn: Callable[[], Any]) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            fn()
        else:
            self._loop.call_soon_threadsafe(fn)

    def _run_callback(self, callback: Callable[[], Any] | None, name: str) -> None:
        if callback is None:
            return
        try:
            result = callback()
        except Exception:
            logger.exception(f"{name} callback failed for session {self.short_id}...")
            return
        if inspect.isawaitable(result):
            self._schedule(result, name)

    def _schedule(self, awaitable: Awaitable[Any], name: str) -> None:
        future = asyncio.ensure_future(awaitable, loop=self._loop)
        self._callback_tasks.add(future)

        def _done(fut: asyncio.Future[Any]) -> None:
            self._callback_tasks.discard(fut)
            if not fut.cancelled() and fut.exception() is not None:
                logger.error(f"{name} callback failed for session {self.short_id}...: {fut.exception()}")

        future.add_done_callback(_done)
