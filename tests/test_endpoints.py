#!/usr/bin/env python3
"""Tests for the Starlette adapter and the queue-backed sink."""

import asyncio

import pytest
from starlette.applications import Starlette
from starlette.routing import Route
from starlette.testclient import TestClient

from sse_session import QueueSink, Session, StreamConnection, event_stream_endpoint, iter_events, open_event_stream
from sse_session.errors import SinkClosedError

# ============================================================================
# QueueSink / StreamConnection
# ============================================================================


class TestQueueSink:
    @pytest.mark.asyncio
    async def test_stream_yields_writes_until_closed(self):
        sink = QueueSink()
        sink.write("a")
        sink.write("b")
        sink.close()

        chunks = [chunk async for chunk in sink.stream()]

        assert chunks == ["a", "b"]
        assert sink.closed is True

    @pytest.mark.asyncio
    async def test_write_after_close_raises(self):
        sink = QueueSink()
        sink.close()
        with pytest.raises(SinkClosedError):
            sink.write("late")

    @pytest.mark.asyncio
    async def test_headers_frozen_after_flush(self):
        sink = QueueSink()
        sink.set_header("X-One", "1")
        sink.flush_headers()
        sink.set_header("X-Two", "2")

        assert sink.headers == {"X-One": "1"}

    @pytest.mark.asyncio
    async def test_write_from_worker_thread(self):
        sink = QueueSink()
        await asyncio.to_thread(sink.write, "from-thread")
        await asyncio.to_thread(sink.close)

        chunks = [chunk async for chunk in sink.stream()]
        assert chunks == ["from-thread"]

    @pytest.mark.asyncio
    async def test_stream_stop_notifies_connection_and_closes_session(self):
        closed: list[int] = []
        sink = QueueSink()
        connection = StreamConnection()
        session = Session(sink, connection, heartbeatIntervalMs=60000, onClose=lambda: closed.append(1))
        session.send({"n": 1})

        stream = sink.stream(connection)
        first = await stream.__anext__()
        # Client disconnect: the response stops iterating the body
        await stream.aclose()

        assert first == 'data: {"n":1}\n\n'
        assert connection.closed is True
        assert session.closed is True
        assert closed == [1]
        assert session.send({"n": 2}) is False


class TestStreamConnection:
    def test_notifies_once(self):
        calls: list[int] = []
        connection = StreamConnection()
        connection.on_close(lambda: calls.append(1))

        connection.notify_close()
        connection.notify_close()

        assert calls == [1]

    def test_late_registration_fires_immediately(self):
        calls: list[int] = []
        connection = StreamConnection()
        connection.notify_close()
        connection.on_close(lambda: calls.append(1))
        assert calls == [1]


# ============================================================================
# HTTP integration
# ============================================================================


def _make_app(producer, **options):
    options.setdefault("heartbeatIntervalMs", 60000)
    return Starlette(routes=[Route("/events", event_stream_endpoint(producer, **options))])


class TestEventStreamEndpoint:
    def test_streams_events_with_sse_headers(self):
        async def producer(session, request):
            session.send({"message": "hi"})
            session.send({"message": "bye"}, id="2")

        with TestClient(_make_app(producer, retry=2000)) as client:
            response = client.get("/events")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["retry"] == "2000"

        events = list(iter_events(response.text))
        assert [e.json() for e in events] == [{"message": "hi"}, {"message": "bye"}]
        assert events[1].id == "2"
        assert response.text.endswith(": Reconnecting...\n\n")

    def test_subscriptions_from_producer(self):
        async def producer(session, request):
            session.send(1, event="news")
            session.subscribe("news")
            session.send(2, event="news")

        with TestClient(_make_app(producer)) as client:
            events = list(iter_events(client.get("/events").text))

        assert [(e.event, e.json()) for e in events] == [("news", 2)]

    def test_id_comment_at_stream_start(self):
        async def producer(session, request):
            session.send("x")

        with TestClient(_make_app(producer, id="stream-1")) as client:
            body = client.get("/events").text

        assert body.startswith(": id: stream-1\n\n")

    def test_failing_producer_ends_stream(self):
        async def producer(session, request):
            session.send("before")
            raise RuntimeError("producer broke")

        with TestClient(_make_app(producer)) as client:
            events = list(iter_events(client.get("/events").text))

        assert [e.json() for e in events] == ["before"]

    def test_on_close_invoked(self):
        closed: list[int] = []

        async def producer(session, request):
            session.send("x")

        with TestClient(_make_app(producer, onClose=lambda: closed.append(1))) as client:
            client.get("/events")

        assert closed == [1]


class TestOpenEventStream:
    def test_custom_endpoint(self):
        async def endpoint(request):
            session, response = open_event_stream(request, heartbeatIntervalMs=60000)
            session.send({"ready": True}, eventId="boot")
            assert session.is_acknowledged("boot") is True
            session.close()
            return response

        app = Starlette(routes=[Route("/stream", endpoint)])
        with TestClient(app) as client:
            response = client.get("/stream")

        (event,) = iter_events(response.text)
        assert event.json() == {"ready": True}
        assert event.fields["eventId"] == "boot"
