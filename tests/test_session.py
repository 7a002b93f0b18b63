#!/usr/bin/env python3
"""Tests for Session construction, sends, policy drops and acknowledgements."""

import asyncio

import pytest

from sse_session import PayloadSerializationError, Session, SessionConfig
from sse_session.testing import ManualConnection, MemorySink

# ============================================================================
# Helpers
# ============================================================================


def _make_session(**options):
    """Create a session over an in-memory sink with a long heartbeat."""
    options.setdefault("heartbeatIntervalMs", 60000)
    sink = MemorySink()
    conn = ManualConnection()
    session = Session(sink, conn, **options)
    return session, sink, conn


# ============================================================================
# Construction
# ============================================================================


class TestConstruction:
    """Preamble headers, id comment and initial state."""

    @pytest.mark.asyncio
    async def test_headers_written_once_in_order_then_flushed(self):
        session, sink, _ = _make_session()

        assert sink.operations == [
            ("set_header", "Content-Type", "text/event-stream"),
            ("set_header", "Cache-Control", "no-cache"),
            ("set_header", "Connection", "keep-alive"),
            ("flush_headers",),
        ]
        assert sink.writes == []
        session.close()

    @pytest.mark.asyncio
    async def test_retry_header_before_flush(self):
        session, sink, _ = _make_session(retry=3000)

        assert sink.headers[-1] == ("Retry", "3000")
        assert sink.operations[-1] == ("flush_headers",)
        session.close()

    @pytest.mark.asyncio
    async def test_headers_precede_first_record(self):
        session, sink, _ = _make_session()
        session.send({"n": 1})

        kinds = [op[0] for op in sink.operations]
        assert kinds.index("flush_headers") < kinds.index("write")
        assert kinds.count("flush_headers") == 1
        session.close()

    @pytest.mark.asyncio
    async def test_id_comment_emitted_once(self):
        session, sink, _ = _make_session(id="client-7")

        assert sink.writes == [": id: client-7\n\n"]
        session.close()

    @pytest.mark.asyncio
    async def test_initial_state(self):
        session, _, conn = _make_session()

        assert session.connected is True
        assert session.closed is False
        assert session.heartbeat_active is True
        assert len(session.session_id) == 32
        assert len(conn.callbacks) == 1
        session.close()

    @pytest.mark.asyncio
    async def test_session_ids_are_unique(self):
        sessions = [_make_session()[0] for _ in range(50)]
        assert len({s.session_id for s in sessions}) == 50
        for s in sessions:
            s.close()

    @pytest.mark.asyncio
    async def test_accepts_config_object_and_overrides(self):
        config = SessionConfig(heartbeat_interval_ms=5000, throttle_ms=10)
        sink = MemorySink()
        session = Session(sink, ManualConnection(), config, throttleMs=20)

        assert session.config.heartbeat_interval_ms == 5000
        assert session.config.throttle_ms == 20
        session.close()

    @pytest.mark.asyncio
    async def test_default_heartbeat_interval(self):
        session = Session(MemorySink(), ManualConnection())
        assert session.config.heartbeat_interval_ms == 15000
        session.close()


# ============================================================================
# send: wire format and dispatch
# ============================================================================


class TestSend:
    """Record composition and subscription dispatch."""

    @pytest.mark.asyncio
    async def test_full_record_field_order(self):
        session, sink, _ = _make_session()
        session.subscribe("greet")

        sent = session.send({"message": "hi"}, event="greet", id="7", retry=500, eventId="e9")

        assert sent is True
        assert sink.text == 'event: greet\nid: 7\ndata: {"message":"hi"}\nretry: 500\neventId: e9\n\n'
        session.close()

    @pytest.mark.asyncio
    async def test_options_mapping(self):
        session, sink, _ = _make_session()
        session.send([1, 2], {"id": "a1", "retry": 0})

        assert sink.text == "id: a1\ndata: [1,2]\nretry: 0\n\n"
        session.close()

    @pytest.mark.asyncio
    async def test_round_trip_through_parser(self):
        session, sink, _ = _make_session()
        session.send({"message": "hi"})

        events = sink.events()
        assert len(events) == 1
        assert events[0].data == '{"message":"hi"}'
        assert events[0].json() == {"message": "hi"}
        session.close()

    @pytest.mark.asyncio
    async def test_embedded_newlines_stay_on_one_data_line(self):
        session, sink, _ = _make_session()
        session.send({"text": "line one\nline two\r\n"})

        data_lines = [line for line in sink.text.split("\n") if line.startswith("data:")]
        assert len(data_lines) == 1
        assert sink.events()[0].json() == {"text": "line one\nline two\r\n"}
        session.close()

    @pytest.mark.asyncio
    async def test_untyped_delivered_without_subscriptions(self):
        session, sink, _ = _make_session()

        assert session.send("plain") is True
        assert sink.events()[0].json() == "plain"
        session.close()

    @pytest.mark.asyncio
    async def test_typed_dropped_when_not_subscribed(self):
        session, sink, _ = _make_session()

        assert session.send({"x": 1}, event="x") is False
        assert sink.writes == []
        session.close()

    @pytest.mark.asyncio
    async def test_typed_delivered_after_subscribe(self):
        session, sink, _ = _make_session()
        session.subscribe("x")

        assert session.send({"x": 1}, event="x") is True
        assert sink.events()[0].event == "x"
        session.close()

    @pytest.mark.asyncio
    async def test_typed_dropped_after_unsubscribe(self):
        session, sink, _ = _make_session()
        session.subscribe("x")
        session.unsubscribe("x")

        assert session.send({"x": 1}, event="x") is False
        assert sink.writes == []
        session.close()

    @pytest.mark.asyncio
    async def test_subscribed_to_other_type_only(self):
        session, sink, _ = _make_session()
        session.subscribe("a")

        session.send(1, event="b")
        session.send(2, event="a")
        session.send(3)

        assert [(e.event, e.json()) for e in sink.events()] == [("a", 2), (None, 3)]
        session.close()

    @pytest.mark.asyncio
    async def test_each_send_ends_with_empty_buffer(self):
        session, sink, _ = _make_session()
        for i in range(5):
            session.send(i)
            assert session.buffered_lines == 0

        assert len(sink.writes) == 5
        session.close()


# ============================================================================
# Subscriptions
# ============================================================================


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_unsubscribe_last_type_removes_session_entry(self):
        session, _, _ = _make_session()
        session.subscribe("a")
        assert session.session_id in session.subscription_set

        session.unsubscribe("a")

        assert session.session_id not in session.subscription_set
        assert session.subscriptions == frozenset()
        session.close()

    @pytest.mark.asyncio
    async def test_partial_unsubscribe_keeps_entry(self):
        session, _, _ = _make_session()
        session.subscribe("a")
        session.subscribe("b")
        session.unsubscribe("a")

        assert session.subscriptions == frozenset({"b"})
        assert session.is_subscribed("b")
        session.close()

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_is_noop(self):
        session, _, _ = _make_session()
        session.unsubscribe("never")
        assert session.session_id not in session.subscription_set
        session.close()


# ============================================================================
# Acknowledgements
# ============================================================================


class TestAcknowledgements:
    @pytest.mark.asyncio
    async def test_send_with_event_id_marks_acknowledged(self):
        session, sink, _ = _make_session()
        session.send({"a": 1}, eventId="e1")

        assert session.is_acknowledged("e1") is True
        assert sink.events()[0].fields["eventId"] == "e1"
        session.close()

    @pytest.mark.asyncio
    async def test_event_id_keyword_spelling(self):
        session, _, _ = _make_session()
        session.send({"a": 1}, event_id="e2")
        assert session.is_acknowledged("e2") is True
        session.close()

    @pytest.mark.asyncio
    async def test_acknowledge_unknown_does_not_create_entry(self):
        session, _, _ = _make_session()

        assert session.acknowledge("missing") is False
        assert session.is_acknowledged("missing") is None
        session.close()

    @pytest.mark.asyncio
    async def test_explicit_acknowledge_of_tracked_event(self):
        session, _, _ = _make_session()
        session.track("job-1")
        assert session.is_acknowledged("job-1") is False

        assert session.acknowledge("job-1") is True
        assert session.is_acknowledged("job-1") is True
        session.close()

    @pytest.mark.asyncio
    async def test_client_driven_mode_waits_for_acknowledge(self):
        session, _, _ = _make_session(autoAcknowledge=False)
        session.send({"a": 1}, eventId="e1")

        assert session.is_acknowledged("e1") is False
        session.acknowledge("e1")
        assert session.is_acknowledged("e1") is True
        session.close()

    @pytest.mark.asyncio
    async def test_acknowledged_flag_never_reverts(self):
        session, _, _ = _make_session(autoAcknowledge=False)
        session.track("e1")
        session.acknowledge("e1")

        session.send({"again": True}, eventId="e1")
        session.track("e1")

        assert session.is_acknowledged("e1") is True
        session.close()

    @pytest.mark.asyncio
    async def test_dropped_send_does_not_record_event_id(self):
        session, _, _ = _make_session()
        session.send({"a": 1}, event="unsubscribed", eventId="e1")
        assert session.is_acknowledged("e1") is None
        session.close()


# ============================================================================
# Throttling and rate limiting
# ============================================================================


class TestRateControl:
    @pytest.mark.asyncio
    async def test_throttle_drops_close_sends(self):
        session, sink, _ = _make_session(throttleMs=100)

        assert session.send(1) is True
        assert session.send(2) is False

        assert [e.json() for e in sink.events()] == [1]
        session.close()

    @pytest.mark.asyncio
    async def test_throttle_allows_spaced_sends(self):
        session, sink, _ = _make_session(throttleMs=100)

        session.send(1)
        await asyncio.sleep(0.15)
        session.send(2)

        assert [e.json() for e in sink.events()] == [1, 2]
        session.close()

    @pytest.mark.asyncio
    async def test_send_exactly_throttle_ms_later_delivered(self):
        session, sink, _ = _make_session(throttleMs=100)
        now = [5_000_000_000]
        session.rate_limiter._clock = lambda: now[0]

        assert session.send(1) is True
        now[0] += 100 * 1_000_000
        assert session.send(2) is True

        assert [e.json() for e in sink.events()] == [1, 2]
        session.close()

    @pytest.mark.asyncio
    async def test_ceiling_drops_third_send_and_resumes_after_reset(self):
        session, sink, _ = _make_session(maxRequestsPerSecond=2)

        assert session.send(1) is True
        assert session.send(2) is True
        assert session.send(3) is False
        assert session.rate_limiter.reset_pending is True

        await asyncio.sleep(1.1)

        assert session.rate_limiter.reset_pending is False
        assert session.send(4) is True
        assert [e.json() for e in sink.events()] == [1, 2, 4]
        session.close()

    @pytest.mark.asyncio
    async def test_counter_never_exceeds_ceiling(self):
        session, _, _ = _make_session(maxRequestsPerSecond=3)
        for i in range(10):
            session.send(i)
        assert session.rate_limiter.count == 3
        session.close()

    @pytest.mark.asyncio
    async def test_policy_drops_count_nothing(self):
        session, _, _ = _make_session(maxRequestsPerSecond=5)
        session.send(1, event="nobody-listens")
        assert session.rate_limiter.count == 0
        session.close()


# ============================================================================
# Errors
# ============================================================================


class TestMalformedPayload:
    @pytest.mark.asyncio
    async def test_unserializable_payload_raises_without_writing(self):
        session, sink, _ = _make_session()

        with pytest.raises(PayloadSerializationError) as exc_info:
            session.send(object(), eventId="e1")

        assert exc_info.value.payload_type == "object"
        assert sink.writes == []
        assert session.buffered_lines == 0
        assert session.rate_limiter.count == 0
        assert session.is_acknowledged("e1") is None
        session.close()

    @pytest.mark.asyncio
    async def test_out_of_range_integer_raises(self):
        session, sink, _ = _make_session()
        with pytest.raises(PayloadSerializationError):
            session.send({"big": 2**70})
        assert sink.writes == []
        session.close()

    @pytest.mark.asyncio
    async def test_error_message_has_suggestion(self):
        session, _, _ = _make_session()
        with pytest.raises(PayloadSerializationError) as exc_info:
            session.send(object())
        assert "Suggestion:" in exc_info.value.to_message()
        session.close()


# ============================================================================
# comment
# ============================================================================


class TestComment:
    @pytest.mark.asyncio
    async def test_comment_written_directly(self):
        session, sink, _ = _make_session()

        assert session.comment("debug info") is True
        assert sink.writes == [": debug info\n\n"]
        session.close()

    @pytest.mark.asyncio
    async def test_comment_bypasses_throttle_and_limits(self):
        session, sink, _ = _make_session(throttleMs=1000, maxRequestsPerSecond=1)
        session.send(1)

        assert session.comment("still writable") is True
        assert sink.writes[-1] == ": still writable\n\n"
        session.close()

    @pytest.mark.asyncio
    async def test_multiline_comment_stays_a_comment(self):
        session, sink, _ = _make_session()
        session.comment("first\nsecond")

        assert sink.text == ": first\n: second\n\n"
        assert sink.events() == []
        session.close()
