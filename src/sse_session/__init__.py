#!/usr/bin/env python3
"""
sse_session - per-connection Server-Sent Events sessions

Wraps one long-lived HTTP response in a framed event stream with
subscription filtering, acknowledgements, heartbeats, buffering and
rate control:

    from starlette.routing import Route
    from sse_session import event_stream_endpoint

    async def prices(session, request):
        session.subscribe("price")
        session.send({"symbol": "ACME", "price": 12.5}, event="price")

    routes = [Route("/events", event_stream_endpoint(prices, heartbeatIntervalMs=10000))]
"""

from .acknowledgements import AcknowledgementTable
from .buffer import EventBuffer
from .config import SessionConfig
from .endpoints import event_stream_endpoint, open_event_stream
from .errors import (
    InvalidFieldError,
    PayloadSerializationError,
    SessionConfigError,
    SinkClosedError,
    SSESessionError,
)
from .parser import ServerSentEvent, SSEParser, iter_events
from .rate_limiter import SendRateLimiter
from .session import SendOptions, Session
from .sinks import Connection, OutputSink, QueueSink, StreamConnection
from .subscriptions import SubscriptionSet

__version__ = "0.1.0"
__all__ = [
    "Session",
    "SendOptions",
    "SessionConfig",
    "open_event_stream",
    "event_stream_endpoint",
    "OutputSink",
    "Connection",
    "QueueSink",
    "StreamConnection",
    "EventBuffer",
    "SubscriptionSet",
    "AcknowledgementTable",
    "SendRateLimiter",
    "ServerSentEvent",
    "SSEParser",
    "iter_events",
    "SSESessionError",
    "PayloadSerializationError",
    "SinkClosedError",
    "SessionConfigError",
    "InvalidFieldError",
]
