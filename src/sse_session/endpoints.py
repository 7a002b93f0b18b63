#!/usr/bin/env python3
# src/sse_session/endpoints.py
"""
Starlette integration.

``open_event_stream`` turns a request into a Session plus the
``StreamingResponse`` that carries it. ``event_stream_endpoint`` wraps an
async producer into a ready-made route endpoint.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from starlette.requests import Request
from starlette.responses import Response, StreamingResponse

from .config import SessionConfig
from .constants import CONTENT_TYPE_SSE, HEADER_CONTENT_TYPE
from .session import Session
from .sinks import QueueSink, StreamConnection

logger = logging.getLogger(__name__)

Producer = Callable[[Session, Request], Awaitable[None]]


def open_event_stream(
    request: Request,
    config: SessionConfig | Mapping[str, Any] | None = None,
    **options: Any,
) -> tuple[Session, StreamingResponse]:
    """Create a session for ``request`` and the response that streams it.

    Must be called from the request's event loop. The session is closed
    when the client disconnects or the response stops iterating.
    """
    sink = QueueSink()
    connection = StreamConnection()
    session = Session(sink, connection, config, **options)

    headers = {name: value for name, value in sink.headers.items() if name != HEADER_CONTENT_TYPE}
    response = StreamingResponse(sink.stream(connection), media_type=CONTENT_TYPE_SSE, headers=headers)

    client = f"{request.client.host}:{request.client.port}" if request.client else "unknown"
    logger.debug(f"SSE stream {session.short_id}... opened for {client}")
    return session, response


def event_stream_endpoint(
    producer: Producer,
    config: SessionConfig | Mapping[str, Any] | None = None,
    close_when_done: bool = True,
    **options: Any,
) -> Callable[[Request], Awaitable[Response]]:
    """Build a Starlette endpoint that runs ``producer(session, request)``.

    The producer task is cancelled when the client goes away. With
    ``close_when_done`` the stream ends once the producer returns.
    """

    async def endpoint(request: Request) -> Response:
        session, response = open_event_stream(request, config, **options)
        task = asyncio.create_task(_run_producer(producer, session, request, close_when_done))

        def _cancel_producer() -> None:
            # The producer itself may be the one closing the session
            if not task.done() and task is not asyncio.current_task():
                task.cancel()

        session.add_close_listener(_cancel_producer)
        return response

    return endpoint


async def _run_producer(producer: Producer, session: Session, request: Request, close_when_done: bool) -> None:
    try:
        await producer(session, request)
    except asyncio.CancelledError:
        logger.debug(f"Producer for session {session.short_id}... cancelled")
        raise
    except Exception:
        logger.exception(f"Producer for session {session.short_id}... failed")
        session.close()
        return
    if close_when_done:
        session.close()


__all__ = ["open_event_stream", "event_stream_endpoint"]
