#!/usr/bin/env python3
# src/sse_session/cli/__init__.py
"""
CLI entry point for sse-session.

Runs a small demo Starlette app that streams clock ticks through a Session.
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..config import SessionConfig
from ..constants import DEFAULT_HOST, DEFAULT_PORT
from ..endpoints import event_stream_endpoint
from ..session import Session

logger = logging.getLogger(__name__)

TICK_EVENT = "tick"


def setup_logging(debug: bool = False, log_level: str = "info") -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
    )


async def tick_producer(session: Session, request: Request) -> None:
    """Send one event per second; typed ``tick`` events go to subscribers too."""
    for event_type in request.query_params.get("subscribe", "").split(","):
        if event_type:
            session.subscribe(event_type)

    limit = int(request.query_params.get("count", "0"))
    interval = float(request.query_params.get("interval", "1.0"))
    counter = 0
    while not limit or counter < limit:
        counter += 1
        payload = {"tick": counter, "timestamp": time.time()}
        session.send(payload, id=str(counter))
        session.send(payload, event=TICK_EVENT, eventId=f"tick-{counter}")
        await asyncio.sleep(interval)


async def health_endpoint(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "timestamp": time.time()})


def create_demo_app(config: SessionConfig | None = None) -> Starlette:
    """Create the demo application."""
    session_config = config or SessionConfig.from_env()
    return Starlette(
        routes=[
            Route("/events", event_stream_endpoint(tick_producer, session_config), methods=["GET"]),
            Route("/health", health_endpoint, methods=["GET"]),
        ]
    )


def build_config(args: argparse.Namespace) -> SessionConfig:
    """Environment config with command-line overrides."""
    overrides: dict[str, Any] = {}
    if args.heartbeat_ms is not None:
        overrides["heartbeat_interval_ms"] = args.heartbeat_ms
    if args.throttle_ms is not None:
        overrides["throttle_ms"] = args.throttle_ms
    if args.max_rps is not None:
        overrides["max_requests_per_second"] = args.max_rps
    if args.retry is not None:
        overrides["retry"] = args.retry
    return SessionConfig.from_env(**overrides)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sse-session",
        description="Per-connection Server-Sent Events sessions - demo server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Stream ticks on the default port
  sse-session serve

  # Subscribe to typed tick events and stop after 5 ticks
  curl -N "http://127.0.0.1:8000/events?subscribe=tick&count=5"

  # Faster heartbeats with send throttling
  sse-session serve --heartbeat-ms 2000 --throttle-ms 250

Environment Variables:
  SSE_HEARTBEAT_INTERVAL_MS     Heartbeat period (default: 15000)
  SSE_BUFFER_SIZE               Max buffered lines (default: 1024)
  SSE_THROTTLE_MS               Min spacing between sends (default: 0)
  SSE_MAX_REQUESTS_PER_SECOND   Send ceiling per window (default: 50)
  SSE_RETRY                     Client reconnection hint in ms
  SSE_AUTO_ACKNOWLEDGE          Acknowledge eventIds on send (default: true)
  SSE_HOST / SSE_PORT           Bind address
        """,
    )

    subparsers = parser.add_subparsers(dest="mode", help="Command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the demo SSE server")
    serve_parser.add_argument("--host", default=None, help=f"Host to bind to (default: {DEFAULT_HOST})")
    serve_parser.add_argument("--port", type=int, default=None, help=f"Port to bind to (default: {DEFAULT_PORT})")
    serve_parser.add_argument("--heartbeat-ms", type=int, default=None, help="Heartbeat interval in ms")
    serve_parser.add_argument("--throttle-ms", type=int, default=None, help="Minimum spacing between sends in ms")
    serve_parser.add_argument("--max-rps", type=int, default=None, help="Maximum sends per second")
    serve_parser.add_argument("--retry", type=int, default=None, help="Client reconnection hint in ms")
    serve_parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    serve_parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Logging level (default: info)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = create_parser().parse_args(argv)
    setup_logging(debug=args.debug, log_level=args.log_level)

    host = args.host or os.environ.get("SSE_HOST", DEFAULT_HOST)
    port = args.port or int(os.environ.get("SSE_PORT", DEFAULT_PORT))
    app = create_demo_app(build_config(args))

    logger.info(f"Starting SSE demo server on http://{host}:{port}/events")
    uvicorn.run(app, host=host, port=port, log_level="debug" if args.debug else args.log_level)


if __name__ == "__main__":
    main()
