#!/usr/bin/env python3
"""
Top-level constants shared across the sse_session package.
"""

# ---------------------------------------------------------------------------
# Content types
# ---------------------------------------------------------------------------
CONTENT_TYPE_SSE = "text/event-stream"


# ---------------------------------------------------------------------------
# Stream preamble headers (written in this order)
# ---------------------------------------------------------------------------
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CACHE_CONTROL = "Cache-Control"
HEADER_CONNECTION = "Connection"
HEADER_RETRY = "Retry"

CACHE_CONTROL_NO_CACHE = "no-cache"
CONNECTION_KEEP_ALIVE = "keep-alive"


# ---------------------------------------------------------------------------
# Wire record fields
# ---------------------------------------------------------------------------
FIELD_EVENT = "event"
FIELD_ID = "id"
FIELD_DATA = "data"
FIELD_RETRY = "retry"
FIELD_EVENT_ID = "eventId"

COMMENT_PREFIX = ":"
HEARTBEAT_COMMENT = "heartbeat"
RECONNECTING_COMMENT = "Reconnecting..."


# ---------------------------------------------------------------------------
# Session defaults
# ---------------------------------------------------------------------------
DEFAULT_HEARTBEAT_INTERVAL_MS = 15000
DEFAULT_BUFFER_SIZE = 1024
DEFAULT_THROTTLE_MS = 0
DEFAULT_MAX_REQUESTS_PER_SECOND = 50
DEFAULT_MAX_ACKNOWLEDGEMENTS = 10000

# Rate counter resets this long after the ceiling is hit
RATE_WINDOW_SECONDS = 1.0


# ---------------------------------------------------------------------------
# Environment variables (SessionConfig.from_env)
# ---------------------------------------------------------------------------
ENV_PREFIX = "SSE_"
ENV_TRUE_VALUES = ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Demo server
# ---------------------------------------------------------------------------
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
