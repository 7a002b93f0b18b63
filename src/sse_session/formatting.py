#!/usr/bin/env python3
# src/sse_session/formatting.py
"""
SSE wire formatting.

A record is built as a list of lines ending with an empty line; rendering
terminates every line with ``\\n`` so the empty line becomes the blank-line
record separator.
"""

from typing import Any

import orjson
from pydantic import BaseModel

from .constants import (
    COMMENT_PREFIX,
    FIELD_DATA,
    FIELD_EVENT,
    FIELD_EVENT_ID,
    FIELD_ID,
    FIELD_RETRY,
)
from .errors import InvalidFieldError, PayloadSerializationError

_DUMPS_OPTIONS = orjson.OPT_NON_STR_KEYS


def _default(obj: Any) -> Any:
    """orjson fallback for types it does not encode natively."""
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def encode_data(data: Any) -> str:
    """Encode an event payload as single-line JSON text.

    Raises:
        PayloadSerializationError: if the value cannot be encoded.
    """
    try:
        encoded: bytes = orjson.dumps(data, default=_default, option=_DUMPS_OPTIONS)
    except orjson.JSONEncodeError as e:
        raise PayloadSerializationError(type(data).__name__, str(e)) from e
    return encoded.decode()


def _field(name: str, value: Any) -> str:
    text = str(value)
    if "\n" in text or "\r" in text:
        raise InvalidFieldError(name, text)
    return f"{name}: {text}"


def format_event(
    payload: str,
    event: str | None = None,
    id: str | None = None,
    retry: int | None = None,
    event_id: str | None = None,
) -> list[str]:
    """Compose the ordered lines of one record for an already-encoded payload."""
    lines: list[str] = []
    if event:
        lines.append(_field(FIELD_EVENT, event))
    if id:
        lines.append(_field(FIELD_ID, id))
    lines.append(f"{FIELD_DATA}: {payload}")
    if retry is not None:
        lines.append(_field(FIELD_RETRY, int(retry)))
    if event_id:
        lines.append(_field(FIELD_EVENT_ID, event_id))
    lines.append("")
    return lines


def format_comment(text: str) -> list[str]:
    """Compose a comment record; multi-line text becomes one comment line per line."""
    parts = text.splitlines() or [""]
    lines = [f"{COMMENT_PREFIX} {part}" for part in parts]
    lines.append("")
    return lines


def render(lines: list[str]) -> str:
    """Join record lines into wire text."""
    return "".join(f"{line}\n" for line in lines)


__all__ = ["encode_data", "format_event", "format_comment", "render"]
