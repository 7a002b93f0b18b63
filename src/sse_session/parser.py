#!/usr/bin/env python3
# src/sse_session/parser.py
"""
Incremental SSE line parser.

Follows the event-stream interpretation rules: lines end with CRLF, LF or CR;
a blank line dispatches the pending event; lines starting with ``:`` are
comments; ``field: value`` loses one leading space from the value.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import orjson

from .constants import FIELD_DATA, FIELD_EVENT, FIELD_ID, FIELD_RETRY


@dataclass
class ServerSentEvent:
    """One dispatched record."""

    data: str = ""
    event: str | None = None
    id: str | None = None
    retry: int | None = None
    fields: dict[str, str] = field(default_factory=dict)
    comments: list[str] = field(default_factory=list)

    def json(self) -> Any:
        """Decode the data field as JSON."""
        return orjson.loads(self.data)


class SSEParser:
    """Feed wire text in arbitrary chunks and collect dispatched events."""

    def __init__(self, include_comments: bool = False) -> None:
        self.include_comments = include_comments
        self.last_event_id: str | None = None
        self._pending = ""
        self._data: list[str] = []
        self._current = ServerSentEvent()
        self._has_data = False

    def feed(self, chunk: str) -> list[ServerSentEvent]:
        """Consume a chunk and return the events completed by it."""
        self._pending += chunk
        events: list[ServerSentEvent] = []

        while True:
            cut = _find_line_end(self._pending)
            if cut is None:
                break
            end, width = cut
            # A trailing CR might be the first half of CRLF
            if width == 1 and self._pending[end] == "\r" and end + 1 == len(self._pending):
                break
            line = self._pending[:end]
            self._pending = self._pending[end + width :]
            event = self._process_line(line)
            if event is not None:
                events.append(event)

        return events

    def flush(self) -> list[ServerSentEvent]:
        """Finish the stream; a trailing incomplete record is discarded."""
        events: list[ServerSentEvent] = []
        if self._pending.endswith("\r"):
            self._pending = self._pending[:-1]
            event = self._process_line(self._pending)
            if event is not None:
                events.append(event)
        self._pending = ""
        self._reset()
        return events

    def _process_line(self, line: str) -> ServerSentEvent | None:
        if line == "":
            return self._dispatch()

        if line.startswith(":"):
            self._current.comments.append(line[1:].removeprefix(" "))
            return None

        name, sep, value = line.partition(":")
        if sep:
            value = value.removeprefix(" ")

        if name == FIELD_DATA:
            self._data.append(value)
            self._has_data = True
        elif name == FIELD_EVENT:
            self._current.event = value
        elif name == FIELD_ID:
            if "\0" not in value:
                self._current.id = value
                self.last_event_id = value
        elif name == FIELD_RETRY:
            if value.isascii() and value.isdigit():
                self._current.retry = int(value)
        else:
            self._current.fields[name] = value
        return None

    def _dispatch(self) -> ServerSentEvent | None:
        event = self._current
        has_data = self._has_data
        event.data = "\n".join(self._data)
        self._reset()

        if has_data:
            return event
        if self.include_comments and event.comments:
            return event
        return None

    def _reset(self) -> None:
        self._data = []
        self._has_data = False
        self._current = ServerSentEvent()


def _find_line_end(text: str) -> tuple[int, int] | None:
    """Return (index, terminator width) of the first line terminator."""
    for index, char in enumerate(text):
        if char == "\n":
            return index, 1
        if char == "\r":
            if text[index + 1 : index + 2] == "\n":
                return index, 2
            return index, 1
    return None


def iter_events(text: str, include_comments: bool = False) -> Iterator[ServerSentEvent]:
    """Parse a complete stream body."""
    parser = SSEParser(include_comments=include_comments)
    yield from parser.feed(text)
    yield from parser.flush()


__all__ = ["ServerSentEvent", "SSEParser", "iter_events"]
