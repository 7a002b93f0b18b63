#!/usr/bin/env python3
# src/sse_session/buffer.py
"""
Bounded buffer of pending SSE wire lines.

Only whole records are appended, so a drained buffer always renders to
well-framed wire text.
"""

from .formatting import render


class EventBuffer:
    """Append-only line buffer, cleared atomically on drain."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._lines: list[str] = []

    def __len__(self) -> int:
        return len(self._lines)

    def would_overflow(self, lines: list[str]) -> bool:
        """True if appending ``lines`` to a non-empty buffer exceeds capacity."""
        return bool(self._lines) and len(self._lines) + len(lines) > self.capacity

    @property
    def is_full(self) -> bool:
        return len(self._lines) >= self.capacity

    def append(self, lines: list[str]) -> None:
        self._lines.extend(lines)

    def drain(self) -> str:
        """Render pending lines and clear the buffer."""
        text = render(self._lines)
        self._lines = []
        return text
