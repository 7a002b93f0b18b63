#!/usr/bin/env python3
# src/sse_session/acknowledgements.py
"""Event acknowledgement table with LRU bound."""

import logging
from collections import OrderedDict

from .constants import DEFAULT_MAX_ACKNOWLEDGEMENTS

logger = logging.getLogger(__name__)


class AcknowledgementTable:
    """Maps event ids to an acknowledged flag.

    Flags only move from False to True while an entry is held. When more than
    ``max_entries`` ids are tracked, the least recently touched entries are
    evicted and forgotten: ``get`` returns None for them, and a later ``track``
    of the same id starts a fresh unacknowledged entry.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ACKNOWLEDGEMENTS) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[str, bool] = OrderedDict()

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def track(self, event_id: str) -> None:
        """Record an event id as unacknowledged; existing entries keep their flag."""
        if event_id in self._entries:
            self._entries.move_to_end(event_id)
            return
        self._entries[event_id] = False
        self._evict()

    def mark(self, event_id: str) -> None:
        """Create-or-set an entry to acknowledged."""
        self._entries[event_id] = True
        self._entries.move_to_end(event_id)
        self._evict()

    def acknowledge(self, event_id: str) -> bool:
        """Acknowledge a known event id. Unknown ids are ignored.

        Returns True if an entry existed.
        """
        if event_id not in self._entries:
            return False
        self._entries[event_id] = True
        self._entries.move_to_end(event_id)
        return True

    def get(self, event_id: str) -> bool | None:
        """Acknowledged flag for an id, or None if it is not tracked."""
        return self._entries.get(event_id)

    def _evict(self) -> None:
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted acknowledgement entry {evicted}")
