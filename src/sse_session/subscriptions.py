#!/usr/bin/env python3
# src/sse_session/subscriptions.py
"""Event-type subscriptions keyed by session id."""


class SubscriptionSet:
    """Session id -> subscribed event types.

    Empty sets are never stored: removing the last event type removes the
    session key.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, set[str]] = {}

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._subscriptions

    def subscribe(self, session_id: str, event_type: str) -> None:
        self._subscriptions.setdefault(session_id, set()).add(event_type)

    def unsubscribe(self, session_id: str, event_type: str) -> None:
        event_types = self._subscriptions.get(session_id)
        if event_types is None:
            return
        event_types.discard(event_type)
        if not event_types:
            del self._subscriptions[session_id]

    def is_subscribed(self, session_id: str, event_type: str) -> bool:
        return event_type in self._subscriptions.get(session_id, ())

    def event_types(self, session_id: str) -> frozenset[str]:
        return frozenset(self._subscriptions.get(session_id, ()))

    def clear(self, session_id: str) -> None:
        """Drop all subscriptions for a session."""
        self._subscriptions.pop(session_id, None)
