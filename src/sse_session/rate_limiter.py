#!/usr/bin/env python3
"""Send throttling and per-window rate limiting for one SSE session."""

import asyncio
import logging
import time
from collections.abc import Callable

from .constants import RATE_WINDOW_SECONDS

logger = logging.getLogger(__name__)


class SendRateLimiter:
    """Drop-policy limiter for outgoing events.

    Two independent checks:

    * throttle: a send is refused if less than ``throttle_ms`` milliseconds passed
      since the last accepted send (0 disables it);
    * ceiling: at most ``max_per_window`` sends are accepted until the counter
      is reset. The reset is scheduled ``window`` seconds after the ceiling is
      hit, not aligned to wall-clock seconds.
    """

    def __init__(
        self,
        max_per_window: int,
        throttle_ms: int = 0,
        window: float = RATE_WINDOW_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], int] = time.monotonic_ns,
    ):
        self.max_per_window = max_per_window
        self.throttle_ms = throttle_ms
        self.window = window
        self.count = 0
        self.last_send: int | None = None
        self._clock = clock
        self._loop = loop or asyncio.get_running_loop()
        self._reset_handle: asyncio.TimerHandle | None = None
        self._cancelled = False

    @property
    def is_throttled(self) -> bool:
        if not self.throttle_ms or self.last_send is None:
            return False
        # Integer nanoseconds keep the boundary exact
        return self._clock() - self.last_send < self.throttle_ms * 1_000_000

    @property
    def is_limited(self) -> bool:
        return self.count >= self.max_per_window

    @property
    def reset_pending(self) -> bool:
        """Whether a counter reset is scheduled."""
        return self._reset_handle is not None

    def allow(self) -> bool:
        """Check whether a send may go out now. Does not consume budget."""
        return not (self.is_throttled or self.is_limited)

    def record(self) -> None:
        """Account for an accepted send."""
        self.count += 1
        self.last_send = self._clock()
        if self.is_limited:
            self._schedule_reset()

    def reset(self) -> None:
        """Reset the window counter."""
        self.count = 0
        self._reset_handle = None
        logger.debug("Send counter reset")

    def cancel(self) -> None:
        """Cancel any pending reset; the limiter is not used afterwards."""
        self._cancelled = True
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _schedule_reset(self) -> None:
        if self._cancelled or self._reset_handle is not None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._reset_handle = self._loop.call_later(self.window, self.reset)
        else:
            # Called from a worker thread; hop onto the owning loop
            self._loop.call_soon_threadsafe(self._schedule_reset)
