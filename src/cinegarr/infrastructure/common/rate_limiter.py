"""Sliding-window rate limiter for outgoing HTTP requests.

Advisory self-throttling: keeps the request rate against the upstream
sites below their abuse-detection thresholds.  One instance is created
by the composition root and shared by reference among the adapters.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable

import structlog

log = structlog.get_logger(__name__)


class SlidingWindowRateLimiter:
    """Admit at most *max_requests* per *window_seconds*.

    Request timestamps older than the window are evicted on every
    :meth:`acquire`.  When the window is full, the caller sleeps until
    the oldest entry expires.

    Args:
        max_requests: Requests admitted per window. ``<= 0`` = unlimited.
        window_seconds: Window length in seconds.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window

    @property
    def pending(self) -> int:
        """Number of requests recorded in the current window."""
        self._evict(self._clock())
        return len(self._timestamps)

    def _evict(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self._window:
            self._timestamps.popleft()

    async def acquire(self) -> None:
        """Wait until the window has room, then record the request."""
        if self._max_requests <= 0:
            return

        async with self._lock:
            now = self._clock()
            self._evict(now)

            if len(self._timestamps) >= self._max_requests:
                wait = self._window - (now - self._timestamps[0])
                if wait > 0:
                    log.info(
                        "rate_limit_wait",
                        wait_seconds=round(wait, 2),
                        window_seconds=self._window,
                        max_requests=self._max_requests,
                    )
                    await asyncio.sleep(wait)
                now = self._clock()
                self._evict(now)

            self._timestamps.append(now)
