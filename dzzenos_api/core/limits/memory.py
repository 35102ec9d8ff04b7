"""In-memory rate limit store (single process only)."""

from __future__ import annotations

import time
from asyncio import Lock
from collections import deque
from typing import Callable

from dzzenos_api.core.limits import RateLimitResult


class InMemoryRateLimitStore:
    """Sliding-window rate limiting keyed by an arbitrary string.

    Uses a deque of hit timestamps per key, pruning expired entries on each
    access. Keys idle for a whole window are evicted at most once per window.
    Not shared across processes.
    """

    def __init__(self, window_seconds: int = 60, clock: Callable[[], float] = time.monotonic):
        self._window_seconds = window_seconds
        self._clock = clock
        self._buckets: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._last_sweep = clock()

    async def hit(self, key: str, limit: int, window_s: int | None = None) -> RateLimitResult:
        """Record a request and check the limit for ``key``.

        Args:
            key: Unique identifier for the rate limit bucket.
            limit: Maximum requests allowed in the window. ``0`` disables limiting.
            window_s: Window duration in seconds. Defaults to constructor value.
        """
        ws = window_s or self._window_seconds
        now = self._clock()
        cutoff = now - ws
        reset_epoch_s = int(now // ws) * ws + ws

        if limit <= 0:
            return RateLimitResult(allowed=True, remaining=0, reset_epoch_s=reset_epoch_s)

        async with self._lock:
            if now - self._last_sweep >= ws:
                self._evict_idle(cutoff)
                self._last_sweep = now

            bucket = self._buckets.setdefault(key, deque())

            while bucket and bucket[0] < cutoff:
                bucket.popleft()

            if len(bucket) >= limit:
                allowed = False
                remaining = 0
            else:
                bucket.append(now)
                allowed = True
                remaining = limit - len(bucket)

        return RateLimitResult(allowed=allowed, remaining=remaining, reset_epoch_s=reset_epoch_s)

    def _evict_idle(self, cutoff: float) -> None:
        idle = [key for key, bucket in self._buckets.items() if not bucket or bucket[-1] < cutoff]
        for key in idle:
            del self._buckets[key]

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    async def reset(self) -> None:
        async with self._lock:
            self._buckets.clear()
