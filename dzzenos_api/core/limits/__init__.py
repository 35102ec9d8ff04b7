"""Rate limit store abstraction.

The store is process-scoped: it is created in the application lifespan and
handed to request handlers through ``app.state.rate_limit_store``.

Usage:
    result = await rate_store.hit("run:127.0.0.1", limit=30, window_s=60)
    if not result.allowed:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

__all__ = [
    "RateLimitResult",
    "RateLimitStore",
]


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed.
        remaining: Number of requests remaining in the window.
        reset_epoch_s: Monotonic second at which the current window resets.
    """
    allowed: bool
    remaining: int
    reset_epoch_s: int


class RateLimitStore(Protocol):
    async def hit(self, key: str, limit: int, window_s: int) -> RateLimitResult:
        ...
