"""Time helpers.

Timestamps are stored as naive UTC datetimes (SQLite has no timezone type).
"""

import time
from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def epoch_ms() -> int:
    """Wall clock in milliseconds, as carried in realtime event frames."""
    return int(time.time() * 1000)
