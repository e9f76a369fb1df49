# PATH: core/time.py
"""
Time utilities for TIERARB.

Cache TTLs and freshness checks run on the monotonic clock. Wall-clock
helpers exist only for log and report timestamps.
"""

import time
from datetime import datetime, timezone


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Get current UTC datetime as ISO string."""
    return now_utc().isoformat()


def now_ms() -> int:
    """Get current Unix timestamp in milliseconds."""
    return int(time.time() * 1000)


def monotonic_ms() -> int:
    """Monotonic clock in milliseconds, for ages and intervals."""
    return int(time.monotonic() * 1000)


def is_fresh(timestamp_ms: int, max_age_ms: int, current_ms: int | None = None) -> bool:
    """
    Check if a monotonic timestamp is within max_age_ms.

    Args:
        timestamp_ms: Timestamp to check (monotonic_ms)
        max_age_ms: Maximum allowed age
        current_ms: Current time (default: monotonic_ms())
    """
    if current_ms is None:
        current_ms = monotonic_ms()
    return (current_ms - timestamp_ms) <= max_age_ms
