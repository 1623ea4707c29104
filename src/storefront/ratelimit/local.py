"""In-process fixed-window counters used while the cache store is down.

Counts are per instance and lost on restart. They keep enforcing the
policy maximum so an outage neither blocks legitimate traffic nor turns
into an unlimited free-for-all.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable

# Expired windows are swept once the table grows past this many keys
MAX_TRACKED_KEYS = 10_000


class LocalWindowCounter:
    """Fixed-window counters keyed like the shared ``rl:`` keys."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_keys: int = MAX_TRACKED_KEYS,
    ):
        self._clock = clock
        self._max_keys = max_keys
        # key -> (window expiry, count)
        self._windows: dict[str, tuple[float, int]] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def increment(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Count one request. Returns (count, seconds until the window resets)."""
        now = self._clock()
        if len(self._windows) >= self._max_keys:
            self._sweep(now)

        expires_at, count = self._windows.get(key, (0.0, 0))
        if expires_at <= now:
            expires_at, count = now + window_seconds, 0
        count += 1
        self._windows[key] = (expires_at, count)
        return count, math.ceil(expires_at - now)

    def peek(self, key: str) -> tuple[int, int] | None:
        """Current (count, reset_in) without counting, or None if no live window."""
        entry = self._windows.get(key)
        if entry is None:
            return None
        expires_at, count = entry
        now = self._clock()
        if expires_at <= now:
            del self._windows[key]
            return None
        return count, math.ceil(expires_at - now)

    def clear(self, prefix: str = "") -> int:
        """Drop every window whose key starts with ``prefix``."""
        doomed = [key for key in self._windows if key.startswith(prefix)]
        for key in doomed:
            del self._windows[key]
        return len(doomed)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._windows.items() if expires_at <= now]
        for key in expired:
            del self._windows[key]
