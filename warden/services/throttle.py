"""Per-client sliding-window request limiter owned by the application instance."""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable

DEFAULT_MAX_KEYS = 10000


class RateLimiter:
    """
    Counts requests per key within a sliding window.

    State lives on the instance: the app creates one per limit at startup and
    stores it on app.state, so each app (and each test client) starts empty.
    Counters are per process; several workers each enforce their own window.
    Once more than max_keys clients are tracked, hit() drops keys whose hits
    have all left the window.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_keys: int = DEFAULT_MAX_KEYS,
    ) -> None:
        if limit < 1 or window_seconds <= 0 or max_keys < 1:
            raise ValueError("limit and max_keys must be >= 1 and window_seconds > 0")
        self.limit = limit
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._hits)

    def hit(self, key: str) -> tuple[bool, float]:
        """
        Record one request for key. Returns (allowed, retry_after_seconds);
        rejected requests are not counted.
        """
        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            if key not in self._hits and len(self._hits) >= self.max_keys:
                self._drop_stale(cutoff)
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self.limit:
                return False, max(hits[0] - cutoff, 0.0)
            hits.append(now)
            return True, 0.0

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    def prune(self) -> int:
        """Drop keys with no hits inside the window; returns how many were dropped."""
        cutoff = self._clock() - self.window_seconds
        with self._lock:
            return self._drop_stale(cutoff)

    def _drop_stale(self, cutoff: float) -> int:
        # Caller holds self._lock.
        stale = [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for k in stale:
            del self._hits[k]
        return len(stale)
