"""Simple in-memory rate limiting for authentication endpoints."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict

from internship_auth.core.exceptions import RateLimitExceededError


@dataclass
class _Bucket:
    window_seconds: int
    timestamps: Deque[float] = field(default_factory=deque)

    def prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self.timestamps and self.timestamps[0] < cutoff:
            self.timestamps.popleft()


class InMemoryRateLimiter:
    """Sliding-window rate limiter suitable for single-node deployments.

    Keys may embed client-supplied values such as email addresses, so a
    bucket only lives while it still holds hits inside its window. Buckets
    that are never touched again are dropped by a sweep run at most once per
    sweep_interval seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0) -> None:
        self._lock = threading.Lock()
        self._buckets: Dict[str, _Bucket] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        for key in list(self._buckets):
            bucket = self._buckets[key]
            bucket.prune(now)
            if not bucket.timestamps:
                del self._buckets[key]
        self._last_sweep = now

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)

            bucket = self._buckets.get(key)
            if bucket is not None:
                bucket.prune(now)
            if bucket is None or not bucket.timestamps:
                bucket = _Bucket(window_seconds=window_seconds)
                self._buckets[key] = bucket

            if len(bucket.timestamps) >= limit:
                return False
            bucket.timestamps.append(now)
            return True

    def enforce(self, key: str, limit: int, window_seconds: int, message: str) -> None:
        """Count one hit against key, raising RateLimitExceededError when over limit."""
        if not self.allow(key, limit, window_seconds):
            raise RateLimitExceededError(message)

    def bucket_count(self) -> int:
        with self._lock:
            return len(self._buckets)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


rate_limiter = InMemoryRateLimiter()
