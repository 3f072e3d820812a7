"""In-memory sliding window limits for solution submissions."""

from __future__ import annotations

import asyncio
import os
import time
from collections import deque
from typing import Deque, Dict, Optional

from arena.errors import ArenaError


class RateLimitExceeded(ArenaError):
    """Too many submissions, try again later."""

    status_code = 429


class RateLimiter:
    """Sliding window limiter keyed by an arbitrary string (user, challenge...)."""

    def __init__(self, *, limit: int, window_seconds: float) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window = window_seconds
        self._lock = asyncio.Lock()
        self._hits: Dict[str, Deque[float]] = {}

    async def try_acquire(self, key: str) -> bool:
        now = time.monotonic()
        cutoff = now - self.window

        async with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.limit:
                return False

            hits.append(now)
            return True

    async def check(self, key: str) -> None:
        if not await self.try_acquire(key):
            raise RateLimitExceeded()


def build_submission_rate_limiter() -> Optional[RateLimiter]:
    """Limiter for solution submissions, or None when the limit is 0/unset."""
    try:
        limit = int(os.getenv("SOLUTION_SUBMISSION_RATE_LIMIT", "0"))
        window = float(os.getenv("SOLUTION_SUBMISSION_RATE_WINDOW", "60"))
    except ValueError:
        limit = 0
        window = 60.0

    if limit <= 0:
        return None
    return RateLimiter(limit=limit, window_seconds=window)


__all__ = ["RateLimitExceeded", "RateLimiter", "build_submission_rate_limiter"]
