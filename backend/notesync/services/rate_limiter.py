# @TASK S1-T1.4 - Per-IP sliding-window rate limiter
# @TEST tests/test_rate_limiter.py

"""In-memory sliding-window rate limiter.

Every accepted request is remembered by timestamp; a request is rejected
once ``max_requests`` timestamps fall inside the trailing window. Rejected
requests are not recorded, so a client that backs off recovers as soon as
its oldest request ages out.

The limiter is an explicit object held on ``app.state`` so tests (and
multiple app instances) get independent counters.
"""

from __future__ import annotations

import math
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0  # seconds until a slot frees up; 0 when allowed


class SlidingWindowRateLimiter:
    """Track request timestamps per key over a trailing window.

    Args:
        max_requests: Requests allowed per window. ``<= 0`` disables limiting.
        window_seconds: Length of the trailing window.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_purge = clock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window

    def check(self, key: str) -> RateLimitDecision:
        """Record a request for *key* if it fits in the window."""
        if self._max_requests <= 0:
            return RateLimitDecision(allowed=True, remaining=0)

        now = self._clock()
        self._purge_idle(now)

        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self._window:
            hits.popleft()

        if len(hits) >= self._max_requests:
            retry_after = max(1, math.ceil(hits[0] + self._window - now))
            return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

        hits.append(now)
        return RateLimitDecision(allowed=True, remaining=self._max_requests - len(hits))

    def reset(self, key: str | None = None) -> None:
        """Forget recorded requests for *key*, or for every key."""
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)

    def _purge_idle(self, now: float) -> None:
        # Drop keys whose newest request left the window, once per window.
        if now - self._last_purge < self._window:
            return
        idle = [k for k, hits in self._hits.items() if not hits or now - hits[-1] >= self._window]
        for k in idle:
            del self._hits[k]
        self._last_purge = now


def client_ip(request: Request) -> str:
    """Resolve the caller's IP, preferring the first ``X-Forwarded-For`` hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
