# @TASK S1-T1.4 - Rate limiter tests
# @TEST tests/test_rate_limiter.py

"""Tests for the per-IP sliding-window rate limiter."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from notesync.services.rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSlidingWindowRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())

        decisions = [limiter.check("1.2.3.4") for _ in range(3)]

        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == [2, 1, 0]

    def test_rejects_over_limit_with_retry_after(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)
        limiter.check("ip")
        clock.advance(10)
        limiter.check("ip")
        clock.advance(5)

        decision = limiter.check("ip")

        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.retry_after == 45

    def test_window_slides(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)
        limiter.check("ip")
        clock.advance(30)
        limiter.check("ip")
        assert limiter.check("ip").allowed is False

        clock.advance(30)  # first request leaves the window
        assert limiter.check("ip").allowed is True
        assert limiter.check("ip").allowed is False

    def test_rejected_requests_are_not_recorded(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.check("ip")
        for _ in range(5):
            clock.advance(10)
            limiter.check("ip")

        clock.advance(10)
        assert limiter.check("ip").allowed is True

    def test_keys_are_independent(self):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        assert limiter.check("a").allowed is True
        assert limiter.check("b").allowed is True
        assert limiter.check("a").allowed is False

    def test_reset(self):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.check("a")
        limiter.reset("a")
        assert limiter.check("a").allowed is True

    def test_zero_limit_disables(self):
        limiter = SlidingWindowRateLimiter(max_requests=0, window_seconds=60, clock=FakeClock())
        assert all(limiter.check("ip").allowed for _ in range(10))


class TestRateLimitMiddleware:
    @pytest.mark.asyncio
    async def test_hundred_and_first_request_is_rejected(self, test_client: AsyncClient):
        for i in range(100):
            resp = await test_client.get("/api/health")
            assert resp.status_code == 200, f"request {i + 1} was rejected"

        resp = await test_client.get("/api/health")

        assert resp.status_code == 429
        data = resp.json()
        assert data["error"] == "Too many requests, please try again later"
        assert 0 < data["retryAfter"] <= 3600
        assert resp.headers["Retry-After"] == str(data["retryAfter"])

    @pytest.mark.asyncio
    async def test_rate_limit_headers(self, test_client: AsyncClient):
        resp = await test_client.get("/api/health")
        assert resp.headers["X-RateLimit-Limit"] == "100"
        assert resp.headers["X-RateLimit-Remaining"] == "99"

    @pytest.mark.asyncio
    async def test_forwarded_for_separates_callers(self, test_app, test_client: AsyncClient):
        test_app.state.rate_limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=3600)

        first = await test_client.get("/api/health", headers={"X-Forwarded-For": "10.0.0.1"})
        second = await test_client.get("/api/health", headers={"X-Forwarded-For": "10.0.0.2, 172.16.0.1"})
        third = await test_client.get("/api/health", headers={"X-Forwarded-For": "10.0.0.1"})

        assert first.status_code == 200
        assert second.status_code == 200
        assert third.status_code == 429

    @pytest.mark.asyncio
    async def test_rejection_is_readable_cross_origin(self, test_app, test_client: AsyncClient):
        test_app.state.rate_limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=3600)
        origin = "http://localhost:5173"

        await test_client.get("/api/health", headers={"Origin": origin})
        resp = await test_client.get("/api/health", headers={"Origin": origin})

        assert resp.status_code == 429
        assert resp.headers["access-control-allow-origin"] == origin
        assert "retry-after" in resp.headers["access-control-expose-headers"].lower()
