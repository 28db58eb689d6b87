"""Tests for rate limiter."""

import asyncio
import time

import pytest

from catalog_sync.providers.rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
    get_rate_limiter,
)


class TestRateLimiter:
    """Tests for RateLimiter."""

    @pytest.mark.asyncio
    async def test_initial_burst(self) -> None:
        """Test that burst requests are allowed immediately."""
        limiter = RateLimiter(RateLimiterConfig(requests_per_minute=60, burst_size=5))

        start = time.perf_counter()
        for _ in range(5):
            await limiter.acquire()
        elapsed = time.perf_counter() - start

        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_minimum_spacing(self) -> None:
        """With no burst, consecutive calls are spaced by the interval."""
        limiter = RateLimiter(RateLimiterConfig(requests_per_minute=300, burst_size=1))

        assert limiter.min_interval_seconds == pytest.approx(0.2)

        await limiter.acquire()
        start = time.perf_counter()
        await limiter.acquire()
        await limiter.acquire()
        elapsed = time.perf_counter() - start

        assert elapsed >= 0.35

    @pytest.mark.asyncio
    async def test_token_refill(self) -> None:
        """Test that tokens refill over time."""
        limiter = RateLimiter(RateLimiterConfig(requests_per_minute=120, burst_size=2))

        await limiter.acquire()
        await limiter.acquire()
        await asyncio.sleep(0.6)

        start = time.perf_counter()
        await limiter.acquire()
        elapsed = time.perf_counter() - start

        assert elapsed < 0.1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_spacing(self) -> None:
        """Concurrent callers queue on one bucket."""
        limiter = RateLimiter(RateLimiterConfig(requests_per_minute=600, burst_size=1))

        start = time.perf_counter()
        await asyncio.gather(*(limiter.acquire() for _ in range(4)))
        elapsed = time.perf_counter() - start

        # First call is free, three more wait ~0.1s each
        assert elapsed >= 0.25


class TestGetRateLimiter:
    """Tests for the process-wide registry."""

    def test_same_name_same_limiter(self) -> None:
        """Callers asking for the same name share a bucket."""
        first = get_rate_limiter("providers", RateLimiterConfig(requests_per_minute=100))
        second = get_rate_limiter("providers", RateLimiterConfig(requests_per_minute=10))

        assert first is second
        assert second.config.requests_per_minute == 100

    def test_different_names(self) -> None:
        """Different names are independent."""
        assert get_rate_limiter("a") is not get_rate_limiter("b")
