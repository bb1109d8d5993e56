"""Tests for the token bucket rate limiter."""

import asyncio
import time

import pytest

from hotel_content.ingest.rate_limiter import RateLimiter


def test_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        RateLimiter(0)


@pytest.mark.asyncio
async def test_burst_is_immediate():
    limiter = RateLimiter(requests_per_second=5)

    waits = [await limiter.acquire() for _ in range(5)]

    assert waits == [0.0] * 5


@pytest.mark.asyncio
async def test_waits_when_bucket_is_empty():
    limiter = RateLimiter(requests_per_second=20, burst_size=1)
    await limiter.acquire()

    start = time.monotonic()
    waited = await limiter.acquire()
    elapsed = time.monotonic() - start

    assert waited > 0
    assert elapsed >= 0.03


@pytest.mark.asyncio
async def test_concurrent_callers_are_paced():
    limiter = RateLimiter(requests_per_second=50, burst_size=1)

    start = time.monotonic()
    await asyncio.gather(*(limiter.acquire() for _ in range(6)))
    elapsed = time.monotonic() - start

    # First token is free, the other five need 1/50s each
    assert elapsed >= 0.08


@pytest.mark.asyncio
async def test_acquire_is_cancellable():
    limiter = RateLimiter(requests_per_second=0.1, burst_size=1)
    await limiter.acquire()

    task = asyncio.create_task(limiter.acquire())
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
