"""Token bucket rate limiter for outbound content API requests."""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Token bucket limiter shared by every request a client makes.

    Tokens refill continuously at ``requests_per_second`` up to ``burst_size``
    (defaults to the rate). ``acquire`` waits until a token is available; the
    wait is a plain ``asyncio.sleep`` so cancelling the caller aborts it.
    """

    def __init__(self, requests_per_second: float, burst_size: int | None = None):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.requests_per_second = requests_per_second
        self.burst_size = burst_size or max(int(requests_per_second), 1)
        self.tokens = float(self.burst_size)
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.tokens + elapsed * self.requests_per_second, self.burst_size)
        self.last_refill = now

    async def acquire(self) -> float:
        """
        Take one token, waiting for the bucket to refill if it is empty.

        Returns:
            Seconds spent waiting
        """
        async with self._lock:
            self._refill()
            if self.tokens >= 1.0:
                self.tokens -= 1.0
                return 0.0

            wait_time = (1.0 - self.tokens) / self.requests_per_second
            logger.debug(f"Rate limit: waiting {wait_time:.3f}s for a token")
            await asyncio.sleep(wait_time)
            self._refill()
            self.tokens = max(self.tokens - 1.0, 0.0)
            return wait_time
