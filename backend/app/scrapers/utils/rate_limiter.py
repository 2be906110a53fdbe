"""Token bucket rate limiter for per-host request throttling."""

import asyncio
import time
from typing import Dict


class TokenBucket:
    """Token bucket algorithm implementation for rate limiting.

    The bucket starts full and refills at a constant rate.
    Each request consumes one token. If no tokens are available,
    the request waits until tokens are refilled.
    """

    def __init__(self, rate: float, capacity: float):
        """Initialize token bucket.

        Args:
            rate: Tokens per second (e.g., 4.0 = 240 RPM)
            capacity: Maximum tokens in bucket (burst capacity)
        """
        self.rate = rate
        self.capacity = capacity
        self.tokens = capacity
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens from the bucket, waiting if necessary."""
        async with self._lock:
            while True:
                self._refill()
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                wait_time = (tokens - self.tokens) / self.rate
                await asyncio.sleep(wait_time)


class HostRateLimiter:
    """Per-host rate limiter sharing one request budget across the session.

    Every page render against the target site goes through the same bucket,
    so concurrent domains and reveal pages together never exceed the
    configured requests per minute.
    """

    def __init__(self, requests_per_minute: int):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Budget applied to every host
        """
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        self.requests_per_minute = requests_per_minute
        self._buckets: Dict[str, TokenBucket] = {}

    def _get_bucket(self, host: str) -> TokenBucket:
        if host not in self._buckets:
            rate = self.requests_per_minute / 60.0
            # Small bursts allowed (10% of RPM, min 2)
            capacity = max(2.0, self.requests_per_minute / 10.0)
            self._buckets[host] = TokenBucket(rate=rate, capacity=capacity)
        return self._buckets[host]

    async def acquire(self, host: str) -> None:
        """Block until the host's budget allows one more request."""
        await self._get_bucket(host).acquire()
