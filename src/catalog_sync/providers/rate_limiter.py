"""
Rate limiter for provider requests.

Implements a token bucket shared by every caller in the process, so
batch runs and concurrent search requests together stay under the
providers' limits. With the default burst of one, it enforces a
fixed minimum spacing between calls.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from catalog_sync.config import RateLimitConfig
from catalog_sync.logger import get_logger


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter."""

    requests_per_minute: int = 100
    burst_size: int = 1

    @classmethod
    def from_settings(cls, config: RateLimitConfig) -> "RateLimiterConfig":
        """Build from the settings section."""
        return cls(
            requests_per_minute=config.requests_per_minute,
            burst_size=config.burst_size,
        )


@dataclass
class RateLimiter:
    """
    Token bucket rate limiter for API requests.

    Allows burst traffic up to burst_size, then throttles
    to requests_per_minute sustained rate.

    Example:
        >>> limiter = RateLimiter(RateLimiterConfig(requests_per_minute=100))
        >>> await limiter.acquire()
        >>> await make_request()
    """

    config: RateLimiterConfig
    _tokens: float = field(init=False)
    _last_update: datetime = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)
    _logger: Any = field(init=False)

    def __post_init__(self) -> None:
        """Initialize rate limiter state."""
        self._tokens = float(self.config.burst_size)
        self._last_update = datetime.now(timezone.utc)
        self._logger = get_logger(__name__, component="rate_limiter")

    @property
    def _refill_rate(self) -> float:
        """Tokens added per second."""
        return self.config.requests_per_minute / 60.0

    @property
    def min_interval_seconds(self) -> float:
        """Spacing between calls once the burst is used up."""
        return 1.0 / self._refill_rate

    def _refill_tokens(self) -> None:
        """Refill tokens based on elapsed time."""
        now = datetime.now(timezone.utc)
        elapsed = (now - self._last_update).total_seconds()
        self._tokens = min(
            self.config.burst_size,
            self._tokens + elapsed * self._refill_rate,
        )
        self._last_update = now

    async def acquire(self) -> None:
        """
        Acquire a token, waiting if necessary.

        Callers queue on the lock, so waiting requests are served
        in arrival order.
        """
        async with self._lock:
            self._refill_tokens()

            if self._tokens < 1:
                wait_time = (1 - self._tokens) / self._refill_rate
                self._logger.debug(
                    "Rate limit reached, waiting",
                    wait_seconds=round(wait_time, 3),
                    tokens_available=round(self._tokens, 2),
                )
                await asyncio.sleep(wait_time)
                self._refill_tokens()

            self._tokens -= 1


class RateLimiterManager:
    """
    Registry of named rate limiters.

    Lookups never await, so check-and-create is atomic within
    the event loop.
    """

    def __init__(self) -> None:
        self._limiters: dict[str, RateLimiter] = {}

    def get_limiter(
        self,
        name: str,
        config: RateLimiterConfig | None = None,
    ) -> RateLimiter:
        """
        Get or create a rate limiter by name.

        The config only applies when the limiter is first created.
        """
        if name not in self._limiters:
            self._limiters[name] = RateLimiter(config or RateLimiterConfig())
        return self._limiters[name]

    def clear(self) -> None:
        """Forget all limiters."""
        self._limiters.clear()


# Global rate limiter manager
_manager = RateLimiterManager()


def get_rate_limiter(
    name: str = "providers",
    config: RateLimiterConfig | None = None,
) -> RateLimiter:
    """
    Get a process-wide rate limiter by name.

    Args:
        name: Limiter identifier
        config: Optional configuration

    Returns:
        RateLimiter: Rate limiter instance
    """
    return _manager.get_limiter(name, config)
