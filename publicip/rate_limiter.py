import asyncio
import threading
import time
from collections.abc import Awaitable, Callable

from publicip.errors import ConfigurationError, RateLimitTimeoutError
from publicip.logger import get_logger

logger = get_logger(__name__)


class TokenBucket:
    """Token bucket limiting the requests sent to the IP information provider.

    One token is granted every ``refill_interval`` seconds and at most ``burst``
    tokens are kept. The bucket starts full. A ``refill_interval`` of 0 disables
    the limit altogether.

    A single instance is shared by every lookup of a provider configuration, so
    the bucket state is guarded by a lock. The lock is never held across an
    ``await``, which makes the bucket usable from asyncio tasks and threads alike.
    """

    def __init__(
        self,
        refill_interval: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if burst < 1:
            raise ConfigurationError(f"The rate limit burst value '{burst}' must be bigger than 0")
        if refill_interval < 0:
            raise ConfigurationError(f"The rate limit rate '{refill_interval}s' must not be negative")

        self.refill_interval = refill_interval
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(burst)
        self._last = clock()

    @property
    def unlimited(self) -> bool:
        return self.refill_interval == 0

    def _advance(self, now: float) -> None:
        """Add the tokens granted since the last update. Caller must hold the lock."""
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self.burst), self._tokens + elapsed / self.refill_interval)
        self._last = now

    def can_acquire(self) -> bool:
        """Check whether a token is available right now without taking it."""
        if self.unlimited:
            return True
        with self._lock:
            self._advance(self._clock())
            return self._tokens >= 1

    def try_acquire(self) -> bool:
        """Take a token if one is available right now."""
        if self.unlimited:
            return True
        with self._lock:
            self._advance(self._clock())
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    async def acquire(self, timeout: float) -> None:
        """Wait for a token for at most ``timeout`` seconds.

        The token is reserved up front. If it would only be due after the
        timeout, the reservation is handed back and RateLimitTimeoutError is
        raised without waiting.
        """
        if self.unlimited:
            return

        with self._lock:
            self._advance(self._clock())
            self._tokens -= 1
            wait = 0.0 if self._tokens >= 0 else -self._tokens * self.refill_interval
            if wait > timeout:
                self._tokens += 1
                raise RateLimitTimeoutError(
                    f"Waiting {wait:.3f}s for a rate limiter slot would exceed the deadline of {timeout:.3f}s"
                )

        if wait > 0:
            logger.debug(f"Waiting for rate limiter slot wait={wait:.3f}s")
            try:
                await self._sleep(wait)
            except asyncio.CancelledError:
                with self._lock:
                    self._tokens = min(float(self.burst), self._tokens + 1)
                raise
