"""Rate limited execution of remote requests with retries.

Every call the sync pipeline makes to the catalog service goes through a
:class:`RateLimitedClient`. It caps how many requests may start per rolling
interval, how many may be in flight at once, and retries transient failures
with capped exponential backoff. Authentication, not-found and validation
failures are surfaced on the first attempt.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

from vinylsync.errors import RemoteServiceError, TransientRemoteError
from vinylsync.infrastructure.observability import (
    get_logger,
    record_api_request,
    record_api_retry,
)

T = TypeVar("T")

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]

logger = get_logger(__name__)


class RateLimiter:
    """Rolling-window limiter allowing ``max_calls`` starts per ``interval_seconds``."""

    def __init__(
        self,
        max_calls: int | None,
        interval_seconds: float,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.max_calls = max_calls if max_calls and max_calls > 0 else 0
        self.interval_seconds = max(0.0, interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self._starts: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _expire(self, now: float) -> None:
        while self._starts and now - self._starts[0] >= self.interval_seconds:
            self._starts.popleft()

    def _next_delay(self) -> float:
        now = self._clock()
        self._expire(now)
        if len(self._starts) < self.max_calls:
            self._starts.append(now)
            return 0.0
        return self.interval_seconds - (now - self._starts[0])

    async def acquire(self) -> None:
        """Wait until another request may start, then reserve the slot."""
        if self.max_calls <= 0 or self.interval_seconds <= 0:
            return
        async with self._lock:
            delay = self._next_delay()
            while delay > 0:
                logger.debug("Rate limit window full; waiting %.2fs", delay)
                await self._sleep(delay)
                delay = self._next_delay()

    @property
    def in_window(self) -> int:
        self._expire(self._clock())
        return len(self._starts)


class RateLimitedClient:
    """Executes request coroutines under rate, concurrency and retry policy."""

    def __init__(
        self,
        *,
        rate_limit: int | None = 55,
        interval_seconds: float = 60.0,
        max_concurrent_requests: int = 8,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 5.0,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.max_concurrent_requests = max(1, max_concurrent_requests)
        self.rate_limiter = RateLimiter(rate_limit, interval_seconds, clock=clock, sleep=sleep)
        self.max_retries = max(0, max_retries)
        self.backoff_base_seconds = max(0.0, backoff_base_seconds)
        self.backoff_max_seconds = max(self.backoff_base_seconds, backoff_max_seconds)
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(self.max_concurrent_requests)
        self._in_flight = 0
        self.peak_in_flight = 0

    @classmethod
    def from_settings(cls, settings, **overrides) -> "RateLimitedClient":
        kwargs = dict(
            rate_limit=settings.rate_limit,
            interval_seconds=settings.rate_interval_seconds,
            max_concurrent_requests=settings.max_concurrent_requests,
            max_retries=settings.max_retries,
            backoff_base_seconds=settings.backoff_base_seconds,
            backoff_max_seconds=settings.backoff_max_seconds,
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    def _backoff_delay(self, attempt: int) -> float:
        return min(self.backoff_base_seconds * (2**attempt), self.backoff_max_seconds)

    async def _attempt(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        async with self._semaphore:
            await self.rate_limiter.acquire()
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
            started = time.perf_counter()
            try:
                result = await operation()
            except RemoteServiceError as exc:
                record_api_request(label, type(exc).__name__, time.perf_counter() - started)
                raise
            finally:
                self._in_flight -= 1
            record_api_request(label, "ok", time.perf_counter() - started)
            return result

    async def execute(self, operation: Callable[[], Awaitable[T]], *, label: str = "request") -> T:
        """Run ``operation`` once it may start, retrying transient failures.

        Raises:
            TransientRemoteError: when every attempt failed transiently.
            RemoteServiceError: on the first non-transient failure.
        """
        attempt = 0
        while True:
            try:
                return await self._attempt(operation, label)
            except TransientRemoteError as exc:
                if attempt >= self.max_retries:
                    logger.warning(
                        "%s failed after %d attempt(s): %s", label, attempt + 1, exc
                    )
                    raise
                delay = self._backoff_delay(attempt)
                attempt += 1
                record_api_retry(label, type(exc).__name__)
                logger.warning(
                    "%s failed, attempt %d: %s; retrying in %.1fs", label, attempt, exc, delay
                )
            # Backoff sleeps outside the semaphore.
            await self._sleep(delay)


__all__ = ["RateLimitedClient", "RateLimiter"]
