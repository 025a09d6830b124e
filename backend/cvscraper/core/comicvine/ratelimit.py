"""Per-endpoint rate limiting shared by every ComicVine caller.

ComicVine enforces two limits:
- 200 requests per hour per endpoint (rolling window)
- 1 second minimum between any two requests, regardless of endpoint

Each endpoint gets its own window guarded by its own lock, so quota checks
for different endpoints do not serialize each other. Pacing is a single
timestamp guarded by one global lock. Locks are always taken window first,
then pace.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from cvscraper.core.comicvine.models import RateLimitStatus
from cvscraper.core.config import Settings, get_settings
from cvscraper.core.errors import RateLimitExceeded
from cvscraper.core.metrics import (
    comicvine_pacing_delay_seconds,
    comicvine_rate_limit_rejections_total,
    comicvine_requests_total,
)

logger = structlog.get_logger("cvscraper.core.comicvine.ratelimit")

DEFAULT_CAPACITY = 200
DEFAULT_WINDOW_SECONDS = 3600.0
DEFAULT_MIN_INTERVAL_SECONDS = 1.0

# Endpoint tags
ENDPOINT_SEARCH = "search"
ENDPOINT_ISSUE = "issue"
ENDPOINT_ISSUES = "issues"
ENDPOINT_VOLUME = "volume"
ENDPOINT_VOLUMES = "volumes"


@dataclass
class RateWindow:
    """Request timestamps for one endpoint inside the rolling window."""

    request_times: deque[float] = field(default_factory=deque)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def evict(self, now: float, window_seconds: float) -> None:
        cutoff = now - window_seconds
        while self.request_times and self.request_times[0] < cutoff:
            self.request_times.popleft()


class RateLimiter:
    """Rolling-window quota per endpoint plus global request pacing."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the rate limiter.

        Args:
            capacity: Maximum requests per endpoint inside the window
            window_seconds: Length of the rolling window
            min_interval_seconds: Minimum spacing between any two requests
            clock: Wall-clock source in epoch seconds (injectable for tests)
        """
        self.capacity = capacity
        self.window_seconds = window_seconds
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock

        self._windows: dict[str, RateWindow] = {}
        self._pace_lock = asyncio.Lock()
        self._last_request_time: float | None = None

    def configure(
        self,
        capacity: int,
        window_seconds: float,
        min_interval_seconds: float,
    ) -> None:
        """Change the limits in place, keeping every recorded request.

        New limits apply from the next ``acquire``; callers already pacing
        finish with the interval they started with.
        """
        if (capacity, window_seconds, min_interval_seconds) == (
            self.capacity,
            self.window_seconds,
            self.min_interval_seconds,
        ):
            return
        logger.info(
            "Rate limits changed",
            capacity=capacity,
            window_seconds=window_seconds,
            min_interval_seconds=min_interval_seconds,
        )
        self.capacity = capacity
        self.window_seconds = window_seconds
        self.min_interval_seconds = min_interval_seconds

    def _window(self, endpoint: str) -> RateWindow:
        window = self._windows.get(endpoint)
        if window is None:
            window = self._windows.setdefault(endpoint, RateWindow())
        return window

    async def acquire(self, endpoint: str) -> None:
        """Wait for permission to send one request to ``endpoint``.

        Suspends for at most the pacing interval. When the endpoint's quota is
        exhausted this raises instead of waiting out the window; the caller
        decides whether to surface the error or retry later.

        Raises:
            RateLimitExceeded: The endpoint already holds ``capacity`` requests
                inside the window. ``wait_seconds`` says when a slot frees up.
            asyncio.CancelledError: The caller was cancelled while pacing.
        """
        window = self._window(endpoint)

        async with window.lock:
            now = self._clock()
            window.evict(now, self.window_seconds)

            if len(window.request_times) >= self.capacity:
                wait_until = window.request_times[0] + self.window_seconds
                comicvine_rate_limit_rejections_total.labels(endpoint=endpoint).inc()
                logger.warning(
                    "Rate limit reached",
                    endpoint=endpoint,
                    current_count=len(window.request_times),
                    wait_seconds=wait_until - now,
                )
                raise RateLimitExceeded(endpoint, wait_until - now)

            async with self._pace_lock:
                if self._last_request_time is not None:
                    elapsed = self._clock() - self._last_request_time
                    delay = self.min_interval_seconds - elapsed
                    if delay > 0:
                        logger.debug(
                            "Pacing request",
                            endpoint=endpoint,
                            delay_seconds=delay,
                        )
                        comicvine_pacing_delay_seconds.observe(delay)
                        await asyncio.sleep(delay)

                # Record before releasing the locks so the next caller sees this request
                now = self._clock()
                window.request_times.append(now)
                self._last_request_time = now

        comicvine_requests_total.labels(endpoint=endpoint).inc()

    def status(self) -> dict[str, RateLimitStatus]:
        """Snapshot of quota usage for every endpoint used so far.

        Expired timestamps are evicted first. Eviction only ever drops
        entries older than the window, so it is safe without the async lock.
        """
        now = self._clock()
        snapshot: dict[str, RateLimitStatus] = {}
        for endpoint, window in self._windows.items():
            window.evict(now, self.window_seconds)
            used = len(window.request_times)
            reset_time = None
            if window.request_times:
                reset_time = datetime.fromtimestamp(
                    window.request_times[0] + self.window_seconds, tz=UTC
                )
            snapshot[endpoint] = RateLimitStatus(
                endpoint=endpoint,
                used=used,
                remaining=max(0, self.capacity - used),
                limit=self.capacity,
                reset_time=reset_time,
            )
        return snapshot


# Process-wide limiter (initialized on first use)
_limiter: RateLimiter | None = None


def get_rate_limiter(settings: Settings | None = None) -> RateLimiter:
    """Get or create the process-wide rate limiter.

    There is exactly one limiter per process. When ``settings`` carry
    different limits, the existing limiter is reconfigured in place, so its
    quota history and pacing state stay shared by every caller.

    Args:
        settings: Settings to read limits from. When omitted, an existing
            limiter is returned unchanged and a new one uses get_settings().

    Returns:
        RateLimiter shared by every client in the process
    """
    global _limiter

    if settings is None:
        if _limiter is not None:
            return _limiter
        settings = get_settings()

    if _limiter is None:
        _limiter = RateLimiter(
            capacity=settings.rate_limit,
            window_seconds=settings.rate_limit_window_seconds,
            min_interval_seconds=settings.min_request_interval_seconds,
        )
    else:
        _limiter.configure(
            capacity=settings.rate_limit,
            window_seconds=settings.rate_limit_window_seconds,
            min_interval_seconds=settings.min_request_interval_seconds,
        )

    return _limiter


def reset_rate_limiter() -> None:
    """Drop the process-wide limiter so the next call builds a fresh one."""
    global _limiter
    _limiter = None
