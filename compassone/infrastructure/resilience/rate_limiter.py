"""Implementation of a client-side rate limiter.

Controls the frequency of outgoing requests to stay under the API's rate
limits. Uses a sliding window algorithm.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 60  # Max 60 requests...
DEFAULT_TIME_WINDOW_SECONDS = 60.0  # ...per 60 seconds


class RateLimiter:
    """Simple sliding window rate limiter.

    A ``max_requests`` of 0 disables limiting entirely.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        time_window: float = DEFAULT_TIME_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initializes the rate limiter.

        Args:
            max_requests: Maximum number of requests allowed in the time window.
            time_window: The time window in seconds.
            clock: Monotonic time source.
            sleep: Coroutine used to wait.
        """
        self.max_requests = max_requests
        self.time_window = time_window
        self.timestamps: Deque[float] = deque()
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        logger.debug(f"RateLimiter initialized: {max_requests} requests / {time_window} seconds")

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def _cleanup_timestamps(self) -> None:
        """Removes timestamps older than the time window."""
        now = self._clock()
        while self.timestamps and now - self.timestamps[0] >= self.time_window:
            self.timestamps.popleft()

    def _wait_time_locked(self) -> float:
        self._cleanup_timestamps()
        if len(self.timestamps) < self.max_requests:
            return 0.0
        oldest_timestamp = self.timestamps[0]
        return max(0.0, oldest_timestamp + self.time_window - self._clock())

    async def wait_for_permission(self) -> float:
        """Waits until a request is permitted according to the rate limit.

        Returns:
            Total seconds spent waiting.
        """
        if not self.enabled:
            return 0.0
        waited = 0.0
        while True:
            async with self._lock:
                wait_time = self._wait_time_locked()
                if wait_time <= 0:
                    self.timestamps.append(self._clock())
                    return waited

            logger.debug(f"Rate limit reached. Waiting for {wait_time:.2f} seconds.")
            await self._sleep(wait_time)
            waited += wait_time
            # Loop again to re-check condition after waiting

    async def get_wait_time(self) -> float:
        """Estimates the time needed before the next request can be made."""
        if not self.enabled:
            return 0.0
        async with self._lock:
            return self._wait_time_locked()
