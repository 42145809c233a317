"""
Crawl politeness limiter.

Spaces page loads against one site to a target request rate and backs off
when loads start failing or slowing down, recovering gradually once the
site responds normally again.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for the politeness limiter."""
    # Delay between page loads (seconds)
    base_delay: float = 1.0

    # Bounds the adaptive delay may move within
    min_delay: float = 0.5
    max_delay: float = 10.0

    # Loads slower than this (seconds) count as the site struggling
    target_response_time: float = 5.0

    # Failure share in the window above which we back off
    error_rate_threshold: float = 0.2

    window_size: int = 10
    error_backoff_multiplier: float = 2.0
    success_recovery_multiplier: float = 0.9

    @classmethod
    def from_rps(cls, requests_per_second: float) -> "RateLimitConfig":
        """Build a configuration targeting a request rate.

        Args:
            requests_per_second: Target rate (e.g. SiteCrawlConfig.crawl_rate_rps)
        """
        delay = 1.0 / requests_per_second
        return cls(base_delay=delay, min_delay=delay, max_delay=max(delay * 10, 10.0))


@dataclass
class LoadRecord:
    """Outcome of a single page load."""
    response_time: float  # seconds
    success: bool


class PolitenessLimiter:
    """
    Async limiter shared by every page load of one discovery run.

    ``wait()`` is serialized by a lock so concurrent sibling explorations
    still respect the configured spacing.
    """

    def __init__(self, config: RateLimitConfig | None = None):
        """
        Initialize the limiter.

        Args:
            config: Rate limit configuration
        """
        self.config = config or RateLimitConfig()
        self._current_delay = self.config.base_delay
        self._last_request_time: float | None = None
        self._history: Deque[LoadRecord] = deque(maxlen=self.config.window_size)
        self._lock = asyncio.Lock()

        self.total_requests = 0
        self.total_errors = 0
        self.total_wait_time = 0.0

    async def wait(self) -> float:
        """
        Wait until the next page load is allowed.

        Returns:
            Time waited (seconds)
        """
        async with self._lock:
            now = time.monotonic()
            if self._last_request_time is not None:
                wait_time = max(0.0, self._current_delay - (now - self._last_request_time))
            else:
                wait_time = 0.0

            if wait_time > 0:
                await asyncio.sleep(wait_time)
                self.total_wait_time += wait_time

            self._last_request_time = time.monotonic()
            return wait_time

    def record(self, response_time: float, success: bool = True) -> None:
        """
        Record a finished page load and adapt the delay.

        Args:
            response_time: Time the load took (seconds)
            success: Whether the load succeeded
        """
        self._history.append(LoadRecord(response_time=response_time, success=success))
        self.total_requests += 1
        if not success:
            self.total_errors += 1
        self._adjust_delay()

    def _adjust_delay(self) -> None:
        if len(self._history) < 3:
            return  # Not enough data

        recent = list(self._history)
        avg_response_time = sum(r.response_time for r in recent) / len(recent)
        error_rate = sum(1 for r in recent if not r.success) / len(recent)
        new_delay = self._current_delay

        if error_rate > self.config.error_rate_threshold:
            new_delay *= self.config.error_backoff_multiplier
            logger.debug(f"Politeness: errors high ({error_rate:.0%}), backing off to {new_delay:.2f}s")
        elif avg_response_time > self.config.target_response_time:
            new_delay *= min(avg_response_time / self.config.target_response_time, 2.0)
            logger.debug(f"Politeness: site slow ({avg_response_time:.2f}s), slowing to {new_delay:.2f}s")
        elif error_rate == 0:
            new_delay *= self.config.success_recovery_multiplier

        self._current_delay = max(self.config.min_delay, min(self.config.max_delay, new_delay))

    @property
    def current_delay(self) -> float:
        """Current delay between page loads (seconds)."""
        return self._current_delay
