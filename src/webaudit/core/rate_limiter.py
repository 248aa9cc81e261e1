"""
Fixed-Window Rate Limiter - Per-client throttling of scan requests.

Each client identity owns one window. Requests inside a live window increment
its counter; the first request after the window elapses replaces the window
with a fresh one instead of decrementing the old counter.

Design Pattern: Keyed check-and-set store
"""

import threading
import time
from typing import Callable, Dict, Optional
from dataclasses import dataclass

import structlog

from .. import WebAuditError


class RateLimitExceeded(WebAuditError):
    """Raised when a client exceeds its request quota"""

    def __init__(self, client_id: str, limit: int, window_seconds: float):
        self.client_id = client_id
        self.limit = limit
        self.window_seconds = window_seconds
        super().__init__(
            f"Too many requests from {client_id}: "
            f"limit is {limit} per {window_seconds:g}s"
        )


@dataclass
class RateLimitConfig:
    """Configuration for rate limiter"""
    max_requests: int = 10       # Requests allowed per window
    window_seconds: float = 60.0  # Window length


@dataclass
class RateWindow:
    """Request counter for one client identity"""
    window_start: float
    count: int


class FixedWindowRateLimiter:
    """
    Fixed-window rate limiter keyed by client identity.

    Updates for a key happen atomically, so two requests racing on the same
    identity always land in one consistent window.

    Example:
        >>> limiter = FixedWindowRateLimiter()
        >>> limiter.allow("203.0.113.7")
        True
        >>> limiter.check("203.0.113.7")  # raises RateLimitExceeded when over quota
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rate limiter.

        Args:
            config: Rate limit configuration (uses defaults if None)
            clock: Monotonic time source in seconds
        """
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()

        self.allowed_count = 0
        self.rejected_count = 0

        self.logger = structlog.get_logger(__name__)

        self.logger.info(
            "rate_limiter_initialized",
            max_requests=self.config.max_requests,
            window_seconds=self.config.window_seconds,
        )

    def allow(self, key: str) -> bool:
        """
        Count one request for a key and report whether it fits the quota.

        Args:
            key: Client identity (e.g. remote address)

        Returns:
            True if the request is within the quota
        """
        now = self._clock()

        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.window_start > self.config.window_seconds:
                window = RateWindow(window_start=now, count=1)
                self._windows[key] = window
            else:
                window.count += 1
            count = window.count

            allowed = count <= self.config.max_requests
            if allowed:
                self.allowed_count += 1
            else:
                self.rejected_count += 1

        if not allowed:
            self.logger.warning(
                "rate_limit_rejected",
                client=key,
                count=count,
                max_requests=self.config.max_requests,
            )
        return allowed

    def check(self, key: str):
        """
        Count one request and raise if the quota is exceeded.

        Raises:
            RateLimitExceeded: If the client is over its quota
        """
        if not self.allow(key):
            raise RateLimitExceeded(
                key, self.config.max_requests, self.config.window_seconds
            )

    def get_window(self, key: str) -> Optional[RateWindow]:
        """Return a copy of the current window for a key, if any"""
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return None
            return RateWindow(window.window_start, window.count)

    def reset(self, key: Optional[str] = None):
        """Forget one client's window, or every window when key is None"""
        with self._lock:
            if key is None:
                self._windows.clear()
                self.allowed_count = 0
                self.rejected_count = 0
            else:
                self._windows.pop(key, None)

        self.logger.info("rate_limiter_reset", client=key)

    def get_stats(self) -> dict:
        """
        Get rate limiter statistics.

        Returns:
            Dictionary with current statistics
        """
        with self._lock:
            tracked = len(self._windows)

        return {
            "tracked_clients": tracked,
            "allowed": self.allowed_count,
            "rejected": self.rejected_count,
            "config": {
                "max_requests": self.config.max_requests,
                "window_seconds": self.config.window_seconds,
            },
        }
