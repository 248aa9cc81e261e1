"""
Unit tests for FixedWindowRateLimiter module.

Run with: pytest tests/unit/test_rate_limiter.py -v
"""

import threading

import pytest
from webaudit.core.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimitConfig,
    RateLimitExceeded,
)


class FakeClock:
    """Manually advanced time source"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestFixedWindowRateLimiter:
    """Test suite for FixedWindowRateLimiter class"""

    def test_initialization_with_defaults(self):
        """Test rate limiter initializes with default config"""
        limiter = FixedWindowRateLimiter()

        assert limiter.config.max_requests == 10
        assert limiter.config.window_seconds == 60.0
        assert limiter.allowed_count == 0
        assert limiter.rejected_count == 0

    def test_initialization_with_custom_config(self):
        """Test rate limiter initializes with custom config"""
        config = RateLimitConfig(max_requests=3, window_seconds=5.0)
        limiter = FixedWindowRateLimiter(config=config)

        assert limiter.config.max_requests == 3
        assert limiter.config.window_seconds == 5.0

    def test_quota_plus_one_is_rejected(self):
        """Test the (N+1)th request inside the window is rejected"""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(RateLimitConfig(max_requests=10), clock=clock)

        results = [limiter.allow("203.0.113.7") for _ in range(11)]

        assert results[:10] == [True] * 10
        assert results[10] is False
        assert limiter.rejected_count == 1

    def test_identities_are_independent(self):
        """Test one client's quota does not affect another's"""
        limiter = FixedWindowRateLimiter(RateLimitConfig(max_requests=1), clock=FakeClock())

        assert limiter.allow("a") is True
        assert limiter.allow("a") is False
        assert limiter.allow("b") is True

    def test_window_replaced_after_elapse(self):
        """Test a request after the window starts a fresh window"""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(
            RateLimitConfig(max_requests=2, window_seconds=60.0), clock=clock
        )

        assert limiter.allow("client")
        assert limiter.allow("client")
        assert not limiter.allow("client")

        clock.advance(61.0)

        assert limiter.allow("client") is True
        window = limiter.get_window("client")
        assert window.count == 1
        assert window.window_start == clock.now

    def test_requests_inside_window_keep_counting(self):
        """Test the counter is not decremented within a window"""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(
            RateLimitConfig(max_requests=2, window_seconds=60.0), clock=clock
        )

        limiter.allow("client")
        clock.advance(30.0)
        limiter.allow("client")
        clock.advance(29.0)

        assert limiter.allow("client") is False
        assert limiter.get_window("client").count == 3

    def test_check_raises_when_exceeded(self):
        """Test check() raises RateLimitExceeded over quota"""
        limiter = FixedWindowRateLimiter(RateLimitConfig(max_requests=1), clock=FakeClock())

        limiter.check("198.51.100.1")

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("198.51.100.1")

        assert exc_info.value.client_id == "198.51.100.1"
        assert exc_info.value.limit == 1

    def test_concurrent_updates_converge(self):
        """Test racing threads on one key produce one consistent count"""
        limiter = FixedWindowRateLimiter(
            RateLimitConfig(max_requests=1000, window_seconds=3600.0)
        )

        def hammer():
            for _ in range(100):
                limiter.allow("shared")

        threads = [threading.Thread(target=hammer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert limiter.get_window("shared").count == 800

    def test_reset(self):
        """Test reset() forgets windows and counters"""
        limiter = FixedWindowRateLimiter(RateLimitConfig(max_requests=1), clock=FakeClock())
        limiter.allow("a")
        limiter.allow("a")

        limiter.reset()

        assert limiter.get_window("a") is None
        assert limiter.allowed_count == 0
        assert limiter.rejected_count == 0
        assert limiter.allow("a") is True

    def test_reset_single_key(self):
        """Test reset(key) only affects that key"""
        limiter = FixedWindowRateLimiter(RateLimitConfig(max_requests=1), clock=FakeClock())
        limiter.allow("a")
        limiter.allow("b")

        limiter.reset("a")

        assert limiter.get_window("a") is None
        assert limiter.get_window("b") is not None

    def test_get_stats(self):
        """Test get_stats() returns correct information"""
        limiter = FixedWindowRateLimiter(RateLimitConfig(max_requests=1), clock=FakeClock())
        limiter.allow("a")
        limiter.allow("a")
        limiter.allow("b")

        stats = limiter.get_stats()

        assert stats["tracked_clients"] == 2
        assert stats["allowed"] == 2
        assert stats["rejected"] == 1
        assert stats["config"]["max_requests"] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
