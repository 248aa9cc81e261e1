"""
Unit tests for ScanCache module.

Run with: pytest tests/unit/test_cache.py -v
"""

import pytest
from webaudit.core.cache import ScanCache, scan_cache_key


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestScanCache:
    """Test suite for ScanCache class"""

    def test_cache_key_includes_mode(self):
        """Test passive and active scans of a host use different keys"""
        assert scan_cache_key("example.com", False) == "scan:example.com:active=false"
        assert scan_cache_key("example.com", True) == "scan:example.com:active=true"

    def test_get_missing_returns_none(self):
        cache = ScanCache()

        assert cache.get("nope") is None
        assert cache.misses == 1

    def test_put_then_get(self):
        """Test a stored value is returned while fresh"""
        clock = FakeClock()
        cache = ScanCache(ttl_seconds=120, clock=clock)
        value = object()

        cache.put("k", value)
        clock.now = 119.0

        assert cache.get("k") is value
        assert cache.hits == 1

    def test_expired_entry_is_evicted_on_read(self):
        """Test expiry is detected lazily and the entry removed"""
        clock = FakeClock()
        cache = ScanCache(ttl_seconds=120, clock=clock)
        cache.put("k", "v")

        clock.now = 120.5

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_custom_ttl_per_entry(self):
        clock = FakeClock()
        cache = ScanCache(ttl_seconds=120, clock=clock)
        cache.put("short", "v", ttl_seconds=1)

        clock.now = 2.0

        assert cache.get("short") is None

    def test_invalidate_and_clear(self):
        cache = ScanCache()
        cache.put("a", 1)
        cache.put("b", 2)

        cache.invalidate("a")
        assert cache.get("a") is None
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
