"""
Scan Cache - Short-lived de-duplication of identical scan requests.

Entries expire after a TTL and are evicted lazily when read; there is no
background sweeper.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass

import structlog


@dataclass
class CacheEntry:
    """Cached value with its absolute expiry time"""
    value: Any
    expires_at: float


def scan_cache_key(host: str, active: bool) -> str:
    """Cache key for one host and scan mode"""
    return f"scan:{host}:active={str(active).lower()}"


class ScanCache:
    """
    In-memory TTL cache keyed by string.

    Example:
        >>> cache = ScanCache(ttl_seconds=120)
        >>> cache.put("scan:example.com:active=false", result)
        >>> cache.get("scan:example.com:active=false")
    """

    def __init__(
        self,
        ttl_seconds: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

        self.hits = 0
        self.misses = 0

        self.logger = structlog.get_logger(__name__)

    def get(self, key: str) -> Optional[Any]:
        """
        Look up a key.

        Returns:
            The cached value, or None if absent or expired
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now > entry.expires_at:
                del self._entries[key]
                self.logger.debug("cache_entry_expired", key=key)
                entry = None

            if entry is None:
                self.misses += 1
                return None

            self.hits += 1
            return entry.value

    def put(self, key: str, value: Any, ttl_seconds: Optional[float] = None):
        """Store a value, replacing any existing entry for the key"""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def invalidate(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
