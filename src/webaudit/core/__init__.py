"""
Core module - Scan orchestration and shared request state.

This package contains the pipeline coordinator plus the two process-wide
stores it owns: the result cache and the per-client rate limiter.
"""

from .orchestrator import ScanOrchestrator, ScanResult
from .rate_limiter import FixedWindowRateLimiter, RateLimitConfig, RateLimitExceeded
from .cache import ScanCache, scan_cache_key


__all__ = [
    # Orchestration
    "ScanOrchestrator",
    "ScanResult",
    # Rate limiting
    "FixedWindowRateLimiter",
    "RateLimitConfig",
    "RateLimitExceeded",
    # Caching
    "ScanCache",
    "scan_cache_key",
]
