"""
Scan Orchestrator - Sequences one web security scan end to end.

Pipeline per request (order matters):
1. Normalize the target URL
2. Rate-limit the caller (reject before any network activity)
3. Return a cached result for the same host and mode when still fresh
4. Trace HTTP to HTTPS redirection
5. Check the TLS certificate
6. Fetch and classify security headers from the best available URL
7. Detect input surface (query parameters) on the final URL
8. Active mode only: reflected marker probe, error disclosure probe, port sweep
9. Score, cache and return

Every component degrades to a safe default on its own, so this layer never
catches their errors; the only rejection it produces is RateLimitExceeded.

Design Pattern: Pipeline + Observer
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

import structlog

from ..config import ScanSettings
from ..scanners import (
    ErrorDisclosureProbe,
    HttpFetcher,
    PortFinding,
    PortScanner,
    ReflectedMarkerProbe,
    TlsFinding,
    TlsValidator,
    analyze_security_headers,
)
from ..scanners.header_analyzer import ERROR_KEY
from ..scoring import RiskScoringEngine, ScoreResult
from ..urls import ScanTarget, extract_host, has_query_params
from .cache import ScanCache, scan_cache_key
from .rate_limiter import FixedWindowRateLimiter, RateLimitConfig


DEFAULT_CLIENT_ID = "local"


@dataclass(frozen=True)
class ScanResult:
    """
    Everything one scan produced; the unit that is cached and rendered.

    Immutable, so a cached result handed to several callers cannot be
    changed by any of them.
    """
    url: str
    final_url: Optional[str]
    http_status: int
    redirects_to_https: bool
    active_mode: bool
    input_surface_detected: bool
    db_error_leakage_suspected: bool
    xss_probe_performed: bool
    reflected_xss_suspected: bool
    tls: TlsFinding
    headers: Mapping[str, str]
    score: ScoreResult
    open_ports: Tuple[PortFinding, ...] = ()
    scanned_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "open_ports", tuple(self.open_ports))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "url": self.url,
            "final_url": self.final_url,
            "http_status": self.http_status,
            "redirects_to_https": self.redirects_to_https,
            "active_mode": self.active_mode,
            "input_surface_detected": self.input_surface_detected,
            "db_error_leakage_suspected": self.db_error_leakage_suspected,
            "xss_probe_performed": self.xss_probe_performed,
            "reflected_xss_suspected": self.reflected_xss_suspected,
            "tls": self.tls.to_dict(),
            "headers": dict(self.headers),
            "score": self.score.to_dict(),
            "open_ports": [finding.to_dict() for finding in self.open_ports],
            "scanned_at": self.scanned_at.isoformat(),
        }


class ScanOrchestrator:
    """
    Central coordinator for web security scans.

    Responsibilities:
    1. Enforce per-client quotas
    2. De-duplicate scans through the result cache
    3. Run the passive and active phases in order
    4. Hand all signals to the scoring engine

    Components can be injected (e.g. for tests); anything not given is built
    from the settings.

    Example:
        >>> orchestrator = ScanOrchestrator()
        >>> result = await orchestrator.scan("example.com", active=False)
        >>> result.score.score, result.score.risk_level
        (100, <RiskLevel.SECURE: 'secure'>)
    """

    def __init__(
        self,
        settings: Optional[ScanSettings] = None,
        cache: Optional[ScanCache] = None,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        tls_validator: Optional[TlsValidator] = None,
        http_fetcher: Optional[HttpFetcher] = None,
        xss_probe: Optional[ReflectedMarkerProbe] = None,
        error_probe: Optional[ErrorDisclosureProbe] = None,
        port_scanner: Optional[PortScanner] = None,
        scoring_engine: Optional[RiskScoringEngine] = None,
    ):
        self.settings = settings if settings is not None else ScanSettings()

        self.cache = cache if cache is not None else ScanCache(ttl_seconds=self.settings.cache.ttl_seconds)
        self.rate_limiter = rate_limiter if rate_limiter is not None else FixedWindowRateLimiter(
            RateLimitConfig(
                max_requests=self.settings.rate_limit.max_requests,
                window_seconds=self.settings.rate_limit.window_seconds,
            )
        )

        # Components
        self.tls_validator = tls_validator if tls_validator is not None else TlsValidator(self.settings.tls)
        self.http_fetcher = http_fetcher if http_fetcher is not None else HttpFetcher(self.settings.http)
        self.xss_probe = xss_probe if xss_probe is not None else ReflectedMarkerProbe(self.settings.http)
        self.error_probe = error_probe if error_probe is not None else ErrorDisclosureProbe(self.settings.http)
        self.port_scanner = port_scanner if port_scanner is not None else PortScanner(
            self.settings.port_scan,
            user_agent=self.settings.http.user_agent,
        )
        self.scoring_engine = scoring_engine if scoring_engine is not None else RiskScoringEngine()

        # Statistics
        self.scans_completed = 0
        self.cache_hits = 0

        self.logger = structlog.get_logger(__name__)

        # Observer pattern - callbacks
        self.observers: List[Callable[[str, Dict[str, Any]], None]] = []

    def subscribe(self, observer: Callable[[str, Dict[str, Any]], None]):
        """
        Subscribe to scan events ("scan_started", "cache_hit", "scan_completed").

        Args:
            observer: Callback receiving (event, data)
        """
        self.observers.append(observer)
        self.logger.info("observer_subscribed", observer=getattr(observer, "__name__", repr(observer)))

    def _notify_observers(self, event: str, data: Dict[str, Any]):
        """Notify all observers of an event"""
        for observer in self.observers:
            try:
                observer(event, data)
            except Exception as e:
                self.logger.error(
                    "observer_error",
                    observer=getattr(observer, "__name__", repr(observer)),
                    error=str(e),
                )

    async def scan(
        self,
        url: str,
        active: bool = False,
        client_id: str = DEFAULT_CLIENT_ID,
    ) -> ScanResult:
        """
        Run one scan.

        Args:
            url: Target URL; a missing scheme defaults to https
            active: Enable active probes and the port sweep
            client_id: Caller identity used for rate limiting

        Returns:
            ScanResult (possibly served from cache)

        Raises:
            RateLimitExceeded: If the caller is over its quota
        """
        target = ScanTarget.from_url(url)

        self.rate_limiter.check(client_id)

        cache_key = scan_cache_key(target.host or target.input_url, active)
        cached = self.cache.get(cache_key)
        if cached is not None:
            self.cache_hits += 1
            self.logger.info("cache_hit", key=cache_key, client=client_id)
            self._notify_observers("cache_hit", {"url": target.input_url, "active": active})
            return cached

        self.logger.info(
            "scan_started",
            url=target.input_url,
            active=active,
            client=client_id,
        )
        self._notify_observers("scan_started", {"url": target.input_url, "active": active})

        # Phase 1: Passive transport checks
        redirects_to_https = await self.http_fetcher.trace_redirect_to_https(target.http_probe_url)
        tls = await self.tls_validator.check_ssl(target.https_url)

        supports_https = tls.supports_https and tls.certificate_valid
        analysis_url = target.https_url if supports_https else target.input_url

        # Phase 2: Header hygiene
        fetch = await self.http_fetcher.fetch_headers(analysis_url)
        if fetch.error is not None:
            headers = {ERROR_KEY: fetch.error}
        else:
            headers = analyze_security_headers(fetch.headers)

        final_url = fetch.final_url or analysis_url
        input_surface_detected = has_query_params(final_url)

        # Phase 3: Active probes (opt-in)
        xss_probe_performed = False
        reflected_xss_suspected = False
        db_error_leakage_suspected = False
        open_ports: List[PortFinding] = []

        if active:
            if input_surface_detected:
                xss_probe_performed = True
                reflected_xss_suspected = (await self.xss_probe.run(final_url)).suspected

            db_error_leakage_suspected = (await self.error_probe.run(final_url)).suspected

            host = extract_host(final_url)
            if host:
                open_ports = await self.port_scanner.scan_common_ports(host)
            else:
                self.logger.warning("port_scan_skipped_no_host", final_url=final_url)

        # Phase 4: Scoring
        score = self.scoring_engine.calculate(
            tls=tls,
            headers=headers,
            redirects_to_https=redirects_to_https,
            active_mode=active,
            input_surface_detected=input_surface_detected,
            db_leak_suspected=db_error_leakage_suspected,
            xss_probed=xss_probe_performed,
            xss_suspected=reflected_xss_suspected,
            open_ports=open_ports,
        )

        result = ScanResult(
            url=target.input_url,
            final_url=fetch.final_url,
            http_status=fetch.status_code,
            redirects_to_https=redirects_to_https,
            active_mode=active,
            input_surface_detected=input_surface_detected,
            db_error_leakage_suspected=db_error_leakage_suspected,
            xss_probe_performed=xss_probe_performed,
            reflected_xss_suspected=reflected_xss_suspected,
            tls=tls,
            headers=headers,
            score=score,
            open_ports=open_ports,
        )

        self.cache.put(cache_key, result)
        self.scans_completed += 1

        self.logger.info(
            "scan_complete",
            url=target.input_url,
            score=score.score,
            risk_level=score.risk_level.value,
            issues=len(score.issues),
            open_ports=len(open_ports),
        )
        self._notify_observers(
            "scan_completed",
            {"url": target.input_url, "active": active, "score": score.score},
        )

        return result

    def get_status(self) -> Dict[str, Any]:
        """
        Get orchestrator statistics.

        Returns:
            Status dictionary
        """
        return {
            "scans_completed": self.scans_completed,
            "cache_hits": self.cache_hits,
            "cached_entries": len(self.cache),
            "rate_limiter": self.rate_limiter.get_stats(),
            "probes": {
                "xss": self.xss_probe.get_statistics(),
                "error_disclosure": self.error_probe.get_statistics(),
            },
        }
