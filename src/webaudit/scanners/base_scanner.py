"""
Base Probe - Shared interface for the active, URL-mutating probes.

Active probes send exactly one extra request against a URL that carries query
parameters. They report an explicit outcome instead of raising, so a failing
probe degrades to "not suspected" and never aborts a scan.

Design Pattern: Strategy Pattern
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass
from enum import Enum

import aiohttp
import structlog
from yarl import URL

from ..config import HttpSettings
from ..urls import has_query_params


class SeverityLevel(Enum):
    """Severity attached to issues and port findings"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


@dataclass(frozen=True)
class ProbeOutcome:
    """
    Result of one probe run.

    degraded=True means the probe could not complete (network error,
    timeout) and `suspected` is only the safe default.
    """
    suspected: bool
    degraded: bool = False
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suspected": self.suspected,
            "degraded": self.degraded,
            "detail": self.detail,
        }


def open_session(settings: HttpSettings, total_timeout: float) -> aiohttp.ClientSession:
    """Create a client session with the scanner's identity and timeouts"""
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(
            total=total_timeout,
            connect=settings.connect_timeout,
        ),
        headers={"User-Agent": settings.user_agent},
    )


class BaseProbe(ABC):
    """
    Abstract base class for active probes.

    Subclasses implement probe(); callers use run(), which handles the
    no-input-surface short circuit, transport failures and statistics.

    Example:
        >>> class MyProbe(BaseProbe):
        ...     async def probe(self, url):
        ...         body = await self.fetch_body(url)
        ...         return ProbeOutcome(suspected="marker" in body)

        >>> outcome = await MyProbe("MyProbe").run("https://x.test/?q=1")
    """

    ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

    def __init__(
        self,
        probe_name: str,
        settings: Optional[HttpSettings] = None,
        enabled: bool = True,
    ):
        """
        Initialize the base probe.

        Args:
            probe_name: Name of the probe (e.g., "ReflectedMarkerProbe")
            settings: HTTP client settings
            enabled: Whether this probe is enabled
        """
        self.probe_name = probe_name
        self.settings = settings or HttpSettings()
        self.enabled = enabled

        # Statistics
        self.probed_count = 0
        self.suspected_count = 0
        self.degraded_count = 0

        self.logger = structlog.get_logger(
            __name__,
            probe=self.probe_name
        )

    @abstractmethod
    async def probe(self, url: str) -> ProbeOutcome:
        """
        Send the mutated request and evaluate the response.

        Only called for URLs that carry query parameters. May raise
        transport errors; run() converts them into a degraded outcome.
        """
        pass

    async def run(self, url: str) -> ProbeOutcome:
        """
        Run the probe against a URL.

        Returns:
            ProbeOutcome, never raises for transport failures
        """
        if not self.enabled:
            return ProbeOutcome(suspected=False, detail="probe disabled")

        if not has_query_params(url):
            self.logger.debug("probe_skipped_no_parameters", url=url)
            return ProbeOutcome(suspected=False, detail="no query parameters")

        try:
            outcome = await self.probe(url)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            self.logger.warning(
                "probe_failed",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            outcome = ProbeOutcome(
                suspected=False,
                degraded=True,
                detail=f"{type(e).__name__}: {e}",
            )

        self.probed_count += 1
        if outcome.suspected:
            self.suspected_count += 1
            self.logger.info("probe_positive", url=url, detail=outcome.detail)
        if outcome.degraded:
            self.degraded_count += 1

        return outcome

    async def fetch_body(self, url: str) -> str:
        """
        GET an already-encoded URL and return its body as text.

        Redirects are followed; the URL is not re-quoted.
        """
        async with open_session(self.settings, self.settings.probe_timeout) as session:
            async with session.get(
                URL(url, encoded=True),
                headers={"Accept": self.ACCEPT},
                allow_redirects=True,
            ) as response:
                return await response.text(errors="replace")

    def get_statistics(self) -> Dict[str, int]:
        """
        Get probe statistics.

        Returns:
            Dictionary with probed, suspected and degraded counts
        """
        return {
            "probed": self.probed_count,
            "suspected": self.suspected_count,
            "degraded": self.degraded_count,
        }

    def reset_statistics(self):
        """Reset probe statistics"""
        self.probed_count = 0
        self.suspected_count = 0
        self.degraded_count = 0

    def __repr__(self) -> str:
        """String representation"""
        return (
            f"{self.probe_name}("
            f"enabled={self.enabled}, "
            f"probed={self.probed_count}, "
            f"suspected={self.suspected_count})"
        )
