"""
HTTP Fetcher - Header capture and HTTP to HTTPS redirect tracing.

Two passive operations against the target:
1. trace_redirect_to_https(): follows redirects by hand from the http:// URL
   and reports whether any hop lands on https://
2. fetch_headers(): HEAD (GET when HEAD is rejected) with redirects followed,
   returning lower-cased response headers and the final URL
"""

import asyncio
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

import aiohttp
import structlog
from yarl import URL

from .base_scanner import open_session
from ..config import HttpSettings
from ..urls import is_https


HEAD_REJECTED_STATUSES = (405, 501)

FETCH_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)


@dataclass
class HttpFetchResult:
    """Response metadata from one header fetch"""
    status_code: int
    final_url: str
    headers: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "final_url": self.final_url,
            "headers": dict(self.headers),
            "error": self.error,
        }


def normalize_headers(raw) -> Dict[str, str]:
    """Lower-case header names, keeping the first value of repeated headers"""
    normalized: Dict[str, str] = {}
    for name, value in raw.items():
        if not name or value is None:
            continue
        normalized.setdefault(name.lower(), value)
    return normalized


class HttpFetcher:
    """
    Passive HTTP client for the scan pipeline.

    Example:
        >>> fetcher = HttpFetcher()
        >>> await fetcher.trace_redirect_to_https("http://example.com")
        True
        >>> result = await fetcher.fetch_headers("https://example.com")
        >>> result.headers["content-type"]
        'text/html; charset=UTF-8'
    """

    def __init__(self, settings: Optional[HttpSettings] = None):
        self.settings = settings or HttpSettings()
        self.logger = structlog.get_logger(__name__)

    async def fetch_headers(self, url: str) -> HttpFetchResult:
        """
        Fetch response headers, following redirects.

        Returns:
            HttpFetchResult; on failure status_code is 0 and error is set
        """
        try:
            async with open_session(self.settings, self.settings.get_timeout) as session:
                result = await self._request(session, "HEAD", url, self.settings.head_timeout)

                if result.status_code in HEAD_REJECTED_STATUSES:
                    self.logger.debug("head_rejected", url=url, status=result.status_code)
                    result = await self._request(session, "GET", url, self.settings.get_timeout)

        except FETCH_ERRORS as e:
            cause = str(e) or type(e).__name__
            self.logger.warning("header_fetch_failed", url=url, error=cause)
            return HttpFetchResult(
                status_code=0,
                final_url=url,
                error=f"connection error: {cause}",
            )

        self.logger.info(
            "header_fetch_complete",
            url=url,
            final_url=result.final_url,
            status=result.status_code,
        )
        return result

    async def _request(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        timeout: float,
    ) -> HttpFetchResult:
        async with session.request(
            method,
            url,
            allow_redirects=True,
            max_redirects=self.settings.max_redirects,
            timeout=aiohttp.ClientTimeout(total=timeout, connect=self.settings.connect_timeout),
        ) as response:
            return HttpFetchResult(
                status_code=response.status,
                final_url=str(response.url),
                headers=normalize_headers(response.headers),
            )

    async def trace_redirect_to_https(self, http_url: str) -> bool:
        """
        Follow redirects manually and report whether HTTPS is ever reached.

        Tracing stops at the first https:// hop, at a non-redirect response,
        at a redirect without Location, or after max_redirects hops. A
        transport failure ends the trace with what was observed so far.

        Args:
            http_url: Starting URL (normally the http:// variant of the target)

        Returns:
            True if the start URL or any redirect hop uses https
        """
        if is_https(http_url):
            return True

        try:
            current = URL(http_url)
        except (TypeError, ValueError):
            return False

        try:
            async with open_session(self.settings, self.settings.get_timeout) as session:
                for hop in range(self.settings.max_redirects):
                    async with session.get(
                        current,
                        allow_redirects=False,
                        headers={"Accept": "*/*"},
                    ) as response:
                        status = response.status
                        location = response.headers.get("Location")

                    if not 300 <= status < 400 or not location:
                        break

                    current = current.join(URL(location))
                    self.logger.debug("redirect_hop", hop=hop + 1, location=str(current))

                    if current.scheme == "https":
                        return True

        except FETCH_ERRORS as e:
            self.logger.warning("redirect_trace_failed", url=http_url, error=str(e))

        return False
