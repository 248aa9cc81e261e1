"""
TLS Validator - Certificate presence and expiry check.

Opens one verified TLS connection (system trust store, hostname checking) to
the target and reads the leaf certificate's expiry. Every failure is encoded
in the returned TlsFinding; nothing is raised past check_ssl().
"""

import asyncio
import ssl
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit
from dataclasses import dataclass

import structlog

from ..config import TlsSettings
from ..urls import is_https


def utc_today() -> date:
    """Current date in UTC, the frame certificate expiry is expressed in"""
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class TlsFinding:
    """Outcome of the certificate check"""
    supports_https: bool
    certificate_valid: bool
    expiration_date: Optional[date] = None
    days_remaining: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "supports_https": self.supports_https,
            "certificate_valid": self.certificate_valid,
            "expiration_date": self.expiration_date.isoformat() if self.expiration_date else None,
            "days_remaining": self.days_remaining,
            "message": self.message,
        }


class TlsValidator:
    """
    Certificate validator.

    Example:
        >>> validator = TlsValidator()
        >>> finding = await validator.check_ssl("https://example.com")
        >>> finding.certificate_valid, finding.days_remaining
        (True, 74)
    """

    def __init__(
        self,
        settings: Optional[TlsSettings] = None,
        today: Callable[[], date] = utc_today,
    ):
        """
        Args:
            settings: TLS check settings (timeout)
            today: Source of the current UTC date, used for expiry arithmetic
        """
        self.settings = settings or TlsSettings()
        self._today = today
        self.logger = structlog.get_logger(__name__)

    async def check_ssl(self, url: Optional[str]) -> TlsFinding:
        """
        Check the certificate served for an https URL.

        Args:
            url: Target URL; non-https URLs are answered without network I/O

        Returns:
            TlsFinding describing the certificate
        """
        if not url or not url.strip():
            return TlsFinding(False, False, message="empty URL")

        if not is_https(url):
            return TlsFinding(False, False, message="site does not use HTTPS")

        try:
            parts = urlsplit(url)
            host = parts.hostname
            if not host:
                raise ValueError(f"no host in {url!r}")
            port = parts.port or 443

            cert = await asyncio.wait_for(
                self._fetch_certificate(host, port),
                timeout=self.settings.timeout,
            )
            expiration = self._not_after(cert)

        except (OSError, ssl.SSLError, asyncio.TimeoutError, ValueError, KeyError) as e:
            cause = str(e) or type(e).__name__
            self.logger.warning("tls_check_failed", url=url, error=cause)
            return TlsFinding(
                True,
                False,
                message=f"error verifying certificate: {cause}",
            )

        days_remaining = (expiration - self._today()).days
        valid = days_remaining > 0

        self.logger.info(
            "tls_check_complete",
            host=host,
            expires=expiration.isoformat(),
            days_remaining=days_remaining,
        )

        return TlsFinding(
            supports_https=True,
            certificate_valid=valid,
            expiration_date=expiration,
            days_remaining=days_remaining,
            message="certificate valid" if valid else "certificate expired",
        )

    async def _fetch_certificate(self, host: str, port: int) -> Dict[str, Any]:
        """Complete a verified handshake and return the decoded leaf certificate"""
        context = ssl.create_default_context()
        reader, writer = await asyncio.open_connection(
            host, port, ssl=context, server_hostname=host
        )
        try:
            cert = writer.get_extra_info("peercert")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, ssl.SSLError):
                pass

        if not cert:
            raise ValueError("server presented no certificate")
        return cert

    @staticmethod
    def _not_after(cert: Dict[str, Any]) -> date:
        seconds = ssl.cert_time_to_seconds(cert["notAfter"])
        return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
