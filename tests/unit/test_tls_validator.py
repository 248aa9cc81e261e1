"""
Unit tests for TlsValidator module.

The handshake itself is replaced through _fetch_certificate so expiry math
and failure handling can be checked offline.

Run with: pytest tests/unit/test_tls_validator.py -v
"""

import asyncio
import ssl
from datetime import date, datetime, timedelta, timezone

import pytest
from webaudit.config import TlsSettings
from webaudit.scanners import TlsValidator
from webaudit.scanners.tls_validator import utc_today


CERT = {"notAfter": "Jun  1 12:00:00 2027 GMT"}


class TestTlsValidator:
    """Test suite for TlsValidator class"""

    @pytest.mark.asyncio
    async def test_empty_url(self):
        finding = await TlsValidator().check_ssl("  ")

        assert finding.supports_https is False
        assert finding.certificate_valid is False
        assert finding.message == "empty URL"

    @pytest.mark.asyncio
    async def test_http_url_is_not_checked(self):
        validator = TlsValidator()

        async def must_not_connect(host, port):
            raise AssertionError("no handshake expected")

        validator._fetch_certificate = must_not_connect

        finding = await validator.check_ssl("http://plain.test")

        assert finding.supports_https is False
        assert finding.message == "site does not use HTTPS"

    @pytest.mark.asyncio
    async def test_valid_certificate(self):
        validator = TlsValidator(today=lambda: date(2027, 5, 2))
        calls = []

        async def fake_fetch(host, port):
            calls.append((host, port))
            return CERT

        validator._fetch_certificate = fake_fetch

        finding = await validator.check_ssl("https://shop.test:8443/path")

        assert calls == [("shop.test", 8443)]
        assert finding.supports_https is True
        assert finding.certificate_valid is True
        assert finding.expiration_date == date(2027, 6, 1)
        assert finding.days_remaining == 30
        assert finding.message == "certificate valid"

    @pytest.mark.asyncio
    async def test_expired_certificate(self):
        validator = TlsValidator(today=lambda: date(2027, 6, 11))

        async def fake_fetch(host, port):
            return CERT

        validator._fetch_certificate = fake_fetch

        finding = await validator.check_ssl("https://old.test")

        assert finding.supports_https is True
        assert finding.certificate_valid is False
        assert finding.days_remaining == -10
        assert finding.message == "certificate expired"

    @pytest.mark.asyncio
    async def test_expiry_counted_in_utc_days(self):
        """Test a certificate expiring late in the UTC day counts whole UTC days"""
        expiry = datetime.now(timezone.utc).date() + timedelta(days=3)
        months = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                  "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
        cert = {
            "notAfter": f"{months[expiry.month - 1]} {expiry.day:2d} 23:59:59 {expiry.year} GMT"
        }
        validator = TlsValidator()

        async def fake_fetch(host, port):
            return cert

        validator._fetch_certificate = fake_fetch

        finding = await validator.check_ssl("https://late.test")

        assert finding.expiration_date == expiry
        assert finding.days_remaining == 3
        assert finding.certificate_valid is True

    def test_default_today_is_utc(self):
        assert utc_today() == datetime.now(timezone.utc).date()
        assert TlsValidator()._today is utc_today

    @pytest.mark.asyncio
    async def test_verification_failure(self):
        validator = TlsValidator()

        async def fake_fetch(host, port):
            raise ssl.SSLCertVerificationError("certificate verify failed: self-signed")

        validator._fetch_certificate = fake_fetch

        finding = await validator.check_ssl("https://self-signed.test")

        assert finding.supports_https is True
        assert finding.certificate_valid is False
        assert finding.expiration_date is None
        assert finding.days_remaining == 0
        assert finding.message.startswith("error verifying certificate: ")
        assert "self-signed" in finding.message

    @pytest.mark.asyncio
    async def test_timeout(self):
        validator = TlsValidator(TlsSettings(timeout=0.05))

        async def slow_fetch(host, port):
            await asyncio.sleep(5)

        validator._fetch_certificate = slow_fetch

        finding = await validator.check_ssl("https://slow.test")

        assert finding.certificate_valid is False
        assert finding.message == "error verifying certificate: TimeoutError"

    @pytest.mark.asyncio
    async def test_malformed_certificate(self):
        validator = TlsValidator()

        async def fake_fetch(host, port):
            return {"subject": ()}

        validator._fetch_certificate = fake_fetch

        finding = await validator.check_ssl("https://odd.test")

        assert finding.supports_https is True
        assert finding.certificate_valid is False

    def test_to_dict(self):
        from webaudit.scanners import TlsFinding

        data = TlsFinding(True, True, date(2027, 1, 1), 40, "certificate valid").to_dict()

        assert data["expiration_date"] == "2027-01-01"
        assert data["days_remaining"] == 40


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
