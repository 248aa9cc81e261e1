"""
Integration test for full scanning pipeline.

This test verifies that the entire WEBAUDIT pipeline works end-to-end with
the real components against a deliberately weak local application:
1. Redirect tracing and TLS check (plain HTTP server, so TLS fails)
2. Header fetch and classification
3. Active probes (reflected marker and database error disclosure)
4. Port sweep over a small custom port table
5. Scoring, caching and report rendering

No external hosts are contacted.
"""

import socket

import pytest
from aiohttp import web
from aiohttp import test_utils

from webaudit.config import ScanSettings, TlsSettings
from webaudit.core import ScanOrchestrator
from webaudit.report import generate_report
from webaudit.scanners import PortProfile, PortScanner, SeverityLevel, TlsValidator
from webaudit.scanners.port_scanner import EVIDENCE_HTTP
from webaudit.scoring import RiskLevel


async def item(request):
    """Vulnerable-by-design handler: leaks SQL errors and echoes input"""
    item_id = request.query.get("id", "")
    if "'" in item_id:
        return web.Response(
            text="Warning: You have an error in your SQL syntax near ''7'''",
            status=500,
        )
    return web.Response(
        text=f"<html><body><p>Item {item_id}</p></body></html>",
        content_type="text/html",
        headers={
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "SAMEORIGIN",
        },
    )


def closed_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def build_orchestrator(app_port):
    settings = ScanSettings(tls=TlsSettings(timeout=3))
    profiles = [
        PortProfile(
            app_port, "Test HTTP", 1.0, 1.0, SeverityLevel.LOW,
            "impact", "recommendation", EVIDENCE_HTTP,
        ),
        PortProfile(
            closed_port(), "Test Closed", 1.0, 1.0, SeverityLevel.HIGH,
            "impact", "recommendation",
        ),
    ]
    return ScanOrchestrator(
        settings=settings,
        tls_validator=TlsValidator(settings.tls),
        port_scanner=PortScanner(settings.port_scan, profiles=profiles),
    )


@pytest.mark.integration
@pytest.mark.asyncio
async def test_full_scanning_pipeline():
    """
    Test complete scanning pipeline: Passive checks -> Active probes -> Ports -> Score
    """
    app = web.Application()
    app.router.add_get("/item", item)
    server = test_utils.TestServer(app)
    await server.start_server()
    port = server.port

    try:
        target = str(server.make_url("/item?id=7&q=x"))
        orchestrator = build_orchestrator(port)
        events = []
        orchestrator.subscribe(lambda event, data: events.append(event))

        result = await orchestrator.scan(target, active=True, client_id="127.0.0.1")
        again = await orchestrator.scan(target, active=True, client_id="127.0.0.1")
    finally:
        await server.close()

    # Transport
    assert result.redirects_to_https is False
    assert result.tls.supports_https is True
    assert result.tls.certificate_valid is False
    assert result.tls.message.startswith("error verifying certificate: ")

    # Headers
    assert result.http_status == 200
    assert result.headers["Strict-Transport-Security"] == "MISSING"
    assert result.headers["X-Content-Type-Options"] == "OK (nosniff)"
    assert result.headers["X-Frame-Options"] == "WEAK (SAMEORIGIN)"

    # Active probes
    assert result.input_surface_detected is True
    assert result.xss_probe_performed is True
    assert result.reflected_xss_suspected is True
    assert result.db_error_leakage_suspected is True

    # Ports
    assert [f.port for f in result.open_ports] == [port]
    assert result.open_ports[0].evidence.startswith("HTTP/1.1 ")

    # Score
    assert result.score.score == 0
    assert result.score.risk_level is RiskLevel.CRITICAL
    assert result.score.issue_ids == [
        "SSL_INVALID",
        "HSTS_MISSING",
        "CSP_MISSING",
        "CLICKJACKING_RISK",
        "DB_ERROR_LEAKAGE_SUSPECTED",
        "REFLECTED_XSS_SUSPECTED",
    ]
    assert list(result.score.notes) == [
        "Invalid/expired certificate or check error: -35",
        "HSTS missing: -10",
        "Content-Security-Policy missing: -10",
        "X-Frame-Options weak: -5",
        "Input surface detected (URL parameters): INFO",
        "Possible database/SQL error disclosure (active mode): -15",
        "Reflected XSS suspected (marker reflected in HTML): -25",
        f"Open port {port} (Test HTTP): INFO",
    ]

    # Cache
    assert again is result
    assert events == ["scan_started", "scan_completed", "cache_hit"]

    report = generate_report(result)
    assert "Score: 0/100 (CRITICAL)" in report
    assert "- Reflected XSS suspected (marker reflected) [REFLECTED_XSS_SUSPECTED]" in report


@pytest.mark.integration
@pytest.mark.asyncio
async def test_passive_scan_sends_no_probes():
    """Test passive mode only issues the redirect trace and the header fetch"""
    requests = []

    async def recorder(request):
        requests.append((request.method, dict(request.query)))
        return await item(request)

    app = web.Application()
    app.router.add_get("/item", recorder)
    server = test_utils.TestServer(app)
    await server.start_server()

    try:
        orchestrator = build_orchestrator(server.port)
        result = await orchestrator.scan(str(server.make_url("/item?id=7")), active=False)
    finally:
        await server.close()

    assert requests == [("GET", {"id": "7"}), ("HEAD", {"id": "7"})]
    assert result.open_ports == ()
    assert result.score.score == 40
    assert result.score.risk_level is RiskLevel.CRITICAL


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
