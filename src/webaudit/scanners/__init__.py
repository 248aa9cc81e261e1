"""
Scanner components module.

Every network-facing check of a scan lives here. Each component returns a
result value and absorbs its own transport failures.

Available components:
- TlsValidator: Certificate presence and expiry
- HttpFetcher: Header capture and HTTP to HTTPS redirect tracing
- analyze_security_headers: Security header classification
- ErrorDisclosureProbe: Database error leakage (active)
- ReflectedMarkerProbe: Reflected input detection (active)
- PortScanner: Concurrent common-port sweep (active)
"""

from .base_scanner import (
    BaseProbe,
    ProbeOutcome,
    SeverityLevel,
)

from .tls_validator import TlsValidator, TlsFinding
from .http_fetch import HttpFetcher, HttpFetchResult
from .header_analyzer import analyze_security_headers, is_error_snapshot
from .error_disclosure import ErrorDisclosureProbe, find_db_error_signature
from .xss_scanner import ReflectedMarkerProbe
from .port_scanner import PortScanner, PortFinding, PortProfile, PortState


__all__ = [
    # Base classes
    "BaseProbe",
    "ProbeOutcome",
    "SeverityLevel",
    # Passive checks
    "TlsValidator",
    "TlsFinding",
    "HttpFetcher",
    "HttpFetchResult",
    "analyze_security_headers",
    "is_error_snapshot",
    # Active probes
    "ErrorDisclosureProbe",
    "find_db_error_signature",
    "ReflectedMarkerProbe",
    # Port sweep
    "PortScanner",
    "PortFinding",
    "PortProfile",
    "PortState",
]
