"""
Header Analyzer - Classifies the four security headers the score depends on.

Each header gets a status string that starts with one of OK, MISSING, WEAK or
UNKNOWN, optionally followed by the observed value in parentheses.
"""

from typing import Dict, Mapping

HSTS = "Strict-Transport-Security"
CONTENT_TYPE_OPTIONS = "X-Content-Type-Options"
CSP = "Content-Security-Policy"
FRAME_OPTIONS = "X-Frame-Options"

ERROR_KEY = "error"


def is_error_snapshot(headers: Mapping[str, str]) -> bool:
    """True for the {"error": reason} sentinel produced by a failed fetch"""
    return len(headers) == 1 and ERROR_KEY in headers


def analyze_security_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """
    Classify security headers.

    Args:
        headers: Response headers keyed by lower-cased name

    Returns:
        Ordered mapping of canonical header name to status
    """
    return {
        HSTS: _hsts(headers.get("strict-transport-security")),
        CONTENT_TYPE_OPTIONS: _content_type_options(headers.get("x-content-type-options")),
        CSP: _csp(headers.get("content-security-policy")),
        FRAME_OPTIONS: _frame_options(headers.get("x-frame-options")),
    }


def _hsts(value):
    if value is None:
        return "MISSING"
    if "max-age=" in value.lower():
        return f"OK ({value})"
    return f"WEAK ({value})"


def _content_type_options(value):
    if value is None:
        return "MISSING"
    if value.strip().lower() == "nosniff":
        return "OK (nosniff)"
    return f"WEAK ({value})"


def _csp(value):
    if value is None:
        return "MISSING"
    if "default-src" in value:
        return "OK"
    return f"WEAK ({value})"


def _frame_options(value):
    if value is None:
        return "MISSING"
    normalized = value.strip().upper()
    if normalized == "DENY":
        return "OK (DENY)"
    if normalized == "SAMEORIGIN":
        return "WEAK (SAMEORIGIN)"
    return f"UNKNOWN VALUE ({value})"
