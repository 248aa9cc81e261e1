"""
URL helpers - Target normalization, host extraction and query mutation.

Every component downstream of the orchestrator receives URLs produced here,
so a parseable absolute URL is always available even for inputs like
"example.com".
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote_plus, unquote_plus, urlsplit


HTTP_PREFIX = "http://"
HTTPS_PREFIX = "https://"


def _strip_scheme(url: str) -> Optional[str]:
    lowered = url.lower()
    if lowered.startswith(HTTPS_PREFIX):
        return url[len(HTTPS_PREFIX):]
    if lowered.startswith(HTTP_PREFIX):
        return url[len(HTTP_PREFIX):]
    return None


def normalize_url(url: str) -> str:
    """Trim the input and prepend https:// when no http(s) scheme is present"""
    u = (url or "").strip()
    if _strip_scheme(u) is None:
        u = HTTPS_PREFIX + u
    return u


def to_https(url: str) -> str:
    rest = _strip_scheme(url)
    return HTTPS_PREFIX + (url if rest is None else rest)


def to_http(url: str) -> str:
    rest = _strip_scheme(url)
    return HTTP_PREFIX + (url if rest is None else rest)


def is_https(url: Optional[str]) -> bool:
    return bool(url) and url.lower().startswith(HTTPS_PREFIX)


def extract_host(url: Optional[str]) -> Optional[str]:
    """
    Extract the host name from a URL.

    Returns:
        Lower-cased host, or None when the URL cannot be parsed or has no host
    """
    if not url:
        return None
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host or None


def has_query_params(url: Optional[str]) -> bool:
    """True when the URL carries a non-empty query string (input surface)"""
    if not url or "?" not in url:
        return False
    return url.index("?") < len(url) - 1


def mutate_first_param(url: str, suffix: str) -> str:
    """
    Append a suffix to the value of the first query parameter.

    The value is decoded, extended and form-encoded again. Every other
    parameter is kept byte-for-byte in its original position.

    Example:
        >>> mutate_first_param("https://x.test/p?id=1&q=a", "'")
        "https://x.test/p?id=1%27&q=a"
    """
    base, _, query = url.partition("?")
    first, sep, rest = query.partition("&")
    key, _, value = first.partition("=")

    mutated = quote_plus(unquote_plus(value) + suffix)
    return f"{base}?{key}={mutated}{sep}{rest}"


@dataclass(frozen=True)
class ScanTarget:
    """Normalized view of one scan request target"""
    input_url: str
    http_probe_url: str
    https_url: str
    host: Optional[str]

    @classmethod
    def from_url(cls, url: str) -> "ScanTarget":
        input_url = normalize_url(url)
        return cls(
            input_url=input_url,
            http_probe_url=to_http(input_url),
            https_url=to_https(input_url),
            host=extract_host(input_url),
        )
