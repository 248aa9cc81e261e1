"""
Unit tests for URL helpers.

Run with: pytest tests/unit/test_urls.py -v
"""

import pytest
from webaudit.urls import (
    ScanTarget,
    extract_host,
    has_query_params,
    is_https,
    mutate_first_param,
    normalize_url,
    to_http,
    to_https,
)


class TestNormalization:
    """Test suite for URL normalization"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("example.com", "https://example.com"),
            ("  example.com/path  ", "https://example.com/path"),
            ("http://example.com", "http://example.com"),
            ("HTTPS://Example.com", "HTTPS://Example.com"),
        ],
    )
    def test_normalize_url(self, raw, expected):
        assert normalize_url(raw) == expected

    def test_scheme_swaps(self):
        assert to_https("http://a.test/x?y=1") == "https://a.test/x?y=1"
        assert to_http("https://a.test") == "http://a.test"
        assert to_http("a.test") == "http://a.test"
        assert is_https("HTTPS://a.test")
        assert not is_https("http://a.test")
        assert not is_https(None)

    def test_scan_target(self):
        target = ScanTarget.from_url("Shop.Example.com/item?id=7")

        assert target.input_url == "https://Shop.Example.com/item?id=7"
        assert target.http_probe_url == "http://Shop.Example.com/item?id=7"
        assert target.https_url == "https://Shop.Example.com/item?id=7"
        assert target.host == "shop.example.com"


class TestHostAndQuery:
    """Test suite for host extraction and query handling"""

    def test_extract_host(self):
        assert extract_host("https://a.test:8443/x") == "a.test"
        assert extract_host("") is None
        assert extract_host("https:///nohost") is None

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://a.test/?q=1", True),
            ("https://a.test/p?", False),
            ("https://a.test/p", False),
            (None, False),
        ],
    )
    def test_has_query_params(self, url, expected):
        assert has_query_params(url) is expected

    def test_mutate_first_param_only(self):
        assert mutate_first_param("https://x.test/p?id=1&q=a", "'") == "https://x.test/p?id=1%27&q=a"

    def test_mutate_decodes_before_encoding(self):
        assert mutate_first_param("https://x.test/s?q=red+shoes", "_m") == "https://x.test/s?q=red+shoes_m"

    def test_mutate_parameter_without_value(self):
        assert mutate_first_param("https://x.test/s?flag", "X") == "https://x.test/s?flag=X"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
