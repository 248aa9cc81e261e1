"""
Unit tests for settings loading.

Run with: pytest tests/unit/test_config.py -v
"""

import pytest
from webaudit.config import CONFIG_ENV_VAR, ConfigError, ScanSettings, load_settings


class TestLoadSettings:
    """Test suite for load_settings"""

    def test_defaults_without_file(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

        settings = load_settings()

        assert settings == ScanSettings()
        assert settings.rate_limit.max_requests == 10
        assert settings.cache.ttl_seconds == 120.0
        assert settings.port_scan.deadline_seconds == 12.0

    def test_partial_yaml_keeps_defaults(self, tmp_path):
        path = tmp_path / "webaudit.yaml"
        path.write_text("rate_limit:\n  max_requests: 5\nport_scan:\n  workers: 4\n")

        settings = load_settings(path)

        assert settings.rate_limit.max_requests == 5
        assert settings.rate_limit.window_seconds == 60.0
        assert settings.port_scan.workers == 4
        assert settings.port_scan.connect_permits == 12

    def test_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("cache:\n  ttl_seconds: 30\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert load_settings().cache.ttl_seconds == 30.0

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_settings(path) == ScanSettings()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "nope.yaml")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("port_scan:\n  connect_permits: 0\n")

        with pytest.raises(ConfigError, match="Invalid"):
            load_settings(path)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
