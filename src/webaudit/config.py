"""
Configuration - Static tuning knobs for the scan pipeline.

Quotas, TTLs, timeouts and port-scan concurrency limits all live here so the
scanning components only ever read them. Settings can be loaded from a YAML
file; anything not given in the file keeps its default.

Example YAML:
    rate_limit:
      max_requests: 5
      window_seconds: 30
    port_scan:
      workers: 16
      connect_permits: 8
"""

import os
from pathlib import Path
from typing import Optional, Union

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError

from . import WebAuditError


CONFIG_ENV_VAR = "WEBAUDIT_CONFIG"

logger = structlog.get_logger(__name__)


class ConfigError(WebAuditError):
    """Raised when a configuration file cannot be read or validated"""
    pass


class RateLimitSettings(BaseModel):
    """Fixed-window quota per client identity"""
    max_requests: int = Field(default=10, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)


class CacheSettings(BaseModel):
    """Scan result cache"""
    ttl_seconds: float = Field(default=120.0, gt=0)


class HttpSettings(BaseModel):
    """HTTP client behavior for fetches, redirect tracing and probes"""
    user_agent: str = "WEBAUDIT/1.0 Security Scanner"
    connect_timeout: float = Field(default=8.0, gt=0)
    head_timeout: float = Field(default=10.0, gt=0)
    get_timeout: float = Field(default=12.0, gt=0)
    probe_timeout: float = Field(default=12.0, gt=0)
    max_redirects: int = Field(default=10, ge=0)


class TlsSettings(BaseModel):
    """Certificate check"""
    timeout: float = Field(default=8.0, gt=0)


class PortScanSettings(BaseModel):
    """Port sweep concurrency and deadline"""
    workers: int = Field(default=24, ge=1)
    connect_permits: int = Field(default=12, ge=1)
    deadline_seconds: float = Field(default=12.0, gt=0)
    timeout_backoff_threshold: int = Field(default=4, ge=1)
    timeout_backoff_extra: float = Field(default=0.4, ge=0)
    evidence_max_length: int = Field(default=160, ge=16)


class ScanSettings(BaseModel):
    """Top-level settings for a scan orchestrator"""
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    tls: TlsSettings = Field(default_factory=TlsSettings)
    port_scan: PortScanSettings = Field(default_factory=PortScanSettings)


def load_settings(path: Optional[Union[str, Path]] = None) -> ScanSettings:
    """
    Load settings from a YAML file.

    Args:
        path: Path to a YAML file. Falls back to the WEBAUDIT_CONFIG
            environment variable; with neither, defaults are returned.

    Returns:
        Validated ScanSettings

    Raises:
        ConfigError: If the file is unreadable, not a mapping, or invalid
    """
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return ScanSettings()

    config_path = Path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    try:
        settings = ScanSettings.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e

    logger.info("settings_loaded", path=str(config_path))
    return settings
