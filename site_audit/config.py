"""
Configuration for site audit.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from site_audit.core.exceptions import ConfigurationError


BROWSER_TYPES = ("chromium", "firefox", "webkit")
REPORT_FORMATS = ("markdown", "json")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AuditConfig:
    """Конфигурация запуска проверок."""

    # === Execution Settings ===
    max_parallel: int = field(default_factory=lambda: _env_int("SITE_AUDIT_MAX_PARALLEL", 4))
    default_timeout_seconds: float = field(
        default_factory=lambda: _env_float("SITE_AUDIT_TIMEOUT_SECONDS", 30.0)
    )
    timeout_factor: float = field(default_factory=lambda: _env_float("SITE_AUDIT_TIMEOUT_FACTOR", 2.0))

    # === Fetchers ===
    browser_type: str = field(default_factory=lambda: os.getenv("SITE_AUDIT_BROWSER", "chromium"))
    headless: bool = field(default_factory=lambda: _env_bool("SITE_AUDIT_HEADLESS", True))
    user_agent: Optional[str] = field(default_factory=lambda: os.getenv("SITE_AUDIT_USER_AGENT") or None)
    verify_tls: bool = field(default_factory=lambda: _env_bool("SITE_AUDIT_VERIFY_TLS", True))

    # === Report Settings ===
    report_output_dir: Path = field(
        default_factory=lambda: Path(os.getenv("SITE_AUDIT_REPORT_DIR", "audit_reports"))
    )
    report_format: str = "markdown"

    def __post_init__(self):
        """Validate configuration."""
        self.report_output_dir = Path(self.report_output_dir)

        if self.max_parallel < 0:
            raise ConfigurationError("max_parallel must not be negative")
        if self.default_timeout_seconds <= 0:
            raise ConfigurationError("default_timeout_seconds must be positive")
        if self.timeout_factor < 1:
            raise ConfigurationError("timeout_factor must be at least 1")
        if self.browser_type not in BROWSER_TYPES:
            raise ConfigurationError(
                f"unknown browser type {self.browser_type!r}, expected one of {', '.join(BROWSER_TYPES)}"
            )
        if self.report_format not in REPORT_FORMATS:
            raise ConfigurationError(
                f"unknown report format {self.report_format!r}, expected one of {', '.join(REPORT_FORMATS)}"
            )


def get_default_config() -> AuditConfig:
    """Получить конфигурацию по умолчанию."""
    return AuditConfig()
