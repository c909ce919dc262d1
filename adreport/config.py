"""
Centralized configuration for the ad reporting backend.

Configuration is loaded from environment variables (and a local .env file)
with defaults that match the production dashboard.

Usage:
    from adreport.config import config

    window = config.attribution.late_window_days
    db_path = config.storage.db_path
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_raw(name: str) -> str:
    return os.getenv(name, "").strip()


def _is_int(raw: str) -> bool:
    try:
        int(raw)
    except ValueError:
        return False
    return True


def _env_int(name: str, default: int) -> int:
    # Unparsable values fall back here and are reported by validate_config()
    raw = _env_raw(name)
    if not raw or not _is_int(raw):
        return default
    return int(raw)


@dataclass(frozen=True)
class StorageConfig:
    """DuckDB storage configuration."""

    db_path: str = field(
        default_factory=lambda: os.getenv("ADREPORT_DB_PATH", "data/adreport.duckdb")
    )
    query_timeout: float = 30.0  # seconds


@dataclass(frozen=True)
class AttributionConfig:
    """Sales attribution settings."""

    # Days after an ad's last active date during which new registrations
    # still count as that ad's late sales
    late_window_days: int = field(
        default_factory=lambda: _env_int("ADREPORT_LATE_WINDOW_DAYS", 7)
    )
    late_window_days_env: str = field(
        default_factory=lambda: _env_raw("ADREPORT_LATE_WINDOW_DAYS")
    )


@dataclass(frozen=True)
class DashboardConfig:
    """Dashboard summary settings."""

    top_campaigns_limit: int = 5
    recent_events_limit: int = 6
    currency_symbol: str = field(
        default_factory=lambda: os.getenv("ADREPORT_CURRENCY_SYMBOL", "$")
    )


@dataclass(frozen=True)
class ChannelConfig:
    """Ad channel display configuration."""

    # Account rows are labelled by channel when one is known
    account_labels: Dict[str, str] = field(default_factory=lambda: {
        "facebook": "Facebook Ads",
        "google": "Google Ads",
        "tiktok": "TikTok Ads",
    })

    def account_label(self, channel: str, default: str) -> str:
        """Get display label for an ad account on the given channel."""
        return self.account_labels.get(channel, default)


@dataclass(frozen=True)
class WebConfig:
    """HTTP API configuration."""

    host: str = field(default_factory=lambda: os.getenv("WEB_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("WEB_PORT", 8080))
    port_env: str = field(default_factory=lambda: _env_raw("WEB_PORT"))
    rate_limit_per_minute: int = 30


@dataclass(frozen=True)
class LogConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "text"))

    @property
    def json_format(self) -> bool:
        return self.format == "json"


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    storage: StorageConfig = field(default_factory=StorageConfig)
    attribution: AttributionConfig = field(default_factory=AttributionConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    channels: ChannelConfig = field(default_factory=ChannelConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LogConfig = field(default_factory=LogConfig)


# Global config instance
config = AppConfig()

VALID_LOG_LEVELS: List[str] = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(cfg: AppConfig = config) -> None:
    """
    Validate configuration values.

    Call this on application startup to fail fast with clear error messages
    instead of odd attribution results later.

    Raises:
        ConfigurationError: If any value is invalid
    """
    errors = []

    for name, raw in (
        ("ADREPORT_LATE_WINDOW_DAYS", cfg.attribution.late_window_days_env),
        ("WEB_PORT", cfg.web.port_env),
    ):
        if raw and not _is_int(raw):
            errors.append(f"{name} must be an integer (got {raw!r})")

    if not cfg.storage.db_path:
        errors.append("ADREPORT_DB_PATH must not be empty")

    if cfg.storage.query_timeout <= 0:
        errors.append("Storage query timeout must be positive")

    if cfg.attribution.late_window_days < 0:
        errors.append("ADREPORT_LATE_WINDOW_DAYS must be zero or positive")

    if cfg.dashboard.top_campaigns_limit < 1:
        errors.append("Top campaigns limit must be at least 1")

    if cfg.dashboard.recent_events_limit < 1:
        errors.append("Recent events limit must be at least 1")

    if cfg.logging.level.upper() not in VALID_LOG_LEVELS:
        errors.append(f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}")

    if cfg.logging.format not in ("text", "json"):
        errors.append("LOG_FORMAT must be 'text' or 'json'")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
