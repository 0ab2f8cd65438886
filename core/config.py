"""
Centralized configuration for the Growth Forecast service.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from core.config import config

    ttl = config.forecast.cache_ttl_hours
    api_key = config.insights.anthropic_api_key
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class StoreConfig:
    """DuckDB store configuration."""

    db_path: Path = field(
        default_factory=lambda: Path(
            os.getenv("FORECAST_DB_PATH", str(PROJECT_ROOT / "data" / "forecast.duckdb"))
        )
    )
    query_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("STORE_QUERY_TIMEOUT", "30"))
    )


@dataclass(frozen=True)
class ForecastConfig:
    """Growth forecast engine configuration."""

    horizon_quarters: int = 4
    scenario_multipliers: Dict[str, float] = field(default_factory=lambda: {
        "conservative": 0.85,
        "baseline": 1.0,
        "optimistic": 1.15,
    })

    # Flat +/- band around each projection (display heuristic, not a statistical interval)
    confidence_band: float = 0.15

    # Service share of projected revenue; product gets the remainder
    service_share: float = 0.70
    split_mode: str = field(default_factory=lambda: os.getenv("FORECAST_SPLIT_MODE", "fixed"))

    cache_ttl_hours: int = field(
        default_factory=lambda: int(os.getenv("FORECAST_CACHE_TTL_HOURS", "24"))
    )
    cache_read_limit: int = 20


@dataclass(frozen=True)
class InsightsConfig:
    """Narrative insight (LLM) configuration."""

    anthropic_api_key: str = field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""))
    model: str = field(
        default_factory=lambda: os.getenv("INSIGHTS_MODEL", "claude-sonnet-4-20250514")
    )
    enabled: bool = field(default_factory=lambda: _env_bool("INSIGHTS_ENABLED", "true"))
    timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("INSIGHTS_TIMEOUT", "15"))
    )
    max_tokens: int = 600


@dataclass(frozen=True)
class WebConfig:
    """HTTP service configuration."""

    host: str = field(default_factory=lambda: os.getenv("WEB_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("WEB_PORT", "8080")))

    # Rate limiting
    forecast_rate_limit: str = "30/minute"
    health_rate_limit: str = "60/minute"

    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass(frozen=True)
class SchedulerConfig:
    """Background maintenance jobs."""

    enabled: bool = field(default_factory=lambda: _env_bool("SCHEDULER_ENABLED", "true"))
    purge_interval_minutes: int = 60
    timezone: str = "UTC"


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    store: StoreConfig = field(default_factory=StoreConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    insights: InsightsConfig = field(default_factory=InsightsConfig)
    web: WebConfig = field(default_factory=WebConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


# Global config instance
config = AppConfig()

VERSION = config.version


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(app_config: AppConfig = config) -> None:
    """
    Validate configuration values.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures. A missing Anthropic key is not an
    error: insights fall back to rule-based text.

    Raises:
        ConfigurationError: If any value is invalid
    """
    errors = []
    fc = app_config.forecast

    if fc.horizon_quarters < 1:
        errors.append("forecast.horizon_quarters must be at least 1")

    if "baseline" not in fc.scenario_multipliers:
        errors.append("forecast.scenario_multipliers must include 'baseline'")

    if any(m <= 0 for m in fc.scenario_multipliers.values()):
        errors.append("forecast.scenario_multipliers must all be positive")

    if not 0 <= fc.confidence_band < 1:
        errors.append("forecast.confidence_band must be in [0, 1)")

    if not 0 <= fc.service_share <= 1:
        errors.append("forecast.service_share must be in [0, 1]")

    if fc.split_mode not in ("fixed", "historical"):
        errors.append(f"FORECAST_SPLIT_MODE must be 'fixed' or 'historical' (got {fc.split_mode!r})")

    if fc.cache_ttl_hours <= 0:
        errors.append("FORECAST_CACHE_TTL_HOURS must be positive")

    if app_config.insights.timeout_seconds <= 0:
        errors.append("INSIGHTS_TIMEOUT must be positive")

    if app_config.store.query_timeout_seconds <= 0:
        errors.append("STORE_QUERY_TIMEOUT must be positive")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
