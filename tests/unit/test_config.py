"""
Tests for core.config module.
"""
import pytest

from core.config import (
    AppConfig,
    ConfigurationError,
    ForecastConfig,
    InsightsConfig,
    validate_config,
)


class TestDefaults:

    def test_forecast_defaults(self):
        fc = ForecastConfig()
        assert fc.horizon_quarters == 4
        assert fc.scenario_multipliers == {"conservative": 0.85, "baseline": 1.0, "optimistic": 1.15}
        assert fc.confidence_band == 0.15
        assert fc.service_share == 0.70
        assert fc.cache_read_limit == 20

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("FORECAST_CACHE_TTL_HOURS", "6")
        monkeypatch.setenv("FORECAST_SPLIT_MODE", "historical")
        fc = ForecastConfig()
        assert fc.cache_ttl_hours == 6
        assert fc.split_mode == "historical"

    def test_insights_enabled_flag(self, monkeypatch):
        monkeypatch.setenv("INSIGHTS_ENABLED", "false")
        assert InsightsConfig().enabled is False

    def test_frozen(self):
        with pytest.raises(Exception):
            ForecastConfig().horizon_quarters = 8


class TestValidateConfig:

    def test_defaults_valid(self, monkeypatch):
        monkeypatch.delenv("FORECAST_SPLIT_MODE", raising=False)
        monkeypatch.delenv("FORECAST_CACHE_TTL_HOURS", raising=False)
        validate_config(AppConfig())

    def test_lists_every_problem(self):
        bad = AppConfig(
            forecast=ForecastConfig(
                split_mode="weighted",
                cache_ttl_hours=0,
                scenario_multipliers={"optimistic": 1.15},
            )
        )

        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(bad)

        message = str(exc_info.value)
        assert "FORECAST_SPLIT_MODE" in message
        assert "FORECAST_CACHE_TTL_HOURS" in message
        assert "baseline" in message

    def test_missing_api_key_is_not_an_error(self):
        validate_config(AppConfig(insights=InsightsConfig(anthropic_api_key="")))
