"""
Tests for core.growth_metrics module.
"""
import pytest

from core.growth_metrics import (
    classify_momentum,
    fit_quarter_trend,
    linear_regression,
    quarter_growth_rates,
    seasonal_indices,
    year_over_year_growth,
)
from core.models import Momentum

from conftest import make_quarter


class TestLinearRegression:
    """Tests for linear_regression function."""

    def test_perfect_line(self):
        result = linear_regression([0, 1, 2, 3], [10, 12, 14, 16])

        assert result.slope == pytest.approx(2.0)
        assert result.intercept == pytest.approx(10.0)
        assert result.r2 == pytest.approx(1.0)

    def test_noisy_fit(self):
        result = linear_regression([0, 1, 2, 3, 4], [5000, 6000, 5500, 7500, 7000])

        assert result.slope == pytest.approx(550.0)
        assert result.intercept == pytest.approx(5100.0)
        assert 0 < result.r2 < 1

    def test_single_point(self):
        """One quarter: flat line through the value, no fit."""
        result = linear_regression([0], [5000])

        assert result.slope == 0
        assert result.intercept == 5000
        assert result.r2 == 0

    def test_empty(self):
        result = linear_regression([], [])

        assert (result.slope, result.intercept, result.r2) == (0, 0, 0)

    def test_zero_x_variance(self):
        """Identical x values: slope 0, intercept is the mean."""
        result = linear_regression([3, 3, 3], [10, 20, 30])

        assert result.slope == 0
        assert result.intercept == pytest.approx(20.0)
        assert result.r2 == 0

    def test_flat_y_has_zero_r2(self):
        result = linear_regression([0, 1, 2], [100, 100, 100])

        assert result.slope == pytest.approx(0.0)
        assert result.intercept == pytest.approx(100.0)
        assert result.r2 == 0

    def test_large_values_small_variance_keep_r2(self):
        """A real slope on top of a large level still counts as a fit."""
        result = linear_regression([0, 1, 2], [5_000_000.00, 5_000_000.10, 5_000_000.20])

        assert result.slope == pytest.approx(0.1, rel=1e-6)
        assert result.r2 > 0.99

    def test_r2_within_bounds(self):
        result = linear_regression([0, 1, 2, 3], [1, -1, 1, -1])
        assert 0.0 <= result.r2 <= 1.0

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            linear_regression([0, 1], [1])

    def test_predict(self):
        result = linear_regression([0, 1], [10, 20])
        assert result.predict(3) == pytest.approx(40.0)


class TestFitQuarterTrend:
    def test_uses_sequence_index(self, growing_quarters):
        result = fit_quarter_trend(growing_quarters)

        assert result.slope > 0
        assert 0 < result.r2 <= 1

    def test_single_quarter(self):
        result = fit_quarter_trend([make_quarter(2025, 1, 5000)])

        assert result.slope == 0
        assert result.intercept == 5000
        assert result.r2 == 0


class TestQuarterGrowthRates:
    """Tests for quarter_growth_rates function."""

    def test_rates(self):
        quarters = [
            make_quarter(2024, 1, 1000),
            make_quarter(2024, 2, 1200),
            make_quarter(2024, 3, 1100),
            make_quarter(2024, 4, 1500),
        ]

        rates = quarter_growth_rates(quarters)

        assert rates == pytest.approx([20.0, -8.3333, 36.3636], rel=1e-4)

    def test_skips_zero_previous_revenue(self):
        quarters = [
            make_quarter(2024, 1, 0),
            make_quarter(2024, 2, 1000),
            make_quarter(2024, 3, 1500),
        ]

        assert quarter_growth_rates(quarters) == pytest.approx([50.0])

    def test_fewer_than_two_quarters(self):
        assert quarter_growth_rates([]) == []
        assert quarter_growth_rates([make_quarter(2024, 1, 1000)]) == []


class TestSeasonalIndices:
    """Tests for seasonal_indices function."""

    def test_always_four_keys(self, growing_quarters):
        indices = seasonal_indices(growing_quarters)

        assert set(indices) == {1, 2, 3, 4}
        assert indices[4] == max(indices.values())

    def test_mean_of_ratios(self):
        quarters = [
            make_quarter(2024, 1, 100),
            make_quarter(2024, 2, 300),
        ]

        indices = seasonal_indices(quarters)

        assert indices[1] == pytest.approx(0.5)
        assert indices[2] == pytest.approx(1.5)
        assert indices[3] == 1.0
        assert indices[4] == 1.0

    def test_ratios_average_to_one_over_full_years(self, growing_quarters):
        indices = seasonal_indices(growing_quarters)
        assert sum(indices.values()) / 4 == pytest.approx(1.0)

    def test_empty(self):
        assert seasonal_indices([]) == {1: 1.0, 2: 1.0, 3: 1.0, 4: 1.0}

    def test_zero_mean(self):
        quarters = [make_quarter(2024, 1, 0), make_quarter(2024, 2, 0)]
        assert seasonal_indices(quarters) == {1: 1.0, 2: 1.0, 3: 1.0, 4: 1.0}


class TestClassifyMomentum:
    """Tests for classify_momentum function."""

    def test_accelerating(self):
        """Average consecutive change of about +8 points."""
        assert classify_momentum([20.0, -8.33, 36.36]) == Momentum.ACCELERATING

    def test_decelerating(self):
        assert classify_momentum([30.0, 20.0, 5.0]) == Momentum.DECELERATING

    def test_steady(self):
        assert classify_momentum([10.0, 11.0, 10.5]) == Momentum.STEADY

    def test_only_last_three_rates_count(self):
        assert classify_momentum([100.0, 0.0, 10.0, 11.0, 12.0]) == Momentum.STEADY

    def test_threshold_is_exclusive(self):
        assert classify_momentum([10.0, 12.0]) == Momentum.STEADY
        assert classify_momentum([10.0, 12.5]) == Momentum.ACCELERATING

    @pytest.mark.parametrize("rates", [[], [15.0]])
    def test_too_few_rates(self, rates):
        assert classify_momentum(rates) == Momentum.STEADY

    def test_value_is_plain_string(self):
        assert classify_momentum([]).value == "steady"


class TestYearOverYearGrowth:
    """Tests for year_over_year_growth function."""

    def test_same_quarter_prior_year(self, growing_quarters):
        # Q4 2024 (18000) vs Q4 2023 (15000)
        assert year_over_year_growth(growing_quarters) == pytest.approx(20.0)

    def test_missing_prior_year(self):
        quarters = [make_quarter(2024, 3, 100), make_quarter(2024, 4, 200)]
        assert year_over_year_growth(quarters) is None

    def test_zero_prior_revenue(self):
        quarters = [make_quarter(2023, 4, 0), make_quarter(2024, 4, 200)]
        assert year_over_year_growth(quarters) is None

    def test_empty(self):
        assert year_over_year_growth([]) is None
