"""
Growth statistics over a chronological quarter series.

- linear_regression: OLS trend of revenue against quarter index
- quarter_growth_rates: quarter-over-quarter percentage changes
- seasonal_indices: per-quarter-number multiplicative adjustment
- classify_momentum: accelerating / decelerating / steady heuristic
- year_over_year_growth: latest quarter vs. same quarter a year earlier

None of these raise on degenerate input; they fall back to neutral values.
"""
from typing import Dict, List, Optional, Sequence

import numpy as np

from core.models import Momentum, QuarterAggregate, RegressionResult

# Average change in growth rate (percentage points) that counts as a shift
MOMENTUM_THRESHOLD = 2.0
MOMENTUM_WINDOW = 3


def linear_regression(xs: Sequence[float], ys: Sequence[float]) -> RegressionResult:
    """
    Ordinary least-squares fit ``y = slope * x + intercept``.

    Fewer than two points give slope 0, intercept = the single value (or 0)
    and R² 0. A zero-variance x axis gives slope 0, intercept = mean(y),
    R² 0. R² is 0 when y has no variance and is clamped to [0, 1] otherwise.
    """
    if len(xs) != len(ys):
        raise ValueError(f"xs and ys differ in length ({len(xs)} != {len(ys)})")

    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    n = len(x)

    if n < 2:
        return RegressionResult(slope=0.0, intercept=float(y[0]) if n else 0.0, r2=0.0)

    sum_x = float(x.sum())
    sum_y = float(y.sum())
    sum_xy = float((x * y).sum())
    sum_x2 = float((x * x).sum())

    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return RegressionResult(slope=0.0, intercept=sum_y / n, r2=0.0)

    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    ss_res = float(((y - (slope * x + intercept)) ** 2).sum())
    ss_tot = float(((y - mean_y) ** 2).sum())

    if ss_tot == 0:
        r2 = 0.0
    else:
        # Clamp floating-point drift
        r2 = min(1.0, max(0.0, 1.0 - ss_res / ss_tot))

    return RegressionResult(slope=slope, intercept=intercept, r2=r2)


def fit_quarter_trend(quarters: Sequence[QuarterAggregate]) -> RegressionResult:
    """Regress total revenue on sequence index (0, 1, 2, ...)."""
    return linear_regression(
        list(range(len(quarters))),
        [q.total_revenue for q in quarters],
    )


def quarter_growth_rates(quarters: Sequence[QuarterAggregate]) -> List[float]:
    """QoQ percentage changes; pairs whose earlier quarter has no revenue are skipped."""
    rates = []
    for prev, curr in zip(quarters, quarters[1:]):
        if prev.total_revenue > 0:
            rates.append((curr.total_revenue - prev.total_revenue) / prev.total_revenue * 100)
    return rates


def seasonal_indices(quarters: Sequence[QuarterAggregate]) -> Dict[int, float]:
    """
    Average ratio of each quarter number's revenue to the overall mean.

    Quarter numbers with no history get 1.0. If the mean is zero, all four
    indices are 1.0.
    """
    neutral = {q: 1.0 for q in range(1, 5)}
    if not quarters:
        return neutral

    mean_revenue = float(np.mean([q.total_revenue for q in quarters]))
    if mean_revenue == 0:
        return neutral

    ratios: Dict[int, List[float]] = {q: [] for q in range(1, 5)}
    for quarter in quarters:
        ratios[quarter.quarter].append(quarter.total_revenue / mean_revenue)

    return {
        q: float(np.mean(values)) if values else 1.0
        for q, values in ratios.items()
    }


def classify_momentum(growth_rates: Sequence[float]) -> Momentum:
    """
    Label the recent growth trajectory.

    Looks at the last three QoQ rates, averages their consecutive
    differences and compares against +/- MOMENTUM_THRESHOLD points. This is
    a rough display heuristic; it does not test for significance.
    """
    recent = list(growth_rates)[-MOMENTUM_WINDOW:]
    if len(recent) < 2:
        return Momentum.STEADY

    diffs = [b - a for a, b in zip(recent, recent[1:])]
    avg_diff = sum(diffs) / len(diffs)

    if avg_diff > MOMENTUM_THRESHOLD:
        return Momentum.ACCELERATING
    if avg_diff < -MOMENTUM_THRESHOLD:
        return Momentum.DECELERATING
    return Momentum.STEADY


def year_over_year_growth(quarters: Sequence[QuarterAggregate]) -> Optional[float]:
    """
    Percentage change of the latest quarter vs. the same quarter one year prior.

    None when that quarter is missing from the series or had no revenue.
    """
    if not quarters:
        return None

    latest = quarters[-1]
    prior = next(
        (q for q in quarters if q.quarter == latest.quarter and q.year == latest.year - 1),
        None,
    )
    if prior is None or prior.total_revenue <= 0:
        return None

    return (latest.total_revenue - prior.total_revenue) / prior.total_revenue * 100
