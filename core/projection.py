"""
Scenario projection for upcoming quarters.

Each target quarter gets a trend value from the regression (extrapolating
the quarter index), a seasonal adjustment for its quarter number and one
projection per scenario multiplier.
"""
from calendar import monthrange
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from core.config import ForecastConfig, config
from core.models import (
    ForecastProjection,
    Momentum,
    QuarterAggregate,
    RegressionResult,
    quarter_label,
)


def quarter_of(moment: datetime) -> Tuple[int, int]:
    """(year, quarter) containing a date or datetime."""
    return moment.year, (moment.month - 1) // 3 + 1


def upcoming_quarters(moment: datetime, count: int) -> List[Tuple[int, int]]:
    """The ``count`` quarters strictly after the one containing ``moment``."""
    year, quarter = quarter_of(moment)
    result = []
    for _ in range(count):
        quarter += 1
        if quarter > 4:
            quarter = 1
            year += 1
        result.append((year, quarter))
    return result


def quarter_bounds(year: int, quarter: int) -> Tuple[date, date]:
    """First and last calendar day of a quarter."""
    first_month = (quarter - 1) * 3 + 1
    last_month = first_month + 2
    return (
        date(year, first_month, 1),
        date(year, last_month, monthrange(year, last_month)[1]),
    )


def historical_service_share(
    quarters: Sequence[QuarterAggregate],
    target_quarter: int,
    default: float,
) -> float:
    """
    Service share of service+product revenue for a quarter number.

    Falls back to the share over all quarters, then to ``default`` when the
    history has no service/product revenue at all.
    """
    def share(items: Sequence[QuarterAggregate]) -> Optional[float]:
        service = sum(q.service_revenue for q in items)
        product = sum(q.product_revenue for q in items)
        total = service + product
        if total <= 0:
            return None
        return min(1.0, max(0.0, service / total))

    same_quarter = [q for q in quarters if q.quarter == target_quarter]
    for candidate in (share(same_quarter), share(quarters)):
        if candidate is not None:
            return candidate
    return default


def project_scenarios(
    quarters: Sequence[QuarterAggregate],
    regression: RegressionResult,
    indices: Dict[int, float],
    growth_rates: Sequence[float],
    momentum: Momentum,
    yoy_growth: Optional[float],
    organization_id: str,
    now: datetime,
    location_id: Optional[str] = None,
    forecast_config: ForecastConfig = None,
) -> List[ForecastProjection]:
    """
    Project the next ``horizon_quarters`` quarters under every scenario.

    Projected revenue is ``max(0, trend) * seasonal_index * multiplier``,
    rounded to cents. Confidence bounds are a flat +/- ``confidence_band``
    around the projection.

    Returns:
        Projections ordered by target quarter, then scenario
    """
    fc = forecast_config or config.forecast
    expires_at = now + timedelta(hours=fc.cache_ttl_hours)
    last_growth_rate = growth_rates[-1] if growth_rates else 0.0

    projections = []
    for step, (year, quarter) in enumerate(upcoming_quarters(now, fc.horizon_quarters), start=1):
        trend_value = regression.predict(len(quarters) + step - 1)
        seasonal_adj = indices.get(quarter, 1.0)
        base_projection = max(0.0, max(0.0, trend_value) * seasonal_adj)

        if fc.split_mode == "historical":
            service_share = historical_service_share(quarters, quarter, fc.service_share)
        else:
            service_share = fc.service_share

        period_start, period_end = quarter_bounds(year, quarter)

        for scenario, multiplier in fc.scenario_multipliers.items():
            projected = base_projection * multiplier
            projections.append(ForecastProjection(
                organization_id=organization_id,
                location_id=location_id,
                period_label=quarter_label(year, quarter),
                period_start=period_start,
                period_end=period_end,
                scenario=scenario,
                projected_revenue=round(projected, 2),
                projected_service_revenue=round(projected * service_share, 2),
                projected_product_revenue=round(projected * (1 - service_share), 2),
                growth_rate_qoq=last_growth_rate * multiplier,
                growth_rate_yoy=yoy_growth * multiplier if yoy_growth is not None else None,
                confidence_lower=round(projected * (1 - fc.confidence_band), 2),
                confidence_upper=round(projected * (1 + fc.confidence_band), 2),
                momentum=momentum.value,
                seasonality_index=seasonal_adj,
                generated_at=now,
                expires_at=expires_at,
            ))

    return projections
