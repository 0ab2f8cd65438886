"""
Domain models for growth forecasting.

Provides type-safe dataclasses for daily sales facts, month/quarter
aggregates, regression output and persisted forecast projections.
These models are shared by the engine, the DuckDB store and the web layer.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class Scenario(str, Enum):
    """Projection variants, scaled from the same trend-and-season baseline."""
    CONSERVATIVE = "conservative"
    BASELINE = "baseline"
    OPTIMISTIC = "optimistic"


class Momentum(str, Enum):
    """Coarse classification of the recent growth-rate trajectory."""
    ACCELERATING = "accelerating"
    DECELERATING = "decelerating"
    STEADY = "steady"


class InsightKind(str, Enum):
    """Where a set of narrative insights came from."""
    PARSED = "parsed"      # text-generation service output
    FALLBACK = "fallback"  # deterministic rule-based text


FORECAST_TYPE_QUARTERLY = "quarterly"


# ═══════════════════════════════════════════════════════════════════════════════
# TIME SERIES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class DailySalesFact:
    """One day of sales for one location."""
    summary_date: date
    total_revenue: float = 0.0
    service_revenue: float = 0.0
    product_revenue: float = 0.0
    transactions: int = 0
    location_id: Optional[str] = None
    organization_id: Optional[str] = None


@dataclass
class MonthAggregate:
    """Sums over all daily facts in one calendar month (key ``YYYY-MM``)."""
    month: str
    total_revenue: float = 0.0
    service_revenue: float = 0.0
    product_revenue: float = 0.0
    transactions: int = 0
    day_count: int = 0

    @property
    def year(self) -> int:
        return int(self.month[:4])

    @property
    def month_number(self) -> int:
        return int(self.month[5:7])

    @property
    def quarter(self) -> int:
        return (self.month_number - 1) // 3 + 1


def quarter_label(year: int, quarter: int) -> str:
    """Display label for a quarter, e.g. ``Q1 2025``."""
    return f"Q{quarter} {year}"


@dataclass
class QuarterAggregate:
    """Sums over the months of one calendar quarter."""
    year: int
    quarter: int
    total_revenue: float = 0.0
    service_revenue: float = 0.0
    product_revenue: float = 0.0
    transactions: int = 0
    months: List[MonthAggregate] = field(default_factory=list)

    @property
    def label(self) -> str:
        return quarter_label(self.year, self.quarter)

    @property
    def sort_key(self) -> int:
        return self.year * 10 + self.quarter

    def to_actual(self) -> Dict[str, Any]:
        """Chart point for a historical quarter."""
        return {
            "period": self.label,
            "revenue": self.total_revenue,
            "serviceRevenue": self.service_revenue,
            "productRevenue": self.product_revenue,
            "transactions": self.transactions,
            "type": "actual",
        }


@dataclass(frozen=True)
class RegressionResult:
    """Ordinary least-squares fit of revenue against quarter index."""
    slope: float
    intercept: float
    r2: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


# ═══════════════════════════════════════════════════════════════════════════════
# PROJECTIONS
# ═══════════════════════════════════════════════════════════════════════════════

def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, (date, datetime)) else value


@dataclass
class ForecastProjection:
    """One (quarter, scenario) projection as persisted in ``growth_forecasts``."""
    organization_id: str
    period_label: str
    period_start: date
    period_end: date
    scenario: str
    projected_revenue: float
    projected_service_revenue: float
    projected_product_revenue: float
    confidence_lower: float
    confidence_upper: float
    momentum: str
    seasonality_index: float
    generated_at: datetime
    expires_at: datetime
    growth_rate_qoq: Optional[float] = None
    growth_rate_yoy: Optional[float] = None
    location_id: Optional[str] = None
    forecast_type: str = FORECAST_TYPE_QUARTERLY
    insights: Optional[List[str]] = None

    def is_expired(self, now: datetime) -> bool:
        return _to_utc(self.expires_at) <= _to_utc(now)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly row representation (snake_case, ISO dates)."""
        return {
            "organization_id": self.organization_id,
            "location_id": self.location_id,
            "forecast_type": self.forecast_type,
            "period_label": self.period_label,
            "period_start": _iso(self.period_start),
            "period_end": _iso(self.period_end),
            "scenario": self.scenario,
            "projected_revenue": self.projected_revenue,
            "projected_service_revenue": self.projected_service_revenue,
            "projected_product_revenue": self.projected_product_revenue,
            "growth_rate_qoq": self.growth_rate_qoq,
            "growth_rate_yoy": self.growth_rate_yoy,
            "confidence_lower": self.confidence_lower,
            "confidence_upper": self.confidence_upper,
            "momentum": self.momentum,
            "seasonality_index": self.seasonality_index,
            "insights": self.insights,
            "generated_at": _iso(_to_utc(self.generated_at)),
            "expires_at": _iso(_to_utc(self.expires_at)),
        }

    def to_period(self) -> Dict[str, Any]:
        """Chart point for a projected quarter."""
        return {
            "period": self.period_label,
            "periodStart": _iso(self.period_start),
            "periodEnd": _iso(self.period_end),
            "revenue": self.projected_revenue,
            "serviceRevenue": self.projected_service_revenue,
            "productRevenue": self.projected_product_revenue,
            "confidenceLower": self.confidence_lower,
            "confidenceUpper": self.confidence_upper,
            "type": "projected",
        }


@dataclass
class InsightResult:
    """Narrative insights tagged with their origin."""
    kind: InsightKind
    insights: List[str]

    @property
    def is_fallback(self) -> bool:
        return self.kind == InsightKind.FALLBACK
