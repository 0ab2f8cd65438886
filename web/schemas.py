"""
Pydantic models for API endpoints.

Provides request/response models for validation and OpenAPI documentation.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════════
# GROWTH FORECAST
# ═══════════════════════════════════════════════════════════════════════════════

class ForecastRequest(BaseModel):
    """Growth forecast request body."""
    organizationId: str = Field(description="Organization to forecast")
    locationId: Optional[str] = Field(None, description="Location filter; 'all' or empty means every location")


class ActualPeriod(BaseModel):
    """Historical quarter chart point."""
    period: str = Field(description="Quarter label, e.g. 'Q1 2025'")
    revenue: float
    serviceRevenue: float
    productRevenue: float
    transactions: int
    type: str = "actual"


class ProjectedPeriod(BaseModel):
    """Projected quarter chart point for one scenario."""
    period: str = Field(description="Quarter label, e.g. 'Q3 2025'")
    periodStart: str = Field(description="First day of the quarter (ISO format)")
    periodEnd: str = Field(description="Last day of the quarter (ISO format)")
    revenue: float
    serviceRevenue: float
    productRevenue: float
    confidenceLower: float
    confidenceUpper: float
    type: str = "projected"


class ForecastSummary(BaseModel):
    """Headline numbers for a computed forecast."""
    momentum: str = Field(description="accelerating, decelerating or steady")
    lastQoQGrowth: Optional[float] = Field(None, description="Most recent quarter-over-quarter growth (%)")
    yoyGrowth: Optional[float] = Field(None, description="Year-over-year growth of the latest quarter (%)")
    seasonalIndices: Dict[str, float] = Field(default_factory=dict, description="Seasonal index per quarter number")
    trendR2: Optional[float] = Field(None, description="Goodness of fit of the linear trend")
    dataPoints: int = Field(description="Daily facts used")
    quartersAvailable: int = Field(description="Historical quarters aggregated")
    nextQuarterBaseline: Optional[float] = None
    nextQuarterLabel: Optional[str] = None


class ForecastResponse(BaseModel):
    """
    Growth forecast response.

    ``source`` is ``cache`` for unexpired persisted projections (which carry
    ``forecasts`` rows and no ``actuals``/``summary``) or ``computed``.
    """
    source: str = Field(description="cache or computed")
    scenarios: Dict[str, List[ProjectedPeriod]] = Field(default_factory=dict)
    insights: List[str] = Field(default_factory=list)
    insightSource: Optional[str] = Field(None, description="parsed or fallback (computed responses)")
    actuals: Optional[List[ActualPeriod]] = None
    forecasts: Optional[List[Dict[str, Any]]] = Field(None, description="Persisted projection rows")
    summary: Optional[ForecastSummary] = None


class ErrorResponse(BaseModel):
    """Error body returned with 4xx/5xx responses."""
    error: str


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class StoreStats(BaseModel):
    """DuckDB statistics."""
    status: str
    latency_ms: Optional[float] = None
    daily_facts: Optional[int] = None
    organizations: Optional[int] = None
    forecast_rows: Optional[int] = None
    date_range: Optional[Dict[str, Optional[str]]] = None
    db_size_mb: Optional[float] = None


class SchedulerStatus(BaseModel):
    """Background scheduler status."""
    running: bool
    jobs: List[Dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str = Field(description="Application version")
    uptime_seconds: int = Field(description="Uptime in seconds")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    duckdb: StoreStats
    scheduler: SchedulerStatus
    insights_enabled: bool = Field(description="Whether LLM insights are configured")


# ═══════════════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════════════

class TimingStats(BaseModel):
    """Timing statistics for an operation."""
    count: int
    avg_ms: float
    min_ms: float
    max_ms: float
    p50_ms: Optional[float] = None


class MetricsResponse(BaseModel):
    """Application metrics response."""
    uptime_seconds: int
    correlation_id: Optional[str] = None
    requests: Dict[str, int] = Field(default_factory=dict)
    errors: Dict[str, int] = Field(default_factory=dict)
    timing: Dict[str, TimingStats] = Field(default_factory=dict)
