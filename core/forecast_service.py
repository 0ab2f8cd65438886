"""
Growth forecast orchestration.

Cache-or-compute flow for one organization:
1. Cache gate: serve unexpired projections from ``growth_forecasts``
2. Fetch daily sales facts (failures surface as DataFetchError)
3. Aggregate into quarters, fit trend, seasonality and momentum
4. Project every scenario for the upcoming quarters
5. Generate narrative insights (LLM, or rule-based fallback)
6. Replace expired rows and persist (best effort)
7. Assemble the chart-ready response

The store, the LLM client and the clock are injected, so the service holds
no state between calls.
"""
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.aggregation import build_quarterly_series
from core.config import ForecastConfig, config
from core.exceptions import DataFetchError, ForecastStoreError, QueryTimeoutError
from core.growth_metrics import (
    classify_momentum,
    fit_quarter_trend,
    quarter_growth_rates,
    seasonal_indices,
    year_over_year_growth,
)
from core.insights import NO_DATA_INSIGHT, generate_insights
from core.models import ForecastProjection, InsightKind, Momentum, Scenario
from core.observability import get_logger, timed
from core.projection import project_scenarios

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def group_scenarios(projections: List[ForecastProjection]) -> Dict[str, List[Dict[str, Any]]]:
    """Chart periods per scenario, each list ordered by period start."""
    scenarios: Dict[str, List[ForecastProjection]] = OrderedDict()
    for projection in projections:
        scenarios.setdefault(projection.scenario, []).append(projection)
    return {
        name: [p.to_period() for p in sorted(rows, key=lambda p: p.period_start)]
        for name, rows in scenarios.items()
    }


def dedupe_projections(projections: List[ForecastProjection]) -> List[ForecastProjection]:
    """
    Keep one projection per (scenario, period label).

    Input is expected newest-first, so the first row seen wins.
    """
    seen = set()
    result = []
    for projection in projections:
        key = (projection.scenario, projection.period_label)
        if key in seen:
            continue
        seen.add(key)
        result.append(projection)
    return result


def insufficient_data_response() -> Dict[str, Any]:
    """Response for an organization with no daily facts. Nothing is persisted."""
    return {
        "source": "computed",
        "forecasts": [],
        "scenarios": {},
        "actuals": [],
        "insights": [NO_DATA_INSIGHT],
        "insightSource": InsightKind.FALLBACK.value,
        "summary": {
            "momentum": Momentum.STEADY.value,
            "dataPoints": 0,
            "quartersAvailable": 0,
        },
    }


class GrowthForecastService:
    """Quarterly growth forecasts with a per-organization projection cache."""

    def __init__(
        self,
        store,
        llm_client=None,
        now: Optional[Callable[[], datetime]] = None,
        forecast_config: Optional[ForecastConfig] = None,
    ):
        self._store = store
        self._llm_client = llm_client
        self._now = now or _utcnow
        self._config = forecast_config or config.forecast

    @timed("growth_forecast")
    async def get_forecast(
        self,
        organization_id: str,
        location_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Forecast for an organization, served from cache when possible.

        Args:
            organization_id: Tenant to forecast
            location_id: Restrict the computation to one location (None = all)

        Returns:
            Response dict with ``source`` of ``cache`` or ``computed``

        Raises:
            DataFetchError: If daily sales facts could not be read
        """
        now = self._now()

        cached = await self._read_cache(organization_id, now)
        if cached:
            logger.info(
                f"Growth forecast cache hit for {organization_id}",
                extra={"organization_id": organization_id, "rows": len(cached)},
            )
            return self._cached_response(cached)

        facts = await self._fetch_facts(organization_id, location_id)
        if not facts:
            logger.info(f"No sales data for {organization_id}, returning empty forecast")
            return insufficient_data_response()

        return await self._compute(organization_id, location_id, facts, now)

    # ─── Cache ───────────────────────────────────────────────────────────────

    async def _read_cache(self, organization_id: str, now: datetime) -> List[ForecastProjection]:
        try:
            rows = await self._store_op(
                "get_valid_forecasts", organization_id, now, limit=self._config.cache_read_limit
            )
        except ForecastStoreError as e:
            logger.warning(
                f"Forecast cache read failed for {organization_id}, recomputing: {e}",
                extra={"organization_id": organization_id, "operation": e.operation},
            )
            return []
        return dedupe_projections(rows)

    @staticmethod
    def _cached_response(rows: List[ForecastProjection]) -> Dict[str, Any]:
        insights: List[str] = []
        for row in rows:
            if row.scenario == Scenario.BASELINE.value and row.insights:
                insights = row.insights
                break

        return {
            "source": "cache",
            "forecasts": [row.to_dict() for row in rows],
            "scenarios": group_scenarios(rows),
            "insights": insights,
        }

    # ─── Fetch ───────────────────────────────────────────────────────────────

    async def _fetch_facts(
        self,
        organization_id: str,
        location_id: Optional[str],
    ) -> List[Dict[str, Any]]:
        try:
            return await self._store.get_daily_sales(organization_id, location_id)
        except QueryTimeoutError as e:
            logger.error(f"Sales data query timed out for {organization_id}: {e}")
            raise DataFetchError(
                "Failed to fetch sales data", str(e), organization_id=organization_id
            ) from e
        except Exception as e:
            logger.error(f"Error fetching sales data for {organization_id}: {e}", exc_info=True)
            raise DataFetchError(
                "Failed to fetch sales data", str(e), organization_id=organization_id
            ) from e

    # ─── Compute ─────────────────────────────────────────────────────────────

    async def _compute(
        self,
        organization_id: str,
        location_id: Optional[str],
        facts: List[Dict[str, Any]],
        now: datetime,
    ) -> Dict[str, Any]:
        quarters = build_quarterly_series(facts)
        if not quarters:
            logger.warning(
                f"No readable sales dates for {organization_id}, returning empty forecast",
                extra={"organization_id": organization_id, "data_points": len(facts)},
            )
            return insufficient_data_response()

        growth_rates = quarter_growth_rates(quarters)
        regression = fit_quarter_trend(quarters)
        indices = seasonal_indices(quarters)
        momentum = classify_momentum(growth_rates)
        yoy_growth = year_over_year_growth(quarters)

        projections = project_scenarios(
            quarters,
            regression,
            indices,
            growth_rates,
            momentum,
            yoy_growth,
            organization_id=organization_id,
            now=now,
            location_id=location_id,
            forecast_config=self._config,
        )

        insight_result = await generate_insights(
            self._llm_client,
            quarters,
            growth_rates,
            yoy_growth,
            momentum,
            indices,
            regression.r2,
        )

        for projection in projections:
            if projection.scenario == Scenario.BASELINE.value:
                projection.insights = insight_result.insights

        await self._persist(organization_id, projections, now)

        baseline = next(
            (p for p in projections if p.scenario == Scenario.BASELINE.value), None
        )

        logger.info(
            f"Computed growth forecast for {organization_id}",
            extra={
                "organization_id": organization_id,
                "quarters": len(quarters),
                "data_points": len(facts),
                "momentum": momentum.value,
                "insight_source": insight_result.kind.value,
            },
        )

        return {
            "source": "computed",
            "actuals": [q.to_actual() for q in quarters],
            "scenarios": group_scenarios(projections),
            "insights": insight_result.insights,
            "insightSource": insight_result.kind.value,
            "summary": {
                "momentum": momentum.value,
                "lastQoQGrowth": growth_rates[-1] if growth_rates else None,
                "yoyGrowth": yoy_growth,
                "seasonalIndices": {str(q): idx for q, idx in sorted(indices.items())},
                "trendR2": regression.r2,
                "dataPoints": len(facts),
                "quartersAvailable": len(quarters),
                "nextQuarterBaseline": baseline.projected_revenue if baseline else 0,
                "nextQuarterLabel": baseline.period_label if baseline else "",
            },
        }

    async def _persist(
        self,
        organization_id: str,
        projections: List[ForecastProjection],
        now: datetime,
    ) -> None:
        """Replace expired rows with the new projections. Failures are logged only."""
        try:
            deleted = await self._store_op("delete_expired_forecasts", organization_id, now)
            if deleted:
                logger.debug(f"Deleted {deleted} expired forecast rows for {organization_id}")
        except ForecastStoreError as e:
            logger.warning(
                f"Failed to delete expired forecasts for {organization_id}: {e}",
                extra={"organization_id": organization_id, "operation": e.operation},
            )

        try:
            await self._store_op("insert_forecasts", projections)
        except ForecastStoreError as e:
            logger.error(
                f"Error storing forecasts for {organization_id}: {e}",
                extra={"organization_id": organization_id, "operation": e.operation},
            )

    async def _store_op(self, operation: str, *args, **kwargs) -> Any:
        """Call a forecast table method on the store; any failure becomes ForecastStoreError."""
        try:
            return await getattr(self._store, operation)(*args, **kwargs)
        except Exception as e:
            raise ForecastStoreError(f"Forecast {operation} failed", str(e), operation=operation) from e


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_forecast_service: Optional[GrowthForecastService] = None


async def get_forecast_service() -> GrowthForecastService:
    """Get singleton forecast service wired to the shared store and LLM client."""
    global _forecast_service
    if _forecast_service is None:
        from core.duckdb_store import get_store
        from core.llm_client import get_llm_client

        store = await get_store()
        _forecast_service = GrowthForecastService(store, llm_client=get_llm_client())
    return _forecast_service


def reset_forecast_service() -> None:
    """Drop the singleton (used on shutdown and in tests)."""
    global _forecast_service
    _forecast_service = None
