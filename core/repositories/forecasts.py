"""DuckDBStore growth forecast cache methods."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from core.models import ForecastProjection
from core.observability import get_logger

logger = get_logger(__name__)

FORECAST_COLUMNS = [
    "organization_id",
    "location_id",
    "forecast_type",
    "period_label",
    "period_start",
    "period_end",
    "scenario",
    "projected_revenue",
    "projected_service_revenue",
    "projected_product_revenue",
    "growth_rate_qoq",
    "growth_rate_yoy",
    "confidence_lower",
    "confidence_upper",
    "momentum",
    "seasonality_index",
    "insights",
    "generated_at",
    "expires_at",
]

_COLUMN_LIST = ", ".join(FORECAST_COLUMNS)
_PLACEHOLDERS = ", ".join("?" for _ in FORECAST_COLUMNS)


def _naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _aware_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _load_insights(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding unreadable cached insights")
        return None
    return parsed if isinstance(parsed, list) else None


def _projection_to_row(projection: ForecastProjection) -> List[Any]:
    return [
        projection.organization_id,
        projection.location_id,
        projection.forecast_type,
        projection.period_label,
        projection.period_start,
        projection.period_end,
        projection.scenario,
        projection.projected_revenue,
        projection.projected_service_revenue,
        projection.projected_product_revenue,
        projection.growth_rate_qoq,
        projection.growth_rate_yoy,
        projection.confidence_lower,
        projection.confidence_upper,
        projection.momentum,
        projection.seasonality_index,
        json.dumps(projection.insights) if projection.insights is not None else None,
        _naive_utc(projection.generated_at),
        _naive_utc(projection.expires_at),
    ]


def _row_to_projection(row: Sequence[Any]) -> ForecastProjection:
    data = dict(zip(FORECAST_COLUMNS, row))
    data["insights"] = _load_insights(data["insights"])
    data["generated_at"] = _aware_utc(data["generated_at"])
    data["expires_at"] = _aware_utc(data["expires_at"])
    return ForecastProjection(**data)


class ForecastsMixin:

    async def get_valid_forecasts(
        self,
        organization_id: str,
        now: datetime,
        limit: int = 20,
    ) -> List[ForecastProjection]:
        """
        Unexpired projections for an organization, most recently generated first.

        Args:
            organization_id: Tenant to read
            now: Wall-clock time used for the expiry comparison
            limit: Maximum rows returned
        """
        rows = await self._fetch_all(f"""
            SELECT {_COLUMN_LIST}
            FROM growth_forecasts
            WHERE organization_id = ?
              AND expires_at > ?
            ORDER BY generated_at DESC, period_start ASC
            LIMIT ?
        """, [organization_id, _naive_utc(now), limit])
        return [_row_to_projection(row) for row in rows]

    async def delete_expired_forecasts(self, organization_id: str, now: datetime) -> int:
        """Delete an organization's expired projections. Returns rows deleted."""
        cutoff = _naive_utc(now)

        def _delete(conn) -> int:
            count = conn.execute(
                "SELECT COUNT(*) FROM growth_forecasts WHERE organization_id = ? AND expires_at <= ?",
                [organization_id, cutoff],
            ).fetchone()[0]
            if count:
                conn.execute(
                    "DELETE FROM growth_forecasts WHERE organization_id = ? AND expires_at <= ?",
                    [organization_id, cutoff],
                )
            return count

        return await self._run("delete_expired_forecasts", _delete)

    async def purge_expired_forecasts(self, now: datetime) -> int:
        """Delete expired projections for every organization. Returns rows deleted."""
        cutoff = _naive_utc(now)

        def _purge(conn) -> int:
            count = conn.execute(
                "SELECT COUNT(*) FROM growth_forecasts WHERE expires_at <= ?", [cutoff]
            ).fetchone()[0]
            if count:
                conn.execute("DELETE FROM growth_forecasts WHERE expires_at <= ?", [cutoff])
            return count

        return await self._run("purge_expired_forecasts", _purge)

    async def insert_forecasts(self, projections: Sequence[ForecastProjection]) -> int:
        """Bulk insert projections in one transaction. Returns rows written."""
        return await self._execute_many(
            f"INSERT INTO growth_forecasts ({_COLUMN_LIST}) VALUES ({_PLACEHOLDERS})",
            [_projection_to_row(p) for p in projections],
        )
