"""DuckDBStore daily sales fact methods."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from core.aggregation import parse_count, parse_revenue
from core.models import DailySalesFact
from core.observability import get_logger

logger = get_logger(__name__)

DEFAULT_LOCATION_ID = "default"

FactInput = Union[DailySalesFact, Mapping[str, Any]]


def _as_date(value: Any) -> Optional[date]:
    """Calendar date from a date, datetime or ISO string; None if unreadable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


class SalesMixin:

    async def get_daily_sales(
        self,
        organization_id: str,
        location_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Daily sales facts for an organization, oldest first.

        Args:
            organization_id: Tenant to read
            location_id: Restrict to one location (None = all locations)

        Returns:
            Row dicts with summary_date, location_id, total_revenue,
            service_revenue, product_revenue, total_transactions
        """
        query = """
            SELECT summary_date, location_id, total_revenue, service_revenue,
                   product_revenue, total_transactions
            FROM daily_sales_summary
            WHERE organization_id = ?
        """
        params: List[Any] = [organization_id]
        if location_id:
            query += " AND location_id = ?"
            params.append(location_id)
        query += " ORDER BY summary_date ASC, location_id ASC"

        rows = await self._fetch_all(query, params)
        return [
            {
                "summary_date": row[0],
                "location_id": row[1],
                "total_revenue": row[2],
                "service_revenue": row[3],
                "product_revenue": row[4],
                "total_transactions": row[5],
            }
            for row in rows
        ]

    async def upsert_daily_sales(
        self,
        organization_id: str,
        facts: Iterable[FactInput],
    ) -> int:
        """
        Insert or replace daily facts (keyed by organization, location, date).

        Revenue values are coerced like the aggregator does, so a bad cell
        lands as 0 rather than rejecting the batch. Rows whose date can't be
        read are skipped and logged.

        Returns:
            Number of rows written
        """
        rows = []
        skipped = 0
        for fact in facts:
            if isinstance(fact, DailySalesFact):
                summary_date, location_id = fact.summary_date, fact.location_id
                total, service, product = fact.total_revenue, fact.service_revenue, fact.product_revenue
                transactions = fact.transactions
            else:
                summary_date, location_id = fact.get("summary_date"), fact.get("location_id")
                total = fact.get("total_revenue")
                service = fact.get("service_revenue")
                product = fact.get("product_revenue")
                transactions = fact.get("total_transactions", fact.get("transactions"))

            fact_date = _as_date(summary_date)
            if fact_date is None:
                skipped += 1
                continue

            rows.append([
                organization_id,
                location_id or DEFAULT_LOCATION_ID,
                fact_date,
                parse_revenue(total),
                parse_revenue(service),
                parse_revenue(product),
                parse_count(transactions),
            ])

        if skipped:
            logger.warning(
                f"Skipped {skipped} daily facts with unreadable dates for {organization_id}",
                extra={"organization_id": organization_id, "skipped": skipped},
            )

        return await self._execute_many("""
            INSERT OR REPLACE INTO daily_sales_summary
                (organization_id, location_id, summary_date, total_revenue,
                 service_revenue, product_revenue, total_transactions)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, rows)
