"""
Pytest configuration and shared fixtures.
"""
import asyncio
import pytest
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.models import ForecastProjection, QuarterAggregate

# Mid Q2 2025: upcoming quarters are Q3 2025 .. Q2 2026
FIXED_NOW = datetime(2025, 5, 15, 12, 0, tzinfo=timezone.utc)


def make_fact(
    summary_date,
    total: Any,
    service: Any = None,
    product: Any = None,
    transactions: Any = 10,
    location_id: str = "downtown",
) -> Dict[str, Any]:
    """Daily fact row shaped like DuckDBStore.get_daily_sales output."""
    return {
        "summary_date": summary_date,
        "location_id": location_id,
        "total_revenue": total,
        "service_revenue": service,
        "product_revenue": product,
        "total_transactions": transactions,
    }


def facts_for_quarters(revenues: Sequence[Tuple[int, int, float]]) -> List[Dict[str, Any]]:
    """One fact per quarter (15th of its first month) with a 70/30 split."""
    return [
        make_fact(
            date(year, (quarter - 1) * 3 + 1, 15),
            total,
            service=total * 0.7,
            product=total * 0.3,
        )
        for year, quarter, total in revenues
    ]


def make_quarter(year: int, quarter: int, total: float, service: float = None, product: float = None) -> QuarterAggregate:
    return QuarterAggregate(
        year=year,
        quarter=quarter,
        total_revenue=total,
        service_revenue=total * 0.7 if service is None else service,
        product_revenue=total * 0.3 if product is None else product,
    )


class FakeForecastStore:
    """
    In-memory stand-in for DuckDBStore's sales and forecast methods.

    Set ``fetch_error``, ``cache_read_error``, ``delete_error`` or
    ``insert_error`` to make the matching call raise.
    """

    def __init__(self, facts: Optional[List[Dict[str, Any]]] = None):
        self.facts: Dict[str, List[Dict[str, Any]]] = {}
        if facts is not None:
            self.facts["org-1"] = list(facts)
        self.forecasts: List[ForecastProjection] = []
        self.fetch_error: Optional[Exception] = None
        self.cache_read_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.insert_error: Optional[Exception] = None
        self.fetch_calls: List[Tuple[str, Optional[str]]] = []
        self.insert_calls = 0

    async def get_daily_sales(self, organization_id: str, location_id: Optional[str] = None):
        self.fetch_calls.append((organization_id, location_id))
        if self.fetch_error:
            raise self.fetch_error
        rows = self.facts.get(organization_id, [])
        if location_id:
            rows = [r for r in rows if r.get("location_id") == location_id]
        return list(rows)

    async def get_valid_forecasts(self, organization_id: str, now: datetime, limit: int = 20):
        if self.cache_read_error:
            raise self.cache_read_error
        rows = [
            p for p in self.forecasts
            if p.organization_id == organization_id and not p.is_expired(now)
        ]
        rows.sort(key=lambda p: p.period_start)
        rows.sort(key=lambda p: p.generated_at, reverse=True)
        return rows[:limit]

    async def delete_expired_forecasts(self, organization_id: str, now: datetime) -> int:
        if self.delete_error:
            raise self.delete_error
        before = len(self.forecasts)
        self.forecasts = [
            p for p in self.forecasts
            if p.organization_id != organization_id or not p.is_expired(now)
        ]
        return before - len(self.forecasts)

    async def purge_expired_forecasts(self, now: datetime) -> int:
        before = len(self.forecasts)
        self.forecasts = [p for p in self.forecasts if not p.is_expired(now)]
        return before - len(self.forecasts)

    async def insert_forecasts(self, projections) -> int:
        self.insert_calls += 1
        if self.insert_error:
            raise self.insert_error
        self.forecasts.extend(projections)
        return len(projections)


class FakeLLMClient:
    """LLMClient double returning a canned response, raising, or stalling."""

    def __init__(self, response: str = "", error: Exception = None, delay: float = 0, available: bool = True):
        self.response = response
        self.error = error
        self.delay = delay
        self.available = available
        self.calls: List[Tuple[str, str]] = []

    @property
    def is_available(self) -> bool:
        return self.available

    async def complete(self, system: str, user: str, max_tokens: Optional[int] = None) -> str:
        self.calls.append((system, user))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def growing_quarters() -> List[QuarterAggregate]:
    """Two years of steadily growing revenue with a strong Q4."""
    return [
        make_quarter(2023, 1, 10000),
        make_quarter(2023, 2, 11000),
        make_quarter(2023, 3, 11500),
        make_quarter(2023, 4, 15000),
        make_quarter(2024, 1, 12000),
        make_quarter(2024, 2, 13000),
        make_quarter(2024, 3, 13500),
        make_quarter(2024, 4, 18000),
    ]


@pytest.fixture
def growing_facts() -> List[Dict[str, Any]]:
    return facts_for_quarters([
        (2023, 1, 10000),
        (2023, 2, 11000),
        (2023, 3, 11500),
        (2023, 4, 15000),
        (2024, 1, 12000),
        (2024, 2, 13000),
        (2024, 3, 13500),
        (2024, 4, 18000),
    ])


@pytest.fixture
def fake_store(growing_facts) -> FakeForecastStore:
    return FakeForecastStore(growing_facts)


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient(
        response='["Revenue is trending upward.", "Q4 is your strongest quarter by far."]'
    )
