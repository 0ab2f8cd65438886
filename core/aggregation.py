"""
Time-series aggregation: daily sales facts -> months -> quarters.

Both steps are single linear scans. Revenue fields are coerced with
``parse_revenue`` so malformed rows contribute zero instead of failing the
whole forecast.
"""
import math
from datetime import date, datetime
from decimal import InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from core.models import DailySalesFact, MonthAggregate, QuarterAggregate
from core.observability import get_logger

logger = get_logger(__name__)

FactLike = Union[DailySalesFact, Mapping[str, Any]]
QuarterKey = Tuple[int, int]


def parse_revenue(raw: Any) -> float:
    """
    Coerce a possibly-missing revenue value to a float.

    Returns 0.0 for None, NaN, infinities, non-numeric strings and anything
    else that can't be read as a number. Never raises.
    """
    if raw is None:
        return 0.0

    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return 0.0

    try:
        value = float(raw)
    except (TypeError, ValueError, InvalidOperation, OverflowError):
        return 0.0

    if not math.isfinite(value):
        return 0.0
    return value


def parse_count(raw: Any) -> int:
    """Coerce a transaction count; same rules as ``parse_revenue``, truncated to int."""
    return int(parse_revenue(raw))


def month_key(value: Any) -> Optional[str]:
    """``YYYY-MM`` for a date, datetime or ISO date string; None if unreadable."""
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m")

    if isinstance(value, str) and len(value) >= 7:
        candidate = value[:7]
        try:
            datetime.strptime(candidate, "%Y-%m")
        except ValueError:
            return None
        return candidate

    return None


def _fact_fields(fact: FactLike) -> Tuple[Any, Any, Any, Any, Any]:
    if isinstance(fact, DailySalesFact):
        return (
            fact.summary_date,
            fact.total_revenue,
            fact.service_revenue,
            fact.product_revenue,
            fact.transactions,
        )
    return (
        fact.get("summary_date"),
        fact.get("total_revenue"),
        fact.get("service_revenue"),
        fact.get("product_revenue"),
        fact.get("total_transactions", fact.get("transactions")),
    )


def aggregate_months(facts: Iterable[FactLike]) -> Dict[str, MonthAggregate]:
    """
    Sum daily facts into calendar months.

    Args:
        facts: DailySalesFact objects or store rows with ``summary_date``,
            ``total_revenue``, ``service_revenue``, ``product_revenue`` and
            ``total_transactions`` keys

    Returns:
        Mapping of ``YYYY-MM`` to MonthAggregate, in first-seen order
    """
    months: Dict[str, MonthAggregate] = {}
    skipped = 0

    for fact in facts:
        summary_date, total, service, product, transactions = _fact_fields(fact)

        key = month_key(summary_date)
        if key is None:
            skipped += 1
            continue

        month = months.get(key)
        if month is None:
            month = months[key] = MonthAggregate(month=key)

        month.total_revenue += parse_revenue(total)
        month.service_revenue += parse_revenue(service)
        month.product_revenue += parse_revenue(product)
        month.transactions += parse_count(transactions)
        month.day_count += 1

    if skipped:
        logger.debug(f"Skipped {skipped} facts with unreadable summary_date")

    return months


def aggregate_quarters(months: Mapping[str, MonthAggregate]) -> Dict[QuarterKey, QuarterAggregate]:
    """Sum months into calendar quarters keyed by ``(year, quarter)``."""
    quarters: Dict[QuarterKey, QuarterAggregate] = {}

    for month in months.values():
        key = (month.year, month.quarter)
        quarter = quarters.get(key)
        if quarter is None:
            quarter = quarters[key] = QuarterAggregate(year=month.year, quarter=month.quarter)

        quarter.total_revenue += month.total_revenue
        quarter.service_revenue += month.service_revenue
        quarter.product_revenue += month.product_revenue
        quarter.transactions += month.transactions
        quarter.months.append(month)

    return quarters


def sort_quarters(quarters: Mapping[QuarterKey, QuarterAggregate]) -> List[QuarterAggregate]:
    """Chronological order (``year*10 + quarter``); regression uses the list index as x."""
    return sorted(quarters.values(), key=lambda q: q.sort_key)


def build_quarterly_series(facts: Iterable[FactLike]) -> List[QuarterAggregate]:
    """Daily facts straight to a time-ordered list of quarters."""
    return sort_quarters(aggregate_quarters(aggregate_months(facts)))
