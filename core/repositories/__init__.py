"""
Repository mixins for the DuckDB store.

Each mixin groups the queries for one table and relies on the store's
``_run`` / ``_fetch_all`` / ``_execute_many`` helpers:
- SalesMixin: daily sales facts
- ForecastsMixin: cached growth forecast projections
"""
from core.repositories.sales import SalesMixin
from core.repositories.forecasts import ForecastsMixin

__all__ = [
    "SalesMixin",
    "ForecastsMixin",
]
