"""Shared dependencies for API route modules."""
import time

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.duckdb_store import get_store
from core.forecast_service import GrowthForecastService, get_forecast_service
from core.observability import get_logger

# Shared limiter instance
limiter = Limiter(key_func=get_remote_address)

# Track startup time for uptime calculation
START_TIME = time.time()


async def forecast_service_dependency() -> GrowthForecastService:
    """FastAPI dependency; tests override it with a service over fake collaborators."""
    return await get_forecast_service()


__all__ = [
    "limiter",
    "START_TIME",
    "get_store",
    "get_logger",
    "forecast_service_dependency",
]
