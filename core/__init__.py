"""
Core library for the Growth Forecast service.

This package contains the forecasting engine shared by web/ and scripts/:
- exceptions: Custom exception hierarchy
- validators: Input validation functions
- models: Domain dataclasses
- forecast_service: Cache-or-compute orchestration
- config: Centralized configuration
"""

# Import in dependency order
from core.exceptions import (
    ForecastError,
    DataFetchError,
    ForecastStoreError,
    InsightGenerationError,
    QueryTimeoutError,
    ValidationError,
)

from core.validators import (
    validate_organization_id,
    validate_location_id,
)

from core.models import (
    DailySalesFact,
    ForecastProjection,
    InsightResult,
    Momentum,
    QuarterAggregate,
    Scenario,
)

from core.config import config

__all__ = [
    # Exceptions
    "ForecastError",
    "DataFetchError",
    "ForecastStoreError",
    "InsightGenerationError",
    "QueryTimeoutError",
    "ValidationError",
    # Validators
    "validate_organization_id",
    "validate_location_id",
    # Models
    "DailySalesFact",
    "ForecastProjection",
    "InsightResult",
    "Momentum",
    "QuarterAggregate",
    "Scenario",
    # Config
    "config",
]
