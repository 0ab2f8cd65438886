"""
Custom exception hierarchy for growth forecasting.

Exception Hierarchy:
    ForecastError (base)
    ├── DataFetchError          - Sales facts could not be read (surfaced as 500)
    ├── ForecastStoreError      - Forecast cache read/write failed (logged only)
    └── InsightGenerationError  - LLM call failed or returned junk (recovered)

    ValidationError             - Input validation failed (surfaced as 400)
    QueryTimeoutError           - Store query exceeded its timeout
"""


class ForecastError(Exception):
    """Base exception for all forecast-related errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class DataFetchError(ForecastError):
    """
    The time-series store failed while reading daily sales facts.

    No partial computation proceeds after this error.
    """

    def __init__(self, message: str, details: str = None, organization_id: str = None):
        super().__init__(message, details)
        self.organization_id = organization_id


class ForecastStoreError(ForecastError):
    """
    Reading or writing persisted projections failed.

    Persistence is best-effort, so callers log this and carry on.
    """

    def __init__(self, message: str, details: str = None, operation: str = None):
        super().__init__(message, details)
        self.operation = operation


class InsightGenerationError(ForecastError):
    """
    The text-generation service failed or returned something unusable.

    Always recovered with rule-based insights.
    """

    def __init__(self, message: str, details: str = None, raw_response: str = None):
        super().__init__(message, details)
        self.raw_response = raw_response


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating request input before processing.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"


class QueryTimeoutError(Exception):
    """Database query exceeded timeout."""

    def __init__(self, query: str, timeout: float, details: str = None):
        self.query = query[:200] + "..." if len(query) > 200 else query
        self.timeout = timeout
        self.details = details
        message = f"Query timed out after {timeout}s"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)

    def __str__(self) -> str:
        return f"QueryTimeoutError: Query timed out after {self.timeout}s - {self.query}"
