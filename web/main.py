"""
FastAPI web application for the Growth Forecast service.
"""
import os
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
from starlette.middleware.gzip import GZipMiddleware

from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from web.config import CORS_ORIGINS, VERSION
from web.routes import api
from web.routes.api._deps import limiter
from web.middleware import (
    EmptyPreflightCORSMiddleware,
    RequestLoggingMiddleware,
    RequestTimeoutMiddleware,
)
from core.config import config, validate_config, ConfigurationError
from core.duckdb_store import get_store, close_store
from core.exceptions import DataFetchError, ValidationError
from core.forecast_service import reset_forecast_service
from core.llm_client import close_llm_client
from core.observability import setup_logging, get_logger, metrics
from core.scheduler import start_scheduler, stop_scheduler

# Configure structured logging
# Use JSON format in production (LOG_FORMAT=json), human-readable otherwise
log_format = os.getenv("LOG_FORMAT", "text")
log_level = os.getenv("LOG_LEVEL", "INFO")
setup_logging(level=log_level, json_format=(log_format == "json"))
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Growth Forecast",
    description="Quarterly revenue growth forecasts with scenario projections",
    version=VERSION,
    default_response_class=ORJSONResponse
)

# Add rate limiter to app state
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
    return ORJSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": "Too many requests. Please try again later.",
            "retry_after": exc.detail
        }
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info(f"Rejected request: {exc}")
    return ORJSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(DataFetchError)
async def data_fetch_error_handler(request: Request, exc: DataFetchError):
    metrics.record_error("DataFetchError")
    return ORJSONResponse(status_code=500, content={"error": exc.message})


# Add request logging middleware (adds correlation IDs and timing)
app.add_middleware(RequestLoggingMiddleware)

# Add request timeout middleware (prevents long-running requests)
# Must be AFTER logging so correlation_id is set when timeout fires
app.add_middleware(RequestTimeoutMiddleware)

# Add Gzip compression (min 500 bytes to compress)
app.add_middleware(GZipMiddleware, minimum_size=500)

# Browser dashboards call the API cross-origin
app.add_middleware(
    EmptyPreflightCORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)

# Include routers
app.include_router(api.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info(f"Growth Forecast service v{VERSION} starting...")

    # Validate configuration early - fail fast with clear errors
    try:
        validate_config()
        logger.info("Configuration validated")
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        raise SystemExit(1)

    try:
        store = await get_store()
        stats = await store.get_stats()
        logger.info(
            f"DuckDB ready: {stats['daily_facts']} daily facts, "
            f"{stats['organizations']} organizations, "
            f"{stats['forecast_rows']} cached forecast rows, "
            f"{stats['db_size_mb']} MB"
        )
    except Exception as e:
        logger.error(f"DuckDB initialization failed: {e}", exc_info=True)
        raise  # Fail fast - DuckDB is required

    if not config.insights.enabled or not config.insights.anthropic_api_key:
        logger.info("LLM insights not configured, using rule-based insights")

    if config.scheduler.enabled:
        try:
            await start_scheduler()
        except Exception as e:
            # Non-fatal - expired rows are also replaced on each recompute
            logger.error(f"Scheduler initialization failed: {e}", exc_info=True)

    logger.info("Growth Forecast service ready")


@app.on_event("shutdown")
async def shutdown_event():
    # Stop scheduler first (graceful shutdown of background jobs)
    try:
        stop_scheduler()
    except Exception as e:
        logger.warning(f"Error stopping scheduler: {e}")

    try:
        await close_llm_client()
    except Exception as e:
        logger.warning(f"Error closing LLM client: {e}")

    reset_forecast_service()

    try:
        await close_store()
        logger.info("DuckDB closed")
    except Exception as e:
        logger.warning(f"Error closing DuckDB: {e}")

    logger.info("Growth Forecast service stopped")
