"""Health check, metrics and job status endpoints."""
import time

from fastapi import APIRouter, Request

from core.config import config
from core.observability import get_correlation_id, metrics, Timer
from core.scheduler import get_scheduler
from web.config import HEALTH_RATE_LIMIT, VERSION
from web.schemas import HealthResponse, MetricsResponse
from ._deps import limiter, get_store, get_logger, START_TIME

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
@limiter.limit(HEALTH_RATE_LIMIT)
async def health_check(request: Request):
    """Health check endpoint for Docker/load balancer monitoring."""
    store_stats = None
    db_latency_ms = None
    try:
        with Timer("health_check_db") as timer:
            store = await get_store()
            store_stats = await store.get_stats()
        store_status = "connected"
        db_latency_ms = round(timer.elapsed_ms, 2)
    except Exception as e:
        logger.warning(f"Health check store query failed: {e}")
        store_status = f"error: {e}"

    scheduler = get_scheduler()

    return {
        "status": "healthy" if store_stats is not None else "degraded",
        "version": VERSION,
        "uptime_seconds": int(time.time() - START_TIME),
        "correlation_id": get_correlation_id(),
        "duckdb": {
            "status": store_status,
            "latency_ms": db_latency_ms,
            **(store_stats or {}),
        },
        "scheduler": {
            "running": scheduler.is_running,
            "jobs": scheduler.get_jobs() if scheduler.is_running else [],
        },
        "insights_enabled": bool(config.insights.enabled and config.insights.anthropic_api_key),
    }


@router.get("/metrics", response_model=MetricsResponse)
@limiter.limit(HEALTH_RATE_LIMIT)
async def get_metrics_endpoint(request: Request):
    """Get application metrics."""
    return {
        "uptime_seconds": int(time.time() - START_TIME),
        "correlation_id": get_correlation_id(),
        **metrics.get_stats(),
    }


@router.get("/jobs")
@limiter.limit(HEALTH_RATE_LIMIT)
async def get_jobs(request: Request):
    """Background job status with recent execution history."""
    scheduler = get_scheduler()
    if not scheduler.is_running:
        return {"status": "not_running", "jobs": []}

    jobs = scheduler.get_jobs()
    for job in jobs:
        job["history"] = scheduler.get_job_history(job["id"], limit=5)
    return {"status": "running", "jobs": jobs}
