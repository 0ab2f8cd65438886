"""
Background job scheduler using APScheduler.

Manages maintenance tasks:
- Expired forecast purge (every 60 minutes, all organizations)

Features:
- Job execution history
- Prevents job pile-up (max_instances=1, coalesce)
- Graceful shutdown
"""
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Callable
from dataclasses import dataclass
from enum import Enum
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import (
    EVENT_JOB_EXECUTED,
    EVENT_JOB_ERROR,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)

from core.config import SchedulerConfig, config
from core.observability import get_logger, correlation_context

logger = get_logger(__name__)

PURGE_JOB_ID = "purge_expired_forecasts"


class JobStatus(Enum):
    """Job execution status."""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    MISSED = "missed"


@dataclass
class JobExecution:
    """Record of a job execution."""
    job_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: JobStatus = JobStatus.RUNNING
    duration_ms: Optional[float] = None
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None


@dataclass
class JobInfo:
    """Information about a scheduled job."""
    id: str
    name: str
    description: str
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_status: Optional[JobStatus] = None
    last_duration_ms: Optional[float] = None
    run_count: int = 0
    error_count: int = 0
    last_error: Optional[str] = None


class BackgroundScheduler:
    """
    Background job scheduler with monitoring.

    Usage:
        scheduler = BackgroundScheduler()
        await scheduler.start()

        # Later...
        scheduler.shutdown()
    """

    def __init__(self, scheduler_config: Optional[SchedulerConfig] = None):
        self._config = scheduler_config or config.scheduler
        self._timezone = ZoneInfo(self._config.timezone)
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._job_history: Dict[str, List[JobExecution]] = {}
        self._job_info: Dict[str, JobInfo] = {}
        self._max_history = 50  # Keep last N executions per job
        self._started = False

    async def start(self) -> None:
        """Start the scheduler and register all jobs."""
        if self._started:
            logger.warning("Scheduler already started")
            return

        self._scheduler = AsyncIOScheduler(timezone=self._timezone)

        self._scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)

        self._register_jobs()

        self._scheduler.start()
        self._started = True
        self._refresh_next_runs()
        logger.info("Background scheduler started")

    def _register_jobs(self) -> None:
        """Register all background jobs."""
        self._add_job(
            job_id=PURGE_JOB_ID,
            name="Forecast Purge",
            description="Delete expired growth forecast rows for every organization",
            func=self._run_purge_expired_forecasts,
            trigger=IntervalTrigger(minutes=self._config.purge_interval_minutes),
        )

        logger.info(f"Registered {len(self._job_info)} background jobs")

    def _add_job(
        self,
        job_id: str,
        name: str,
        description: str,
        func: Callable,
        trigger,
        max_instances: int = 1,
        coalesce: bool = True,
    ) -> None:
        """Add a job to the scheduler."""
        self._scheduler.add_job(
            func,
            trigger=trigger,
            id=job_id,
            name=name,
            max_instances=max_instances,
            coalesce=coalesce,
            replace_existing=True,
        )
        self._job_info[job_id] = JobInfo(id=job_id, name=name, description=description)
        self._job_history[job_id] = []

    def _refresh_next_runs(self) -> None:
        for job_id, info in self._job_info.items():
            job = self._scheduler.get_job(job_id)
            if job and job.next_run_time:
                info.next_run = job.next_run_time

    # ═══════════════════════════════════════════════════════════════════════════
    # JOB IMPLEMENTATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def _run_purge_expired_forecasts(self) -> Dict[str, Any]:
        """Delete expired forecast rows across all organizations."""
        with correlation_context():
            from core.duckdb_store import get_store

            store = await get_store()
            deleted = await store.purge_expired_forecasts(datetime.now(timezone.utc))

            result = {"deleted": deleted}
            logger.info("Forecast purge job complete", extra=result)
            return result

    # ═══════════════════════════════════════════════════════════════════════════
    # EVENT HANDLERS
    # ═══════════════════════════════════════════════════════════════════════════

    def _finish(self, event: JobExecutionEvent, status: JobStatus, **fields) -> Optional[JobInfo]:
        """Update job info and record an execution. Returns None for unknown jobs."""
        info = self._job_info.get(event.job_id)
        if info is None:
            return None

        finished_at = datetime.now(self._timezone)
        started_at = event.scheduled_run_time or finished_at
        execution = JobExecution(
            job_id=event.job_id,
            started_at=started_at,
            finished_at=finished_at,
            status=status,
            duration_ms=(finished_at - started_at).total_seconds() * 1000,
            **fields,
        )

        info.last_status = status
        if status != JobStatus.MISSED:
            info.last_run = finished_at
            info.last_duration_ms = execution.duration_ms
            info.run_count += 1

        job = self._scheduler.get_job(event.job_id) if self._scheduler else None
        if job and job.next_run_time:
            info.next_run = job.next_run_time

        self._add_execution(event.job_id, execution)
        return info

    def _on_job_executed(self, event: JobExecutionEvent) -> None:
        """Handle successful job execution."""
        self._finish(event, JobStatus.SUCCESS, result=getattr(event, "retval", None))

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        """Handle job execution error."""
        error = str(event.exception) if event.exception else "Unknown error"
        info = self._finish(event, JobStatus.FAILED, error=error)
        if info is None:
            return

        info.error_count += 1
        info.last_error = error
        logger.error(
            f"Job {event.job_id} failed: {error}",
            extra={"job_id": event.job_id, "error": error}
        )

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        """Handle missed job execution."""
        if self._finish(event, JobStatus.MISSED) is None:
            return
        logger.warning(
            f"Job {event.job_id} missed scheduled execution",
            extra={"job_id": event.job_id}
        )

    def _add_execution(self, job_id: str, execution: JobExecution) -> None:
        """Add execution to history, keeping only last N."""
        history = self._job_history.setdefault(job_id, [])
        history.append(execution)
        if len(history) > self._max_history:
            self._job_history[job_id] = history[-self._max_history:]

    # ═══════════════════════════════════════════════════════════════════════════
    # PUBLIC API
    # ═══════════════════════════════════════════════════════════════════════════

    def get_jobs(self) -> List[Dict[str, Any]]:
        """Get list of all jobs with their status."""
        jobs = []
        for job_id, info in self._job_info.items():
            job = self._scheduler.get_job(job_id) if self._scheduler else None
            jobs.append({
                "id": info.id,
                "name": info.name,
                "description": info.description,
                "trigger": str(job.trigger) if job and job.trigger else "",
                "next_run": info.next_run.isoformat() if info.next_run else None,
                "last_run": info.last_run.isoformat() if info.last_run else None,
                "last_status": info.last_status.value if info.last_status else None,
                "last_duration_ms": info.last_duration_ms,
                "run_count": info.run_count,
                "error_count": info.error_count,
                "last_error": info.last_error,
            })
        return jobs

    def get_job_history(self, job_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Get execution history for a job, newest first."""
        history = self._job_history.get(job_id, [])[-limit:]
        return [{
            "started_at": e.started_at.isoformat() if e.started_at else None,
            "finished_at": e.finished_at.isoformat() if e.finished_at else None,
            "status": e.status.value,
            "duration_ms": e.duration_ms,
            "error": e.error,
        } for e in reversed(history)]

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the scheduler."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=wait)
            self._started = False
            logger.info("Background scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._started and self._scheduler is not None


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_scheduler: Optional[BackgroundScheduler] = None


def get_scheduler() -> BackgroundScheduler:
    """Get the singleton scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler()
    return _scheduler


async def start_scheduler() -> BackgroundScheduler:
    """Start the background scheduler."""
    scheduler = get_scheduler()
    await scheduler.start()
    return scheduler


def stop_scheduler() -> None:
    """Stop the background scheduler."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown()
        _scheduler = None
