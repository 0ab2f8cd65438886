"""
Integration tests for core/scheduler.py
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)

from core.config import SchedulerConfig
from core.scheduler import PURGE_JOB_ID, BackgroundScheduler, JobInfo, JobStatus


def _event(code, job_id=PURGE_JOB_ID, retval=None, exception=None):
    scheduled = datetime.now(timezone.utc) - timedelta(milliseconds=50)
    return JobExecutionEvent(code, job_id, "default", scheduled, retval=retval, exception=exception)


@pytest.fixture
def scheduler():
    return BackgroundScheduler(SchedulerConfig(enabled=True, purge_interval_minutes=15))


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_registers_purge_job(self, scheduler):
        await scheduler.start()
        try:
            assert scheduler.is_running
            jobs = scheduler.get_jobs()
            assert [job["id"] for job in jobs] == [PURGE_JOB_ID]
            assert jobs[0]["next_run"] is not None
            assert "0:15:00" in jobs[0]["trigger"]
        finally:
            scheduler.shutdown(wait=False)

        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, scheduler):
        await scheduler.start()
        try:
            await scheduler.start()
            assert len(scheduler.get_jobs()) == 1
        finally:
            scheduler.shutdown(wait=False)


class TestPurgeJob:

    @pytest.mark.asyncio
    async def test_purges_all_organizations(self, scheduler):
        store = MagicMock()
        store.purge_expired_forecasts = AsyncMock(return_value=36)

        with patch("core.duckdb_store.get_store", AsyncMock(return_value=store)):
            result = await scheduler._run_purge_expired_forecasts()

        assert result == {"deleted": 36}
        cutoff = store.purge_expired_forecasts.call_args[0][0]
        assert cutoff.tzinfo is not None


class TestExecutionTracking:

    @pytest.mark.asyncio
    async def test_success_and_failure_recorded(self, scheduler):
        await scheduler.start()
        try:
            scheduler._on_job_executed(_event(EVENT_JOB_EXECUTED, retval={"deleted": 3}))
            scheduler._on_job_error(_event(EVENT_JOB_ERROR, exception=RuntimeError("db locked")))
            scheduler._on_job_missed(_event(EVENT_JOB_MISSED))

            job = scheduler.get_jobs()[0]
            history = scheduler.get_job_history(PURGE_JOB_ID)
        finally:
            scheduler.shutdown(wait=False)

        assert job["run_count"] == 2
        assert job["error_count"] == 1
        assert job["last_error"] == "db locked"
        assert job["last_status"] == JobStatus.MISSED.value
        assert [h["status"] for h in history] == ["missed", "failed", "success"]
        assert history[2]["duration_ms"] > 0

    @pytest.mark.asyncio
    async def test_unknown_job_events_ignored(self, scheduler):
        await scheduler.start()
        try:
            scheduler._on_job_error(_event(EVENT_JOB_ERROR, job_id="other", exception=RuntimeError("x")))
            assert scheduler.get_job_history("other") == []
        finally:
            scheduler.shutdown(wait=False)

    def test_history_capped(self, scheduler):
        scheduler._job_info[PURGE_JOB_ID] = JobInfo(id=PURGE_JOB_ID, name="Forecast Purge", description="")
        for _ in range(60):
            scheduler._on_job_executed(_event(EVENT_JOB_EXECUTED))

        assert len(scheduler._job_history[PURGE_JOB_ID]) == 50
        assert len(scheduler.get_job_history(PURGE_JOB_ID, limit=5)) == 5
