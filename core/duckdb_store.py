"""
DuckDB store for the growth forecast service.

Holds the daily sales fact table (the time-series source) and the
``growth_forecasts`` table (the expiring projection cache).

Domain-specific query methods are organized into repository mixins:
- SalesMixin: daily sales facts (read for forecasting, upsert for ingestion)
- ForecastsMixin: cached projections (select-unexpired, delete-expired, bulk insert)
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, List, Dict, Any, Callable, TypeVar

import duckdb

from core.config import config
from core.exceptions import QueryTimeoutError
from core.observability import get_logger
from core.repositories import SalesMixin, ForecastsMixin

logger = get_logger(__name__)

T = TypeVar("T")


SCHEMA_SQL = """
-- Daily sales facts, one row per organization/location/day
CREATE TABLE IF NOT EXISTS daily_sales_summary (
    organization_id VARCHAR NOT NULL,
    location_id VARCHAR NOT NULL,
    summary_date DATE NOT NULL,
    total_revenue DECIMAL(14, 2),
    service_revenue DECIMAL(14, 2),
    product_revenue DECIMAL(14, 2),
    total_transactions INTEGER,
    ingested_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (organization_id, location_id, summary_date)
);

CREATE INDEX IF NOT EXISTS idx_daily_sales_date ON daily_sales_summary(summary_date);

-- Cached quarterly projections; timestamps are naive UTC
CREATE TABLE IF NOT EXISTS growth_forecasts (
    organization_id VARCHAR NOT NULL,
    location_id VARCHAR,
    forecast_type VARCHAR NOT NULL,
    period_label VARCHAR NOT NULL,
    period_start DATE NOT NULL,
    period_end DATE NOT NULL,
    scenario VARCHAR NOT NULL,
    projected_revenue DOUBLE NOT NULL,
    projected_service_revenue DOUBLE,
    projected_product_revenue DOUBLE,
    growth_rate_qoq DOUBLE,
    growth_rate_yoy DOUBLE,
    confidence_lower DOUBLE,
    confidence_upper DOUBLE,
    momentum VARCHAR,
    seasonality_index DOUBLE,
    insights VARCHAR,
    generated_at TIMESTAMP NOT NULL,
    expires_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_growth_forecasts_org ON growth_forecasts(organization_id, expires_at);
"""


class DuckDBStore(SalesMixin, ForecastsMixin):
    """
    Async-compatible DuckDB store.

    Features:
    - Persistent storage (survives restarts)
    - Schema created on first connect
    - Thread offloading with per-query timeouts to avoid blocking the event loop
    - Single lock: DuckDB connections are not safe for concurrent use
    """

    def __init__(self, db_path: Optional[Path] = None, query_timeout: Optional[float] = None):
        self.db_path = Path(db_path) if db_path else config.store.db_path
        self.query_timeout = query_timeout or config.store.query_timeout_seconds
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    async def connect(self) -> None:
        """Open the database, create the schema and start the worker thread."""
        async with self._lock:
            if self._connection is None:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(str(self.db_path))
                self._connection.execute(SCHEMA_SQL)
                self._executor = ThreadPoolExecutor(
                    max_workers=1,
                    thread_name_prefix="duckdb",
                )
                logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection and thread pool."""
        async with self._lock:
            if self._executor:
                self._executor.shutdown(wait=True)
                self._executor = None

            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    @asynccontextmanager
    async def connection(self):
        """Yield the connection while holding the store lock (connects lazily)."""
        if self._connection is None:
            await self.connect()
        async with self._lock:
            yield self._connection

    # ─── Query Execution with Timeout ────────────────────────────────────────

    async def _run(
        self,
        label: str,
        fn: Callable[[duckdb.DuckDBPyConnection], T],
        timeout: Optional[float] = None,
    ) -> T:
        """
        Run ``fn(conn)`` on the DuckDB worker thread under the store lock.

        Raises:
            QueryTimeoutError: If the work exceeds the timeout
        """
        timeout = timeout or self.query_timeout
        async with self.connection() as conn:
            loop = asyncio.get_running_loop()
            try:
                return await asyncio.wait_for(
                    loop.run_in_executor(self._executor, fn, conn),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                raise QueryTimeoutError(label, timeout, f"{label} failed")

    async def _fetch_all(self, query: str, params: list = None, timeout: float = None) -> List[tuple]:
        """Execute query and fetch all rows."""
        return await self._run(
            query,
            lambda conn: conn.execute(query, params or []).fetchall(),
            timeout,
        )

    async def _execute_many(self, query: str, rows: List[list], timeout: float = None) -> int:
        """Execute a parameterized statement for each row inside one transaction."""
        if not rows:
            return 0

        def _write(conn: duckdb.DuckDBPyConnection) -> int:
            conn.execute("BEGIN TRANSACTION")
            try:
                conn.executemany(query, rows)
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
            return len(rows)

        return await self._run(query, _write, timeout)

    # ─── Monitoring ──────────────────────────────────────────────────────────

    async def get_stats(self) -> Dict[str, Any]:
        """Row counts and date coverage for health checks."""
        def _stats(conn: duckdb.DuckDBPyConnection) -> Dict[str, Any]:
            facts, organizations, min_date, max_date = conn.execute("""
                SELECT COUNT(*), COUNT(DISTINCT organization_id),
                       MIN(summary_date), MAX(summary_date)
                FROM daily_sales_summary
            """).fetchone()
            forecasts = conn.execute("SELECT COUNT(*) FROM growth_forecasts").fetchone()[0]
            return {
                "daily_facts": facts,
                "organizations": organizations,
                "forecast_rows": forecasts,
                "date_range": {
                    "min": min_date.isoformat() if min_date else None,
                    "max": max_date.isoformat() if max_date else None,
                },
                "db_size_mb": round(self.db_path.stat().st_size / 1024 / 1024, 2) if self.db_path.exists() else 0,
            }

        return await self._run("get_stats", _stats)


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_store_instance: Optional[DuckDBStore] = None
_store_lock = asyncio.Lock()


async def get_store() -> DuckDBStore:
    """Get singleton DuckDB store instance (coroutine-safe)."""
    global _store_instance
    async with _store_lock:
        if _store_instance is None:
            _store_instance = DuckDBStore()
            await _store_instance.connect()
    return _store_instance


async def close_store() -> None:
    """Close singleton store instance."""
    global _store_instance
    if _store_instance:
        await _store_instance.close()
        _store_instance = None
