#!/usr/bin/env python3
"""
Operator CLI for the growth forecast store.

Usage:
    python scripts/forecast_cli.py load daily_sales.csv --org salon-1
    python scripts/forecast_cli.py run --org salon-1 [--location downtown]
    python scripts/forecast_cli.py purge

CSV columns: summary_date, location_id, total_revenue, service_revenue,
product_revenue, total_transactions (location_id and the revenue splits may
be omitted).
"""
import asyncio
import argparse
import csv
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.duckdb_store import DuckDBStore
from core.exceptions import ForecastError, ValidationError
from core.forecast_service import GrowthForecastService
from core.llm_client import get_llm_client, close_llm_client
from core.observability import setup_logging, get_logger
from core.validators import validate_location_id, validate_organization_id

logger = get_logger("forecast_cli")


def read_facts_csv(path: Path) -> List[Dict[str, Any]]:
    """Read daily fact rows from a CSV file with a header row."""
    with open(path, newline="", encoding="utf-8") as f:
        rows = [row for row in csv.DictReader(f) if row.get("summary_date")]
    logger.info(f"Read {len(rows)} rows from {path}")
    return rows


async def cmd_load(store: DuckDBStore, args) -> int:
    organization_id = validate_organization_id(args.org)
    rows = read_facts_csv(Path(args.csv))
    written = await store.upsert_daily_sales(organization_id, rows)
    stats = await store.get_stats()
    logger.info(
        f"Loaded {written} daily facts for {organization_id} "
        f"(store now holds {stats['daily_facts']} facts, range {stats['date_range']})"
    )
    return 0


async def cmd_run(store: DuckDBStore, args) -> int:
    organization_id = validate_organization_id(args.org)
    location_id = validate_location_id(args.location)

    llm_client = None if args.no_llm else get_llm_client()
    service = GrowthForecastService(store, llm_client=llm_client)
    try:
        result = await service.get_forecast(organization_id, location_id)
    finally:
        await close_llm_client()

    print(json.dumps(result, indent=2, default=str))
    return 0


async def cmd_purge(store: DuckDBStore, args) -> int:
    deleted = await store.purge_expired_forecasts(datetime.now(timezone.utc))
    logger.info(f"Purged {deleted} expired forecast rows")
    return 0


COMMANDS = {
    "load": cmd_load,
    "run": cmd_run,
    "purge": cmd_purge,
}


async def main(args) -> int:
    store = DuckDBStore(db_path=args.db)
    await store.connect()
    try:
        return await COMMANDS[args.command](store, args)
    except (ValidationError, ForecastError) as e:
        logger.error(str(e))
        return 1
    finally:
        await store.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Growth forecast operator tools")
    parser.add_argument("--db", type=Path, default=None, help="DuckDB file (default: FORECAST_DB_PATH)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    load = sub.add_parser("load", help="Upsert daily sales facts from a CSV file")
    load.add_argument("csv", help="Path to CSV file")
    load.add_argument("--org", required=True, help="Organization ID")

    run = sub.add_parser("run", help="Print the growth forecast JSON for an organization")
    run.add_argument("--org", required=True, help="Organization ID")
    run.add_argument("--location", default=None, help="Location ID (default: all locations)")
    run.add_argument("--no-llm", action="store_true", help="Skip LLM insights")

    sub.add_parser("purge", help="Delete expired forecast rows for every organization")

    return parser


if __name__ == "__main__":
    args = build_parser().parse_args()
    setup_logging(level="DEBUG" if args.verbose else "INFO")
    sys.exit(asyncio.run(main(args)))
