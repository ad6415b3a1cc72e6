#!/usr/bin/env python3
"""
Run one ingestion job in the foreground.

Usage:
    python -m backend.app.scripts.run_ingestion --source usaspending --state CA
    python -m backend.app.scripts.run_ingestion --source nasbo --state ALL
"""

import sys
import argparse
from datetime import date

import structlog
from dotenv import load_dotenv

load_dotenv()

from backend.app.db.init_db import init_db
from backend.app.logging_config import configure_logging
from backend.app.services.ingestion import JOBS, FetchRequest, PrimeAwardsJob

logger = structlog.get_logger()


def run_ingestion(
    source: str,
    state: str,
    start_date: date = None,
    end_date: date = None,
    include_subawards: bool = True,
):
    """
    Create the schema if needed, then run a job to completion.

    Returns:
        (JobResult or None, final progress snapshot)
    """
    init_db()

    job_class = JOBS[source]
    if job_class is PrimeAwardsJob:
        job = job_class(include_subawards=include_subawards)
    else:
        job = job_class()

    request = FetchRequest(state=state, start_date=start_date, end_date=end_date)
    result = job.run(request)
    return result, job.reporter.snapshot()


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Run a grant ingestion job")
    parser.add_argument(
        "--source",
        choices=sorted(JOBS),
        required=True,
        help="Data source to ingest"
    )
    parser.add_argument(
        "--state",
        type=str,
        required=True,
        help="Two-letter state code, or ALL"
    )
    parser.add_argument(
        "--start-date",
        type=date.fromisoformat,
        help="Window start (YYYY-MM-DD)"
    )
    parser.add_argument(
        "--end-date",
        type=date.fromisoformat,
        help="Window end (YYYY-MM-DD)"
    )
    parser.add_argument(
        "--no-subawards",
        action="store_true",
        help="Skip the sub-award pass after prime awards"
    )

    args = parser.parse_args()
    configure_logging()

    print("\n" + "="*60)
    print(f"INGESTING {args.source.upper()} FOR {args.state.upper()}")
    print("="*60 + "\n")

    try:
        result, snapshot = run_ingestion(
            source=args.source,
            state=args.state,
            start_date=args.start_date,
            end_date=args.end_date,
            include_subawards=not args.no_subawards,
        )
    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user")
        sys.exit(1)

    if result is None:
        print(f"\n❌ Ingestion failed: {snapshot['message'] if snapshot else 'unknown error'}")
        sys.exit(1)

    print(f"\n✅ {result.message}")
    print(f"   Session: {snapshot['session_id']}")
    print(f"   Inserted: {result.records_inserted}")
    print(f"   Sub-awards: {result.subawards_inserted}")
    print(f"   Skipped: {result.skipped}")
    print(f"   Duplicates: {result.duplicates}")
    if snapshot and snapshot["errors"]:
        print(f"   Errors: {len(snapshot['errors'])}")


if __name__ == "__main__":
    main()
