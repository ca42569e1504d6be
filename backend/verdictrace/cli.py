#!/usr/bin/env python3
"""
VerdictTrace CLI - Scan Runner

Runs a cluster detection scan from cron or a shell.

Usage:
    python -m verdictrace.cli scan
    python -m verdictrace.cli scan --threshold 0.6 --min-docs 10 --window-days 30 --interval 1d

Exit Codes:
    0   Scan completed (individual cluster failures are reported in the log)
    1   Scan aborted - aggregation could not be fetched
"""
import argparse
import json
import logging
import sys

from .database import SessionLocal, init_db
from .exceptions import AggregationFetchError
from .services.scan import ScanOrchestrator
from .services.settings_service import SettingsService


logger = logging.getLogger(__name__)


def cmd_scan(args) -> int:
    init_db()
    db = SessionLocal()
    try:
        config = SettingsService(db).get_scan_config(
            confidence_threshold=args.threshold,
            cluster_min_docs=args.min_docs,
            window_days=args.window_days,
            bucket_interval=args.interval,
        )
        try:
            summary = ScanOrchestrator(db).run_scan(config)
        except AggregationFetchError as e:
            if e.summary is not None:
                print("\n".join(e.summary.log), file=sys.stderr)
            else:
                print(f"✗ Scan aborted: {e}", file=sys.stderr)
            return 1
    finally:
        db.close()

    print("\n".join(summary.log))
    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="verdictrace",
        description="VerdictTrace cluster detection",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Run a cluster detection scan")
    scan_parser.add_argument("--threshold", type=float, help="Override the confidence threshold")
    scan_parser.add_argument("--min-docs", type=int, help="Override the minimum cluster size")
    scan_parser.add_argument("--window-days", type=int, help="Days of complaints to aggregate")
    scan_parser.add_argument("--interval", help="Histogram bucket interval (e.g. 1w, 1d)")
    scan_parser.add_argument("--json", action="store_true", help="Also print the summary as JSON")
    scan_parser.set_defaults(func=cmd_scan)

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
