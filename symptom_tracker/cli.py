# -*- coding: utf-8 -*-
"""
CLI tool for the symptom tracker database.

Usage:
    symptom-tracker-cli seed <user_id> [--days 90] [--seed 42] [--reset]
    symptom-tracker-cli recalculate <user_id>
    symptom-tracker-cli trend <user_id> <metric> [--range 30d]
    symptom-tracker-cli cache-stats <user_id>
    symptom-tracker-cli cleanup [--user <user_id>]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .app_db import init_app_db
from .config import settings


def cmd_seed(args: argparse.Namespace) -> int:
    """Seed deterministic demo data."""
    from .analytics.worker import clear_user
    from .demo import seed_demo_data

    if args.reset:
        clear_user(args.user_id)
        print(f"Cleared existing data for {args.user_id}")

    counts = seed_demo_data(args.user_id, days=args.days, seed=args.seed)
    for name, count in counts.items():
        print(f"{name}: {count}")
    return 0


def cmd_recalculate(args: argparse.Namespace) -> int:
    """Run the correlation pass for all time ranges now."""
    from .analytics.worker import scheduler

    summary = scheduler.recalculate(args.user_id, force=True)
    if summary["status"] != "completed":
        print(f"Skipped: {summary['reason']}")
        return 1

    for time_range, stored in summary["stored"].items():
        print(f"{time_range}: {stored} significant correlations")
    print(f"Purged {summary['purged']} stale correlations")
    print(f"Recorded {summary['treatments']} treatment scores, raised {summary['alerts']} alerts")
    return 0


def cmd_trend(args: argparse.Namespace) -> int:
    """Print a metric trend."""
    from .analytics.trends import trend_analysis_service

    try:
        series = trend_analysis_service.fetch_metric_series(args.user_id, args.metric, args.range)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1

    print(f"{series.metadata.get('label', args.metric)}: {len(series.points)} points")
    trend = trend_analysis_service.compute_trend(args.user_id, args.metric, args.range, series=series)
    if trend is None:
        print("Not enough data for a trend.")
        return 0

    interpretation = trend_analysis_service.generate_interpretation(trend, len(series.points))
    print(json.dumps({"trend": trend, "interpretation": interpretation}, indent=2, ensure_ascii=False))
    return 0


def cmd_cache_stats(args: argparse.Namespace) -> int:
    """Show correlation cache statistics."""
    from .analytics.cache import correlation_cache

    stats = correlation_cache.get_stats(args.user_id)
    print(f"Total: {stats['total']}")
    print(f"Active: {stats['active']}")
    print(f"Expired: {stats['expired']}")
    return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Remove expired cache entries."""
    from .analytics.cache import analysis_result_cache, correlation_cache

    correlation_removed = correlation_cache.cleanup_expired(args.user)
    trend_removed = analysis_result_cache.cleanup_expired(args.user)
    print(f"Removed {correlation_removed} correlation and {trend_removed} trend cache entries")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Symptom Tracker CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-path",
        help="Path to the SQLite database (default: SYMTRACK_DB_PATH or data/symptom_tracker.db)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    seed_parser = subparsers.add_parser("seed", help="Seed demo data")
    seed_parser.add_argument("user_id")
    seed_parser.add_argument("--days", type=int, default=90, help="Days of data (default: 90)")
    seed_parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    seed_parser.add_argument("--reset", action="store_true", help="Delete the user's data first")

    recalc_parser = subparsers.add_parser("recalculate", help="Recalculate correlations now")
    recalc_parser.add_argument("user_id")

    trend_parser = subparsers.add_parser("trend", help="Show a metric trend")
    trend_parser.add_argument("user_id")
    trend_parser.add_argument("metric", help="e.g. overallHealth, symptom:bloating, medication-adherence")
    trend_parser.add_argument("--range", default="30d", help="Time range (default: 30d)")

    stats_parser = subparsers.add_parser("cache-stats", help="Show correlation cache statistics")
    stats_parser.add_argument("user_id")

    cleanup_parser = subparsers.add_parser("cleanup", help="Remove expired cache entries")
    cleanup_parser.add_argument("--user", default=None, help="Limit to one user")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.db_path:
        settings.db_path = Path(args.db_path).expanduser()
    init_app_db(settings.db_path)

    commands = {
        "seed": cmd_seed,
        "recalculate": cmd_recalculate,
        "trend": cmd_trend,
        "cache-stats": cmd_cache_stats,
        "cleanup": cmd_cleanup,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
