#!/usr/bin/env python
# scripts/warm_cache.py

import argparse
import os
import sys
from datetime import date, datetime

# This script is intended to be run from the command line (e.g. a nightly cron job).
# It needs access to the main Flask application context.
# We add the project's root directory to the Python path to allow imports.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from prayer_gateway import create_app
from prayer_gateway.metrics import WARM_CACHE_RUNS_TOTAL
from prayer_gateway.services.prayer_time.exceptions import PrayerTimeServiceError
from prayer_gateway.services.prayer_time_service import warm_location_cache


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Pre-fetch upcoming days of prayer times for one location into the cache.")
    parser.add_argument('--lat', type=float, required=True, help="Latitude of the location.")
    parser.add_argument('--lon', type=float, required=True, help="Longitude of the location.")
    parser.add_argument('--days', type=int, default=7, help="Number of consecutive days to warm (default: 7).")
    parser.add_argument('--start', type=lambda s: datetime.strptime(s, '%Y-%m-%d').date(), default=None,
                        help="First day to warm, as YYYY-MM-DD (default: today).")
    parser.add_argument('--method', type=int, default=None, help="Calculation method id (default: configured default).")
    parser.add_argument('--school', type=int, default=None, help="Asr school, 0 (Shafi) or 1 (Hanafi).")
    return parser.parse_args(argv)


def warm_cache(args, app=None):
    """
    Warms the cache for the requested location and returns the run summary,
    or None if the run could not start.

    Workflow:
    1. Build the app (or use the one given) and enter its context.
    2. Fetch each day through the normal gateway path, so days already cached are
       left alone and new days are stored until their local midnight.
    3. Report how many days were fetched, already cached, or failed.
    """
    app = app or create_app(os.getenv('FLASK_CONFIG') or 'default')
    with app.app_context():
        start_date = args.start or date.today()
        print(f"--- Warming cache for ({args.lat}, {args.lon}): {args.days} day(s) from {start_date.isoformat()} ---")

        try:
            summary = warm_location_cache(
                args.lat, args.lon, start_date, args.days,
                method_id=args.method, school=args.school,
            )
        except PrayerTimeServiceError as e:
            WARM_CACHE_RUNS_TOTAL.labels(status='error').inc()
            print(f"ERROR: Cache warm-up could not start. Details: {e}")
            return None

        status = 'partial' if summary['failed'] else 'success'
        WARM_CACHE_RUNS_TOTAL.labels(status=status).inc()
        print(f"INFO: Fetched {summary['fetched']}, already cached {summary['cached']}, failed {summary['failed']}.")
        print("--- Cache warm-up finished. ---")
        return summary


if __name__ == '__main__':
    result = warm_cache(parse_args())
    sys.exit(0 if result is not None and not result['failed'] else 1)
