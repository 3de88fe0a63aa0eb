"""
Command-line front end for the feeding log.
"""

from __future__ import annotations

import argparse
import logging
import math
import os
import sys
import time

from feedlog_client.api import RecordsApi
from feedlog_client.cache import JsonFileCache
from feedlog_client.config import ClientSettings, get_client_settings
from feedlog_client.tracker import FeedingTracker, MutationResult, SyncOutcome

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = os.path.join("~", ".cache", "feedlog", "cache.json")


def _amount(value: str):
    number = float(value)
    if not math.isfinite(number):
        raise argparse.ArgumentTypeError(f"amount must be a finite number: {value}")
    return int(number) if number.is_integer() else number


def build_tracker(settings: ClientSettings) -> FeedingTracker:
    cache_path = os.path.expanduser(settings.cache_path or DEFAULT_CACHE_PATH)
    api = RecordsApi(settings.base_url, timeout=settings.request_timeout)
    return FeedingTracker(api, JsonFileCache(cache_path), settings=settings)


def _print_result(action: str, result: MutationResult) -> int:
    if result.outcome is SyncOutcome.SYNCED:
        print(f"{action}: ok")
        return 0
    if result.outcome is SyncOutcome.SAVED_LOCALLY:
        print(f"{action}: {result.message} (will sync on next refresh)")
        return 0
    print(f"{action} failed: {result.message}")
    return 1


def _print_day(tracker: FeedingTracker) -> None:
    label = " (today)" if tracker.is_today else ""
    print(f"{tracker.selected_date}{label}: {tracker.day_total()} ml in {tracker.day_count()} feedings")
    for record in tracker.day_records():
        print(f"  {record.get('displayTime', '--:--')}  {record.get('amount')} ml  [{record.get('id')}]")
    doses = " ".join("x" if taken else "-" for taken in tracker.d3_for())
    print(f"D3: {doses}")
    print(f"Last feed: {tracker.time_since_last_feed()}")


def cmd_list(tracker: FeedingTracker, args) -> int:
    if args.date:
        tracker.select_date(args.date)
    tracker.refresh()
    _print_day(tracker)
    return 0


def cmd_add(tracker: FeedingTracker, args) -> int:
    tracker.refresh()
    return _print_result("Add", tracker.add(args.amount))


def cmd_edit(tracker: FeedingTracker, args) -> int:
    tracker.refresh()
    tracker.begin_edit(args.id)
    result = tracker.save_edit(amount=args.amount, display_time=args.time)
    return _print_result("Edit", result)


def cmd_delete(tracker: FeedingTracker, args) -> int:
    tracker.refresh()
    tracker.request_delete(args.id)
    if not args.yes:
        answer = input(f"Delete record {args.id}? [y/N] ").strip().lower()
        if answer != "y":
            tracker.cancel()
            print("Cancelled")
            return 0
    return _print_result("Delete", tracker.confirm_delete())


def cmd_d3(tracker: FeedingTracker, args) -> int:
    if args.date:
        tracker.select_date(args.date)
    tracker.refresh_d3()
    if args.dose is None:
        print(f"D3 {tracker.selected_date}: {tracker.d3_for()}")
        return 0
    return _print_result("D3", tracker.toggle_d3(args.dose - 1))


def cmd_stats(tracker: FeedingTracker, args) -> int:
    tracker.refresh()
    print("Last 15 days:")
    for point in tracker.trend():
        print(f"  {point.label:>5}  {point.total:>6} ml")
    print("History:")
    for date_string, total in tracker.history():
        print(f"  {date_string}  {total} ml")
    return 0


def cmd_watch(tracker: FeedingTracker, args) -> int:
    interval = tracker.settings.clock_interval_seconds
    try:
        while True:
            if tracker.tick():
                logger.info("Refreshed %d records", len(tracker.records))
            print(
                f"{tracker.today} today: {tracker.day_total()} ml, "
                f"last feed {tracker.time_since_last_feed()}"
            )
            if args.once:
                return 0
            time.sleep(interval)
    except KeyboardInterrupt:
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Infant feeding log client")
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Server root (overrides FEEDLOG_BASE_URL)",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="Show one day's feedings")
    p.add_argument("--date", type=str, default=None, help="YYYY-MM-DD")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("add", help="Log a feeding now")
    p.add_argument("amount", type=_amount, help="Volume in ml")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("edit", help="Change a feeding's amount or time")
    p.add_argument("id", type=str)
    p.add_argument("--amount", type=_amount, default=None)
    p.add_argument("--time", type=str, default=None, help="HH:MM")
    p.set_defaults(func=cmd_edit)

    p = sub.add_parser("delete", help="Delete a feeding")
    p.add_argument("id", type=str)
    p.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("d3", help="Show or toggle the D3 checklist")
    p.add_argument("dose", type=int, nargs="?", choices=[1, 2], default=None)
    p.add_argument("--date", type=str, default=None, help="YYYY-MM-DD")
    p.set_defaults(func=cmd_d3)

    p = sub.add_parser("stats", help="Daily totals and 15-day trend")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("watch", help="Keep polling and show time since last feed")
    p.add_argument("--once", action="store_true", help="Run a single tick and exit")
    p.set_defaults(func=cmd_watch)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_client_settings()
    if args.base_url:
        settings = settings.model_copy(update={"base_url": args.base_url})
    tracker = build_tracker(settings)
    try:
        return args.func(tracker, args)
    except (KeyError, ValueError, IndexError) as exc:
        print(f"Error: {exc}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
