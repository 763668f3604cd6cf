"""Command-line entry points for the scheduled jobs.

Usage:
    watchtime poll twitch                  # every 5 minutes
    watchtime rollup [--day 2026-10-18]    # once a day
    watchtime repair [--apply] [--fields hours_watched_week ...]

Each command is a single run-to-completion invocation meant for cron or a
CI scheduler. Exit status is non-zero only for configuration errors; upstream
failures during a poll are logged and reflected in the run summary.
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date

from watchtime.core.config import settings
from watchtime.core.errors import WatchtimeException
from watchtime.core.logging import setup_logging
from watchtime.db.base import SessionLocal
from watchtime.models.creator import Platform
from watchtime.services.platforms import build_client
from watchtime.services.polling_cycle import run_polling_cycle
from watchtime.services.repair import REPAIRABLE_FIELDS, run_repair
from watchtime.services.rollup import run_rollup

logger = logging.getLogger("watchtime.cli")


def _cmd_poll(args: argparse.Namespace) -> int:
    with SessionLocal() as db, build_client(args.platform, settings) as client:
        result = run_polling_cycle(db, args.platform, client, settings=settings)
    print(
        f"{result.platform}: {result.creators} creators, {result.live} live, "
        f"{result.unknown} unknown | started {result.sessions_started}, "
        f"ended {result.sessions_ended}, samples {result.samples_recorded}, "
        f"skipped writes {result.skipped_writes}"
    )
    return 0


def _cmd_rollup(args: argparse.Namespace) -> int:
    with SessionLocal() as db:
        result = run_rollup(db, day=args.day, platform=args.platform)
    print(
        f"rollup {result.day} ({result.timezone}): {result.rows_written} rows, "
        f"{result.creators_with_hours} creators with 30-day hours"
    )
    return 0


def _cmd_repair(args: argparse.Namespace) -> int:
    fields = args.fields or settings.quality_repair_fields
    with SessionLocal() as db:
        report = run_repair(db, fields=fields, dry_run=not args.apply)
    verb = "would fix" if report.dry_run else "fixed"
    for change in report.changes:
        print(f"  creator {change.creator_id} {change.day} {change.field}: "
              f"{change.old_value} -> {change.new_value}")
    print(
        f"repair: {report.rows_scanned} rows scanned, {verb} {report.fixed_values}/"
        f"{report.bad_values} bad values ({report.unrecoverable_values} unrecoverable), "
        f"{report.sessions_refinalized} sessions re-finalized"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="watchtime", description="Watch-time tracking jobs")
    sub = parser.add_subparsers(dest="command", required=True)

    poll = sub.add_parser("poll", help="run one polling cycle")
    poll.add_argument("platform", choices=[p.value for p in Platform])
    poll.set_defaults(func=_cmd_poll)

    rollup = sub.add_parser("rollup", help="recompute daily stats")
    rollup.add_argument("--day", type=date.fromisoformat, default=None,
                        help="calendar day (YYYY-MM-DD); default today in ROLLUP_TIMEZONE")
    rollup.add_argument("--platform", choices=[p.value for p in Platform], default=None)
    rollup.set_defaults(func=_cmd_rollup)

    repair = sub.add_parser("repair", help="carry forward good values over corrupted rows")
    repair.add_argument("--apply", action="store_true", help="write changes (default: dry run)")
    repair.add_argument("--fields", nargs="+", choices=REPAIRABLE_FIELDS, default=None)
    repair.set_defaults(func=_cmd_repair)

    return parser


def main(argv: list[str] | None = None) -> int:
    setup_logging(settings)
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except WatchtimeException as exc:
        logger.error("%s: %s", exc.code, exc.message)
        return 2


if __name__ == "__main__":
    sys.exit(main())
