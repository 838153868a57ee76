"""Preview the instances a weekly recurring schedule would generate.

Dry-run only: nothing is written. Uses the same expander and limits
(instance cap, default horizon, local timezone) as schedule creation.

Run with: python scripts/preview_recurrence.py --start 2025-03-03T09:00 --end 2025-03-03T10:30 --days 1,3
Interval: python scripts/preview_recurrence.py ... --interval 2 --until 2025-06-30
JSON:     python scripts/preview_recurrence.py ... --json

Days use 0=Sunday ... 6=Saturday. --start/--end are local wall-clock
times in the configured timezone (SCHEDULING_TIMEZONE).

Exit codes:
  0 = success (table or JSON on stdout)
  1 = invalid arguments (message on stderr)
"""

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from pydantic import ValidationError  # noqa: E402

from src.scheduling.config import get_config  # noqa: E402
from src.scheduling.logging import setup_logging_from_config  # noqa: E402
from src.scheduling.models import RecurringPattern, ScheduleData  # noqa: E402
from src.scheduling.recurrence import expand  # noqa: E402

_DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Preview the instances of a weekly recurring schedule.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--start", required=True, help="Template start (YYYY-MM-DDTHH:MM).")
    parser.add_argument("--end", required=True, help="Template end (YYYY-MM-DDTHH:MM).")
    parser.add_argument(
        "--days",
        required=True,
        help="Comma-separated weekday indices, 0=Sunday (e.g. 1,3 for Mon/Wed).",
    )
    parser.add_argument("--interval", type=int, default=1, help="Repeat every N weeks.")
    parser.add_argument("--until", default=None, help="Last day (YYYY-MM-DD), inclusive.")
    parser.add_argument("--count", type=int, default=None, help="Stop after N occurrences.")
    parser.add_argument("--title", default="Preview", help="Schedule title.")
    parser.add_argument("--json", action="store_true", help="Output JSON instead of a table.")
    return parser.parse_args(argv)


def build_template(args: argparse.Namespace, tz: ZoneInfo) -> ScheduleData:
    """Turn CLI arguments into a recurring ScheduleData (raises on bad input)."""
    days = [int(d) for d in args.days.split(",") if d.strip()]
    return ScheduleData(
        title=args.title,
        type="class",
        start_time=datetime.fromisoformat(args.start).replace(tzinfo=tz),
        end_time=datetime.fromisoformat(args.end).replace(tzinfo=tz),
        is_recurring=True,
        recurring_pattern=RecurringPattern(
            days_of_week=days,
            interval=args.interval,
            end_date=args.until,
            end_after=args.count,
        ),
    )


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    config = get_config()
    setup_logging_from_config(config)
    tz = ZoneInfo(config.timezone)

    try:
        template = build_template(args, tz)
    except (ValueError, ValidationError) as e:
        _log(f"Invalid recurrence: {e}")
        return 1

    instances = expand(
        template,
        created_by="preview",
        now=datetime.now(timezone.utc),
        local_tz=tz,
        max_instances=config.recurrence_max_instances,
        horizon_days=config.recurrence_horizon_days,
    )

    if args.json:
        print(json.dumps(instances, indent=2, ensure_ascii=False))
        return 0

    print(f"{len(instances)} instance(s) in {config.timezone}:")
    for instance in instances:
        start = datetime.fromisoformat(instance["startTime"]).astimezone(tz)
        end = datetime.fromisoformat(instance["endTime"]).astimezone(tz)
        day = _DAY_NAMES[(start.weekday() + 1) % 7]
        print(f"  {day} {start:%Y-%m-%d %H:%M} - {end:%H:%M}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
