"""Weekly recurrence expansion.

Turns a schedule template plus its RecurringPattern into the concrete
occurrences that get written next to the template. Pure and deterministic:
no I/O, no clock reads (callers pass ``now``).

Weeks are anchored to the Sunday on or before the template start, so an
``interval`` of 2 means "every other calendar week counted from that
Sunday", not "every 14 days from the first occurrence".
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo

from src.scheduling.models import (
    RecurrenceFrequency,
    RecurringPattern,
    ScheduleData,
    ScheduleStatus,
)

MAX_INSTANCES = 100
DEFAULT_HORIZON_DAYS = 365


@dataclass(frozen=True)
class Occurrence:
    """Start/end of one generated instance."""

    start: datetime
    end: datetime


def week_anchor(moment: datetime) -> datetime:
    """Same wall-clock time on the Sunday on or before ``moment``."""
    # datetime.weekday(): Monday=0 ... Sunday=6; pattern days use Sunday=0
    days_since_sunday = (moment.weekday() + 1) % 7
    return moment - timedelta(days=days_since_sunday)


def _elapsed(start: datetime, end: datetime) -> timedelta:
    if start.tzinfo is None:
        return end - start
    return end.astimezone(timezone.utc) - start.astimezone(timezone.utc)


def _shift(moment: datetime, delta: timedelta) -> datetime:
    """Add real elapsed time; aware arithmetic in one zone is wall-clock."""
    if moment.tzinfo is None:
        return moment + delta
    return (moment.astimezone(timezone.utc) + delta).astimezone(moment.tzinfo)


def _end_limit(start: datetime, pattern: RecurringPattern, horizon_days: int) -> datetime:
    if pattern.end_date is None:
        return start + timedelta(days=horizon_days)
    end = pattern.end_date
    if end.tzinfo is None and start.tzinfo is not None:
        end = end.replace(tzinfo=start.tzinfo)
    elif end.tzinfo is not None and start.tzinfo is not None:
        end = end.astimezone(start.tzinfo)
    return end


def occurrences(
    start: datetime,
    end: datetime,
    pattern: RecurringPattern,
    *,
    max_instances: int = MAX_INSTANCES,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> list[Occurrence]:
    """Expand a weekly pattern starting at ``start`` lasting ``end - start``.

    Wall-clock arithmetic happens in ``start``'s own timezone; pass a
    localized datetime if weekdays should follow local time.
    """
    if pattern.frequency != RecurrenceFrequency.WEEKLY or not pattern.days_of_week:
        return []

    cap = max_instances
    if pattern.end_after is not None:
        cap = min(cap, pattern.end_after)

    duration = _elapsed(start, end)
    limit = _end_limit(start, pattern, horizon_days)
    anchor = week_anchor(start)
    days = sorted(pattern.days_of_week)
    tz: tzinfo | None = start.tzinfo

    result: list[Occurrence] = []
    week = 0
    while len(result) < cap:
        week_start = anchor + timedelta(weeks=week)
        if week_start > limit:
            break
        if week % pattern.interval == 0:
            for day in days:
                # Rebuild from the calendar date so DST shifts keep wall time
                day_date = (week_start + timedelta(days=day)).date()
                candidate = datetime.combine(day_date, start.time(), tzinfo=tz)
                if start <= candidate <= limit:
                    result.append(Occurrence(candidate, _shift(candidate, duration)))
                    if len(result) >= cap:
                        break
        week += 1

    return result


def expand(
    template: ScheduleData,
    *,
    created_by: str,
    now: datetime,
    local_tz: tzinfo | None = None,
    max_instances: int = MAX_INSTANCES,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> list[dict]:
    """Build the instance documents for a recurring template.

    Every instance copies the template's non-recurrence fields, carries
    ``isRecurringInstance=True`` and an empty ``parentScheduleId`` that the
    caller fills in once the template id is known.

    Args:
        template: The validated create payload with ``recurring_pattern`` set.
        created_by: User id stamped on every instance.
        now: Creation timestamp for ``createdAt`` / ``updatedAt``.
        local_tz: Zone whose weekdays and wall clock the pattern refers to.
            Defaults to the template's own (UTC) timestamps.
        max_instances: Hard cap on generated instances.
        horizon_days: End bound used when the pattern has no ``end_date``.

    Returns:
        List of camelCase documents ready to be written.
    """
    pattern = template.recurring_pattern
    if not template.is_recurring or pattern is None:
        return []

    start, end = template.start_time, template.end_time
    if local_tz is not None:
        start, end = start.astimezone(local_tz), end.astimezone(local_tz)

    shared = template.model_copy(
        update={"is_recurring": False, "recurring_pattern": None}
    ).to_document(exclude={"start_time", "end_time"})

    instances = []
    for occ in occurrences(
        start, end, pattern, max_instances=max_instances, horizon_days=horizon_days
    ):
        instance = ScheduleData.model_validate(
            {**shared, "startTime": occ.start, "endTime": occ.end}
        ).to_document()
        instance.update(
            {
                "isRecurring": False,
                "isRecurringInstance": True,
                "parentScheduleId": "",
                "createdBy": created_by,
                "createdAt": now.isoformat(timespec="microseconds"),
                "updatedAt": now.isoformat(timespec="microseconds"),
                "status": ScheduleStatus.ACTIVE.value,
            }
        )
        instances.append(instance)
    return instances
