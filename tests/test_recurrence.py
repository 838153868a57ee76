"""Unit tests for weekly recurrence expansion."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from src.scheduling.models import RecurringPattern, ScheduleData
from src.scheduling.recurrence import expand, occurrences, week_anchor

UTC = timezone.utc
MONDAY = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
DURATION = timedelta(minutes=90)


def _pattern(**kwargs) -> RecurringPattern:
    return RecurringPattern(**kwargs)


def test_mondays_and_wednesdays_for_one_month():
    pattern = _pattern(days_of_week=[1, 3], end_date="2024-01-31")

    result = occurrences(MONDAY, MONDAY + DURATION, pattern)

    expected_days = [1, 3, 8, 10, 15, 17, 22, 24, 29, 31]
    assert [o.start.day for o in result] == expected_days
    assert all(o.start.month == 1 and o.start.year == 2024 for o in result)
    assert all(o.end - o.start == DURATION for o in result)
    assert all(o.start.time() == MONDAY.time() for o in result)
    assert max(o.start for o in result) <= datetime(2024, 1, 31, 23, 59, 59, tzinfo=UTC)


def test_interval_two_skips_alternate_weeks():
    pattern = _pattern(days_of_week=[1, 5], interval=2, end_date="2024-04-30")

    result = occurrences(MONDAY, MONDAY + DURATION, pattern)

    anchor = week_anchor(MONDAY)
    weeks = sorted({(week_anchor(o.start) - anchor).days // 7 for o in result})
    assert weeks, "expected some instances"
    assert all(w % 2 == 0 for w in weeks)
    assert all(b - a >= 2 for a, b in zip(weeks, weeks[1:]))


def test_hard_cap_of_100_instances():
    pattern = _pattern(days_of_week=list(range(7)), end_date="2030-12-31")

    result = occurrences(MONDAY, MONDAY + DURATION, pattern)

    assert len(result) == 100


def test_end_after_caps_occurrences():
    pattern = _pattern(days_of_week=[1, 3], end_after=3)

    result = occurrences(MONDAY, MONDAY + DURATION, pattern)

    assert [o.start.date() for o in result] == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 8)]


def test_default_horizon_is_one_year():
    pattern = _pattern(days_of_week=[1])

    result = occurrences(MONDAY, MONDAY + DURATION, pattern)

    assert result[-1].start <= MONDAY + timedelta(days=365)
    assert len(result) == 53


def test_empty_days_or_non_weekly_frequency_yield_nothing():
    assert occurrences(MONDAY, MONDAY + DURATION, _pattern(days_of_week=[])) == []
    assert occurrences(
        MONDAY, MONDAY + DURATION, _pattern(frequency="daily", days_of_week=[1])
    ) == []


def test_template_day_not_in_pattern_starts_at_next_matching_day():
    tuesday = datetime(2024, 1, 2, 18, 30, tzinfo=UTC)
    pattern = _pattern(days_of_week=[1], end_date="2024-01-20")

    result = occurrences(tuesday, tuesday + DURATION, pattern)

    assert [o.start for o in result] == [
        datetime(2024, 1, 8, 18, 30, tzinfo=UTC),
        datetime(2024, 1, 15, 18, 30, tzinfo=UTC),
    ]


def test_earlier_days_in_start_week_are_skipped():
    wednesday = datetime(2024, 1, 3, 9, 0, tzinfo=UTC)
    pattern = _pattern(days_of_week=[1, 3], end_date="2024-01-08")

    result = occurrences(wednesday, wednesday + DURATION, pattern)

    assert [o.start.day for o in result] == [3, 8]


def test_local_wall_clock_survives_dst_change():
    tz = ZoneInfo("America/New_York")
    start = datetime(2024, 3, 4, 9, 0, tzinfo=tz)
    pattern = _pattern(days_of_week=[1], end_date="2024-03-20")

    result = occurrences(start, start + DURATION, pattern)

    assert [o.start.day for o in result] == [4, 11, 18]
    assert all(o.start.hour == 9 for o in result)
    assert result[0].start.utcoffset() != result[-1].start.utcoffset()


def test_expand_builds_instance_documents():
    template = ScheduleData(
        title="Listening drill",
        description="Bring headphones",
        type="class",
        start_time=MONDAY,
        end_time=MONDAY + DURATION,
        location="Lab",
        class_ids=["C1"],
        teacher_ids=["t1"],
        is_recurring=True,
        recurring_pattern={"daysOfWeek": [1], "endDate": "2024-01-15"},
    )
    now = datetime(2023, 12, 20, tzinfo=UTC)

    instances = expand(template, created_by="adm", now=now)

    assert len(instances) == 3
    first = instances[0]
    assert first["title"] == "Listening drill"
    assert first["description"] == "Bring headphones"
    assert first["classIds"] == ["C1"]
    assert first["teacherIds"] == ["t1"]
    assert first["isRecurring"] is False
    assert first["isRecurringInstance"] is True
    assert first["status"] == "active"
    assert first["createdBy"] == "adm"
    assert "recurringPattern" not in first
    assert first["startTime"].startswith("2024-01-01T09:00:00")


def test_expand_ignores_non_recurring_template():
    template = ScheduleData(
        title="One-off",
        type="exam",
        start_time=MONDAY,
        end_time=MONDAY + DURATION,
    )

    assert expand(template, created_by="adm", now=MONDAY) == []


def test_expand_uses_local_weekday():
    # 23:00 UTC Sunday is Monday morning in Bangkok
    start = datetime(2023, 12, 31, 23, 0, tzinfo=UTC)
    template = ScheduleData(
        title="Early class",
        type="class",
        start_time=start,
        end_time=start + DURATION,
        is_recurring=True,
        recurring_pattern={"daysOfWeek": [1], "endAfter": 2},
    )

    instances = expand(template, created_by="adm", now=start, local_tz=ZoneInfo("Asia/Bangkok"))

    starts = [datetime.fromisoformat(i["startTime"]) for i in instances]
    assert starts == [start, start + timedelta(days=7)]


def test_instance_across_dst_keeps_real_duration():
    tz = ZoneInfo("America/New_York")
    # Sat 23:00 to Sun 03:00 EST, four hours
    start = datetime(2024, 3, 2, 23, 0, tzinfo=tz)
    end = datetime(2024, 3, 3, 3, 0, tzinfo=tz)

    result = occurrences(start, end, _pattern(days_of_week=[6], end_after=2))

    second = result[1]
    assert second.start == datetime(2024, 3, 9, 23, 0, tzinfo=tz)
    # Clocks spring forward on 2024-03-10, so the instance ends at 04:00 EDT
    assert second.end.hour == 4
    assert second.end.astimezone(UTC) - second.start.astimezone(UTC) == timedelta(hours=4)
