"""Unit tests for the Google Calendar mirror (HTTP session mocked)."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from src.scheduling.config import SchedulingConfig
from src.scheduling.errors import CalendarMirrorError, RateLimitError
from src.scheduling.mirror import GoogleCalendarMirror, build_event_body
from src.scheduling.models import CalendarEvent

START = datetime(2024, 5, 6, 2, 0, tzinfo=timezone.utc)


def _event() -> CalendarEvent:
    return CalendarEvent(
        summary="PTE mock exam",
        description="Full test",
        location="Hall A",
        start=START,
        end=START + timedelta(hours=3),
    )


def _response(status_code: int, payload: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload or {}
    resp.text = str(payload)
    return resp


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def mirror(session) -> GoogleCalendarMirror:
    return GoogleCalendarMirror("cal@example.com", session, time_zone="Asia/Bangkok")


def test_build_event_body():
    body = build_event_body(_event(), "Asia/Bangkok")

    assert body["summary"] == "PTE mock exam"
    assert body["location"] == "Hall A"
    assert body["start"] == {"dateTime": START.isoformat(), "timeZone": "Asia/Bangkok"}
    assert body["reminders"]["overrides"] == [
        {"method": "email", "minutes": 1440},
        {"method": "popup", "minutes": 60},
    ]


@pytest.mark.asyncio
async def test_create_event_returns_external_id(mirror, session):
    session.post.return_value = _response(200, {"id": "g-123"})

    assert await mirror.create_event(_event()) == "g-123"

    url = session.post.call_args.args[0]
    assert url.endswith("/calendars/cal@example.com/events")
    assert session.post.call_args.kwargs["params"] == {"sendUpdates": "none"}


@pytest.mark.asyncio
async def test_update_event_puts_to_event_url(mirror, session):
    session.put.return_value = _response(200, {"id": "g-123"})

    await mirror.update_event("g-123", _event())

    assert session.put.call_args.args[0].endswith("/events/g-123")
    assert session.put.call_args.kwargs["json"]["summary"] == "PTE mock exam"


@pytest.mark.asyncio
async def test_error_responses_raise(mirror, session):
    session.post.return_value = _response(500, {"error": "backend"})
    with pytest.raises(CalendarMirrorError) as excinfo:
        await mirror.create_event(_event())
    assert excinfo.value.status_code == 500

    session.put.return_value = _response(429)
    with pytest.raises(RateLimitError):
        await mirror.update_event("g-1", _event())


@pytest.mark.asyncio
async def test_delete_treats_gone_as_deleted(mirror, session):
    session.delete.return_value = _response(410)
    await mirror.delete_event("g-1")

    session.delete.return_value = _response(404)
    with pytest.raises(CalendarMirrorError):
        await mirror.delete_event("g-1")


def test_from_config_requires_credentials():
    config = SchedulingConfig(google_calendar_id="cal@example.com", _env_file=None)

    with pytest.raises(CalendarMirrorError):
        GoogleCalendarMirror.from_config(config)
