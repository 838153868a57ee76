"""Best-effort mirroring of schedules into an external calendar.

The Schedule Store calls a CalendarMirror after its own writes; whatever the
mirror raises is logged and dropped there. GoogleCalendarMirror talks to the
Google Calendar v3 REST API with service-account credentials.
"""

import asyncio
from abc import ABC, abstractmethod

import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from src.scheduling.config import SchedulingConfig
from src.scheduling.errors import CalendarMirrorError, RateLimitError
from src.scheduling.logging import get_logger
from src.scheduling.models import CalendarEvent

logger = get_logger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]


class CalendarMirror(ABC):
    """External calendar the schedules are copied into."""

    @abstractmethod
    async def create_event(self, event: CalendarEvent) -> str | None:
        """Create an event and return its external id."""

    @abstractmethod
    async def update_event(self, external_id: str, event: CalendarEvent) -> None:
        """Overwrite an existing external event."""

    @abstractmethod
    async def delete_event(self, external_id: str) -> None:
        """Remove an external event."""


def build_event_body(event: CalendarEvent, time_zone: str) -> dict:
    """Build the Calendar API event JSON for one schedule."""
    return {
        "summary": event.summary,
        "description": event.description,
        "location": event.location,
        "start": {"dateTime": event.start.isoformat(), "timeZone": time_zone},
        "end": {"dateTime": event.end.isoformat(), "timeZone": time_zone},
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 60},
            ],
        },
    }


class GoogleCalendarMirror(CalendarMirror):
    """Google Calendar v3 over an authorized requests session.

    Blocking HTTP calls run in a worker thread so they don't stall the loop.
    """

    def __init__(
        self,
        calendar_id: str,
        session: requests.Session,
        time_zone: str = "Asia/Bangkok",
        timeout: float = 30.0,
    ) -> None:
        self.calendar_id = calendar_id
        self.session = session
        self.time_zone = time_zone
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: SchedulingConfig) -> "GoogleCalendarMirror":
        """Build a mirror from service-account settings.

        Raises:
            CalendarMirrorError: If the service-account settings are missing.
        """
        if not config.calendar_mirror_enabled:
            raise CalendarMirrorError("Google Calendar service account credentials are missing")

        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": config.google_client_email,
                "private_key": config.google_private_key.replace("\\n", "\n"),
                "token_uri": "https://oauth2.googleapis.com/token",
            },
            scopes=CALENDAR_SCOPES,
        )
        logger.info("calendar_mirror_configured", calendar_id=config.google_calendar_id)
        return cls(
            calendar_id=config.google_calendar_id,
            session=AuthorizedSession(credentials),
            time_zone=config.timezone,
        )

    @property
    def _events_url(self) -> str:
        return f"{CALENDAR_API_BASE}/calendars/{self.calendar_id}/events"

    def _check(self, resp: requests.Response, action: str) -> None:
        if resp.status_code == 429:
            raise RateLimitError(f"Calendar {action} rate limited", code="429")
        if resp.status_code not in (200, 201, 204):
            raise CalendarMirrorError(
                f"Calendar {action} failed: {resp.status_code} {resp.text[:200]}",
                status_code=resp.status_code,
            )

    def _create(self, body: dict) -> str | None:
        resp = self.session.post(
            self._events_url,
            params={"sendUpdates": "none"},
            json=body,
            timeout=self.timeout,
        )
        self._check(resp, "create")
        return resp.json().get("id")

    def _update(self, external_id: str, body: dict) -> None:
        resp = self.session.put(
            f"{self._events_url}/{external_id}",
            params={"sendUpdates": "none"},
            json=body,
            timeout=self.timeout,
        )
        self._check(resp, "update")

    def _delete(self, external_id: str) -> None:
        resp = self.session.delete(
            f"{self._events_url}/{external_id}",
            params={"sendUpdates": "none"},
            timeout=self.timeout,
        )
        # Already gone counts as deleted
        if resp.status_code == 410:
            return
        self._check(resp, "delete")

    async def create_event(self, event: CalendarEvent) -> str | None:
        body = build_event_body(event, self.time_zone)
        event_id = await asyncio.to_thread(self._create, body)
        logger.info("calendar_event_created", event_id=event_id, summary=event.summary)
        return event_id

    async def update_event(self, external_id: str, event: CalendarEvent) -> None:
        body = build_event_body(event, self.time_zone)
        await asyncio.to_thread(self._update, external_id, body)
        logger.info("calendar_event_updated", event_id=external_id)

    async def delete_event(self, external_id: str) -> None:
        await asyncio.to_thread(self._delete, external_id)
        logger.info("calendar_event_deleted", event_id=external_id)
