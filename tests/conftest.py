"""Pytest configuration and shared fixtures.

Everything runs against MemoryDocumentStore and an in-process fake calendar
mirror; no network or external store is touched.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from src.scheduling.config import SchedulingConfig
from src.scheduling.directory import Directory
from src.scheduling.mirror import CalendarMirror
from src.scheduling.models import CalendarEvent, ScheduleData
from src.scheduling.permissions import PermissionRegistry
from src.scheduling.retry import RetryPolicy
from src.scheduling.schedules import ScheduleStore
from src.scheduling.store import MemoryDocumentStore
from src.scheduling.visibility import VisibilityResolver

BASE_TIME = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)  # a Monday


class FakeMirror(CalendarMirror):
    """Records calls; optionally fails every call."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.created: list[CalendarEvent] = []
        self.updated: list[tuple[str, CalendarEvent]] = []
        self.deleted: list[str] = []

    def _maybe_fail(self) -> None:
        if self.fail:
            raise RuntimeError("calendar unavailable")

    async def create_event(self, event: CalendarEvent) -> str | None:
        self._maybe_fail()
        self.created.append(event)
        return f"evt-{len(self.created)}"

    async def update_event(self, external_id: str, event: CalendarEvent) -> None:
        self._maybe_fail()
        self.updated.append((external_id, event))

    async def delete_event(self, external_id: str) -> None:
        self._maybe_fail()
        self.deleted.append(external_id)


async def _no_sleep(seconds: float) -> None:
    return None


def make_schedule_data(title: str = "Speaking class", offset_hours: int = 0, **overrides) -> ScheduleData:
    start = BASE_TIME + timedelta(hours=offset_hours)
    fields = {
        "title": title,
        "type": "class",
        "start_time": start,
        "end_time": start + timedelta(minutes=90),
        "location": "Room 2",
    }
    fields.update(overrides)
    return ScheduleData(**fields)


@pytest.fixture
def config() -> SchedulingConfig:
    return SchedulingConfig(
        retry_max_attempts=3,
        retry_initial_delay_ms=0,
        timezone="UTC",
        _env_file=None,
    )


@pytest.fixture
def retry_policy(config) -> RetryPolicy:
    return RetryPolicy(config.retry_max_attempts, config.retry_initial_delay_ms, sleep=_no_sleep)


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def mirror() -> FakeMirror:
    return FakeMirror()


@pytest.fixture
def directory(store, config, retry_policy) -> Directory:
    return Directory(store, config, retry_policy)


@pytest.fixture
def schedules(store, mirror, config, retry_policy) -> ScheduleStore:
    return ScheduleStore(store, mirror, config, retry_policy)


@pytest.fixture
def resolver(store, directory, config, retry_policy) -> VisibilityResolver:
    return VisibilityResolver(store, directory, config, retry_policy)


@pytest.fixture
def registry(store, directory, config, retry_policy) -> PermissionRegistry:
    return PermissionRegistry(store, directory, config, retry_policy)


@pytest_asyncio.fixture
async def people(store):
    """Users and classes: student s1 in C1, teacher t1 owns C1 and C2,
    assistant a1 assigned to C2, admin adm."""
    batch = store.batch()
    batch.set("users", "s1", {"email": "s1@example.com", "name": "Student One", "role": "student", "classId": "C1"})
    batch.set("users", "s2", {"email": "s2@example.com", "role": "student"})
    batch.set("users", "t1", {"email": "t1@example.com", "name": "Teacher One", "role": "teacher"})
    batch.set("users", "a1", {"email": "a1@example.com", "role": "assistant", "assignedClassIds": ["C2", "C2"]})
    batch.set("users", "adm", {"email": "admin@example.com", "name": "Admin", "role": "admin"})
    batch.set("classes", "C1", {"name": "PTE Morning", "teacherId": "t1"})
    batch.set("classes", "C2", {"name": "PTE Evening", "teacherId": "t1"})
    batch.set("classes", "C9", {"name": "Other", "teacherId": "t9"})
    await batch.commit()
    return store
