"""Scheduling core for the learning-center portal.

Recurring-event expansion, role-scoped visibility, schedule-creation
permissions and resilient persistence of schedules over a document store.
"""

from src.scheduling.directory import Directory
from src.scheduling.mirror import CalendarMirror, GoogleCalendarMirror
from src.scheduling.models import (
    RecurringPattern,
    Schedule,
    ScheduleData,
    ScheduleFilter,
    SchedulePatch,
    SchedulePermission,
    UserRole,
)
from src.scheduling.permissions import PermissionRegistry
from src.scheduling.recurrence import expand
from src.scheduling.retry import retry_operation
from src.scheduling.schedules import ScheduleStore
from src.scheduling.store import DocumentStore, MemoryDocumentStore
from src.scheduling.visibility import VisibilityResolver

__all__ = [
    "CalendarMirror",
    "Directory",
    "DocumentStore",
    "GoogleCalendarMirror",
    "MemoryDocumentStore",
    "PermissionRegistry",
    "RecurringPattern",
    "Schedule",
    "ScheduleData",
    "ScheduleFilter",
    "SchedulePatch",
    "SchedulePermission",
    "ScheduleStore",
    "UserRole",
    "VisibilityResolver",
    "expand",
    "retry_operation",
]
