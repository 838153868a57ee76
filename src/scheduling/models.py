"""Pydantic models for scheduling data.

All data structures use Pydantic v2. Attributes are snake_case in Python and
camelCase in stored documents (``classIds``, ``googleEventId``, ...), so
``to_document()`` output can be written to the store and queried by field.
"""

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Annotated

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Fixed-width UTC ISO strings so stored timestamps sort lexically
Timestamp = Annotated[
    datetime,
    AfterValidator(_as_utc),
    PlainSerializer(lambda v: v.isoformat(timespec="microseconds"), return_type=str, when_used="json"),
]


class ScheduleType(str, Enum):
    CLASS = "class"
    EXAM = "exam"
    MEETING = "meeting"
    OTHER = "other"


class ScheduleStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class RecurrenceFrequency(str, Enum):
    WEEKLY = "weekly"
    DAILY = "daily"
    MONTHLY = "monthly"


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    ASSISTANT = "assistant"
    STUDENT = "student"


class DocumentModel(BaseModel):
    """Base for models stored as camelCase documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_document(self, **kwargs) -> dict:
        """Serialize to a JSON-safe, camelCase dict without None values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, **kwargs)

    @classmethod
    def from_document(cls, doc_id: str, data: dict):
        return cls.model_validate({**data, "id": doc_id})


class RecurringPattern(DocumentModel):
    """Weekly recurrence rule held by a schedule template.

    ``days_of_week`` uses 0 = Sunday ... 6 = Saturday. A date-only
    ``end_date`` covers the whole of that day.
    """

    frequency: RecurrenceFrequency = RecurrenceFrequency.WEEKLY
    days_of_week: list[int] = Field(default_factory=list)
    interval: int = Field(default=1, ge=1)
    end_date: datetime | None = None
    end_after: int | None = Field(default=None, ge=1)

    @field_validator("days_of_week")
    @classmethod
    def check_days(cls, days: list[int]) -> list[int]:
        seen: list[int] = []
        for day in days:
            if not 0 <= day <= 6:
                raise ValueError(f"day of week must be 0-6, got {day}")
            if day not in seen:
                seen.append(day)
        return seen

    @field_validator("end_date", mode="before")
    @classmethod
    def end_of_day(cls, value):
        if value == "":
            return None
        if isinstance(value, str) and len(value) == 10:
            value = date.fromisoformat(value)
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time.max)
        return value


class ScheduleData(DocumentModel):
    """Payload for creating a schedule (one-off or recurring template)."""

    title: str
    description: str | None = None
    start_time: Timestamp
    end_time: Timestamp
    location: str | None = None
    type: ScheduleType

    class_ids: list[str] = Field(default_factory=list)
    student_ids: list[str] = Field(default_factory=list)
    teacher_ids: list[str] = Field(default_factory=list)

    is_recurring: bool = False
    recurring_pattern: RecurringPattern | None = None

    @field_validator("title")
    @classmethod
    def title_required(cls, title: str) -> str:
        if not title.strip():
            raise ValueError("title must not be empty")
        return title

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class Schedule(ScheduleData):
    """A stored calendar event."""

    id: str
    created_by: str
    created_at: Timestamp
    updated_at: Timestamp
    status: ScheduleStatus = ScheduleStatus.ACTIVE

    parent_schedule_id: str | None = None
    is_recurring_instance: bool = False

    google_event_id: str | None = None

    def to_document(self, **kwargs) -> dict:
        return super().to_document(exclude={"id"}, **kwargs)


class SchedulePatch(DocumentModel):
    """Partial update to a schedule.

    A field is either absent (not passed) or present with a value; only
    present fields are written. ``None`` clears description or location;
    ``None`` for a participant list stores an empty list.
    """

    title: str | None = None
    description: str | None = None
    start_time: Timestamp | None = None
    end_time: Timestamp | None = None
    location: str | None = None
    type: ScheduleType | None = None
    status: ScheduleStatus | None = None
    class_ids: list[str] | None = None
    student_ids: list[str] | None = None
    teacher_ids: list[str] | None = None

    @field_validator("class_ids", "student_ids", "teacher_ids")
    @classmethod
    def empty_list(cls, ids: list[str] | None) -> list[str]:
        return ids if ids is not None else []

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, title: str | None) -> str | None:
        if title is not None and not title.strip():
            raise ValueError("title must not be empty")
        return title

    @model_validator(mode="after")
    def required_not_cleared(self):
        for name in ("title", "start_time", "end_time", "type", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    @model_validator(mode="after")
    def check_times(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    def touches(self, *fields: str) -> bool:
        return any(f in self.model_fields_set for f in fields)

    def to_document(self, **kwargs) -> dict:
        """Only the present fields, camelCase, explicit None kept."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True, **kwargs)


class SchedulePermission(DocumentModel):
    """Grant allowing a non-admin user to create schedules."""

    id: str | None = None
    user_id: str
    user_name: str
    user_email: str
    can_create_schedule: bool = True
    granted_by: str
    granted_by_name: str
    granted_at: Timestamp

    def to_document(self, **kwargs) -> dict:
        return super().to_document(exclude={"id"}, **kwargs)


class User(DocumentModel):
    """Portal user as far as scheduling needs it."""

    id: str
    email: str
    name: str | None = None
    role: UserRole = UserRole.STUDENT
    class_id: str | None = None
    assigned_class_ids: list[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.email


class SchoolClass(DocumentModel):
    id: str
    name: str | None = None
    teacher_id: str | None = None


class DateRange(BaseModel):
    start: datetime
    end: datetime


class ScheduleFilter(BaseModel):
    """Post-resolution filter applied to a visible schedule list."""

    type: ScheduleType | str = "all"
    status: ScheduleStatus | str = "all"
    date_range: DateRange | None = None
    class_id: str | None = None
    teacher_id: str | None = None

    def matches(self, schedule: Schedule) -> bool:
        if self.type != "all" and schedule.type != ScheduleType(self.type):
            return False
        if self.status != "all" and schedule.status != ScheduleStatus(self.status):
            return False
        if self.date_range is not None:
            start = _as_utc(self.date_range.start)
            end = _as_utc(self.date_range.end)
            if not start <= schedule.start_time <= end:
                return False
        if self.class_id and self.class_id not in schedule.class_ids:
            return False
        if self.teacher_id and self.teacher_id not in schedule.teacher_ids:
            return False
        return True


class CalendarEvent(BaseModel):
    """Descriptor sent to the external calendar."""

    summary: str
    description: str = ""
    location: str = ""
    start: datetime
    end: datetime

    @classmethod
    def from_schedule(cls, schedule: ScheduleData) -> "CalendarEvent":
        return cls(
            summary=schedule.title,
            description=schedule.description or "",
            location=schedule.location or "",
            start=schedule.start_time,
            end=schedule.end_time,
        )
