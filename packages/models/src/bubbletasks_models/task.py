"""Task models for the timer queue."""

import re
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_WHITESPACE_RE = re.compile(r"\s+")
_TEMPLATE_KEY_STRIP_RE = re.compile(r"[^a-z0-9-]")


def to_template_key(title: str) -> str:
    """Derive the icon template key from a task title.

    "Write Report!" -> "write-report"
    """
    key = _WHITESPACE_RE.sub("-", title.strip().lower())
    return _TEMPLATE_KEY_STRIP_RE.sub("", key)


class TaskStatus(str, Enum):
    """Status of a task in the queue."""

    UPCOMING = "Upcoming"  # Waiting for the active task to finish
    ACTIVE = "Active"  # Currently counting down (at most one)
    PAUSED = "Paused"
    COMPLETED = "Completed"  # Timer reached zero
    CANCELLED = "Cancelled"

    @property
    def is_archived(self) -> bool:
        """Whether tasks in this status belong to the archive."""
        return self not in (TaskStatus.UPCOMING, TaskStatus.ACTIVE)


class TaskScope(str, Enum):
    """Which slice of the task list to return."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    ALL = "all"

    def matches(self, task: "Task") -> bool:
        if self == TaskScope.ACTIVE:
            return not task.is_archived
        if self == TaskScope.ARCHIVED:
            return task.is_archived
        return True


class CamelModel(BaseModel):
    """Base model using camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Task(CamelModel):
    """A task with an estimated duration and an optional countdown."""

    id: str = Field(..., description="Unique task identifier")
    title: str = Field(..., description="Trimmed task title")
    est_minutes: int = Field(..., gt=0, description="Estimated duration in minutes")
    status: TaskStatus = Field(default=TaskStatus.UPCOMING, description="Current task status")
    image_data_url: str | None = Field(default=None, description="Icon as data URL or served URL")
    template_key: str = Field(default="", description="Key derived from the title")

    # Timer
    remaining_seconds: int | None = Field(default=None, ge=0)
    timer_started_at: datetime | None = Field(default=None)

    # Timing
    created_at: datetime
    updated_at: datetime

    # Archive
    is_archived: bool = Field(default=False)
    archived_at: datetime | None = Field(default=None)

    @property
    def full_duration_seconds(self) -> int:
        return self.est_minutes * 60


# Update fields that an explicit null clears
_NULLABLE_UPDATE_FIELDS = frozenset({"image_data_url", "remaining_seconds", "timer_started_at"})


def _reject_bool(value):
    if isinstance(value, bool):
        raise ValueError("Input should be a valid integer, not a boolean")
    return value


def _clean_title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Task title is required")
    return value


class TaskCreate(CamelModel):
    """Body of POST /api/tasks."""

    title: str = Field(default="", validate_default=True)
    est_minutes: int | None = Field(default=None, gt=0)
    image_data_url: str | None = None

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        return _clean_title(value)

    @field_validator("est_minutes", mode="before")
    @classmethod
    def _minutes_not_bool(cls, value):
        return _reject_bool(value)


class TaskUpdate(CamelModel):
    """Body of PUT /api/tasks/{id}.

    Only fields present in the request are applied; see ``changes()``.
    """

    title: str | None = None
    est_minutes: int | None = Field(default=None, gt=0)
    status: TaskStatus | None = None
    image_data_url: str | None = None
    remaining_seconds: int | None = Field(default=None, ge=0)
    timer_started_at: datetime | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _clean_title(value)

    @field_validator("est_minutes", "remaining_seconds", mode="before")
    @classmethod
    def _numbers_not_bool(cls, value):
        return _reject_bool(value)

    def changes(self) -> dict:
        """Return the fields to apply, keyed by snake_case name."""
        result = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is None and name not in _NULLABLE_UPDATE_FIELDS:
                continue
            result[name] = value
        return result
