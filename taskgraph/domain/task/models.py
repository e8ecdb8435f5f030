"""Task domain models.

Pure domain models for the task graph. Uses Pydantic for validation and
serialization; engine code treats instances as values and derives new ones
with ``model_copy``.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_task_id() -> str:
    return uuid4().hex


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TaskStatus(str, Enum):
    """Lifecycle status of a task."""

    TODO = "Todo"
    IN_PROGRESS = "InProgress"
    BLOCKED = "Blocked"
    COMPLETED = "Completed"
    CANCELED = "Canceled"

    @property
    def is_resolved(self) -> bool:
        """Completed and Canceled both satisfy blocker checks."""
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELED)

    @property
    def is_terminal(self) -> bool:
        return self.is_resolved


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        return {Priority.LOW: 1, Priority.MEDIUM: 2, Priority.HIGH: 3}[self]


class RecurrenceType(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"
    CUSTOM = "Custom"


class CompletionMode(str, Enum):
    """How strictly ``complete_task`` checks the task's children.

    NORMAL rejects a parent with open children. FORCE_PARENT_AUTO_COMPLETE is
    the cascade/operator override that skips the children check. Neither
    mode bypasses dependency blockers.
    """

    NORMAL = "normal"
    FORCE_PARENT_AUTO_COMPLETE = "forceParentAutoComplete"


class RecurrencePattern(BaseModel):
    """How a task repeats once it is completed.

    ``end_date`` bounds the series: no instance starts after it.
    ``day_of_month`` pins monthly occurrences (clamped to the month length).
    ``days_of_week`` (0=Sunday) is kept for display only.
    """

    type: RecurrenceType
    interval: int = Field(default=1, ge=1)
    start_date: datetime
    end_date: datetime | None = None
    days_of_week: list[int] = Field(default_factory=list)
    day_of_month: int | None = Field(default=None, ge=1, le=31)

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @field_validator("days_of_week")
    @classmethod
    def _weekdays(cls, value: list[int]) -> list[int]:
        for day in value:
            if not 0 <= day <= 6:
                raise ValueError(f"days_of_week entries must be 0-6, got {day}")
        return sorted(set(value))

    @model_validator(mode="after")
    def _bounds(self) -> "RecurrencePattern":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class Task(BaseModel):
    """A work item in the hierarchy and dependency graph.

    ``parent_id`` is the hierarchy edge; ``depends_on`` holds the ids of the
    task's blockers. ``version`` is the optimistic concurrency token and is
    bumped on every committed write.
    """

    id: str = Field(default_factory=new_task_id)
    title: str = Field(min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    due_at: datetime | None = None
    estimated_duration_minutes: int | None = Field(default=None, ge=0)
    allow_parent_auto_complete: bool = False
    parent_id: str | None = None
    depends_on: set[str] = Field(default_factory=set)
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    recurrence: RecurrencePattern | None = None
    original_task_id: str | None = None
    force_completed: bool = False
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("due_at", "scheduled_start", "scheduled_end", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _schedule_window(self) -> "Task":
        if (
            self.scheduled_start is not None
            and self.scheduled_end is not None
            and self.scheduled_end < self.scheduled_start
        ):
            raise ValueError("scheduled_end must not be before scheduled_start")
        return self

    @property
    def is_resolved(self) -> bool:
        return self.status.is_resolved


class TaskAudit(BaseModel):
    """One changed field of a task, as recorded in the audit trail."""

    id: str = Field(default_factory=new_task_id)
    task_id: str
    field_name: str
    old_value: str | None = None
    new_value: str | None = None
    changed_at: datetime = Field(default_factory=utcnow)


class TaskFilter(BaseModel):
    """Query-by-filter for listing tasks.

    ``parent_id`` selects the children of one task; ``top_level_only``
    selects tasks without a parent. ``q`` is a case-insensitive search over
    title and description.
    """

    status: TaskStatus | None = None
    priority: Priority | None = None
    parent_id: str | None = None
    top_level_only: bool = False
    q: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=200, ge=1, le=200)

    def matches(self, task: Task) -> bool:
        if self.status is not None and task.status != self.status:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        if self.top_level_only and task.parent_id is not None:
            return False
        if self.parent_id is not None and task.parent_id != self.parent_id:
            return False
        if self.q:
            needle = self.q.lower()
            haystack = f"{task.title}\n{task.description or ''}".lower()
            if needle not in haystack:
                return False
        return True


class TaskPage(BaseModel):
    tasks: list[Task]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit


def listing_order(task: Task) -> tuple:
    """Sort key: priority high first, then earliest due date, then oldest."""
    due = task.due_at.timestamp() if task.due_at else float("inf")
    return (-task.priority.rank, due, task.created_at.timestamp())
