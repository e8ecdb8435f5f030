"""Input models for engine operations.

These are the shapes callers hand to ``TaskService``. Defaults that depend
on configuration (priority, estimated duration, auto-complete opt-in) are
left as None here and filled in by the service.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from taskgraph.domain.task import Priority, RecurrencePattern, TaskStatus
from taskgraph.domain.task.models import TITLE_MAX_LENGTH, TITLE_MIN_LENGTH


class TaskCreate(BaseModel):
    """Fields accepted when creating a task."""

    model_config = {"extra": "forbid"}

    title: str = Field(min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: Priority | None = None
    due_at: datetime | None = None
    estimated_duration_minutes: int | None = Field(default=None, ge=0)
    allow_parent_auto_complete: bool | None = None
    parent_id: str | None = None
    depends_on: list[str] = Field(default_factory=list)
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    recurrence: RecurrencePattern | None = None


# Fields a partial update may not explicitly clear.
_REQUIRED_ON_UPDATE = frozenset({"title", "status", "priority", "allow_parent_auto_complete"})


class TaskUpdate(BaseModel):
    """Partial update. Only fields the caller actually sent are applied.

    Dependencies are not edited here; use the dependency operations.
    """

    model_config = {"extra": "forbid"}

    title: str | None = Field(default=None, min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    description: str | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    due_at: datetime | None = None
    estimated_duration_minutes: int | None = Field(default=None, ge=0)
    allow_parent_auto_complete: bool | None = None
    parent_id: str | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    recurrence: RecurrencePattern | None = None

    @model_validator(mode="after")
    def _no_cleared_required(self) -> "TaskUpdate":
        for name in _REQUIRED_ON_UPDATE & self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> dict[str, Any]:
        """The explicitly set fields and their new values."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class BulkTaskRecord(TaskCreate):
    """One task of a bulk import.

    ``ref`` is a caller-chosen handle, unique within the batch, that other
    records use in ``parent_id`` and ``depends_on`` before real ids exist.
    Those fields may also name tasks that already exist.
    """

    ref: str | None = None


class BulkEdge(BaseModel):
    """Extra dependency edge of a bulk import, by ref or existing id.

    ``task`` must name a record of the batch; ``depends_on`` may name a
    record or an existing task.
    """

    model_config = {"extra": "forbid"}

    task: str
    depends_on: str
