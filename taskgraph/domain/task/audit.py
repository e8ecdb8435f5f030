"""Field-level audit trail entries."""

from datetime import datetime
from enum import Enum
from typing import Any

from .models import Task, TaskAudit

# Bookkeeping fields that change on every write and are not audited.
_UNTRACKED = frozenset({"version", "updated_at", "created_at"})


def _render(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, set):
        return ",".join(sorted(value))
    if hasattr(value, "model_dump_json"):
        return value.model_dump_json()
    return str(value)


def diff_tasks(before: Task, after: Task, changed_at: datetime) -> list[TaskAudit]:
    """One audit entry per tracked field whose value differs."""
    entries = []
    for name in Task.model_fields:
        if name in _UNTRACKED:
            continue
        old, new = getattr(before, name), getattr(after, name)
        if old == new:
            continue
        entries.append(
            TaskAudit(
                task_id=after.id,
                field_name=name,
                old_value=_render(old),
                new_value=_render(new),
                changed_at=changed_at,
            )
        )
    return entries


def changed_fields(before: Task, after: Task) -> list[str]:
    return [
        name
        for name in Task.model_fields
        if name not in _UNTRACKED and getattr(before, name) != getattr(after, name)
    ]
