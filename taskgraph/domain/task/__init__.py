"""Task domain - models, status rules and recurrence.

All exports are pure (no I/O, no side effects).

Key Types:
    Task - Work item with hierarchy and dependency edges
    TaskStatus, Priority, RecurrenceType, CompletionMode - closed enums
    RecurrencePattern - How a task repeats
    TaskAudit - Audit trail entry
    TaskFilter, TaskPage - Listing queries
    Changeset - Writes of one operation

Status Functions:
    can_transition, check_transition - Transition table
    check_completion, check_reopen - Completion/reopen guards
    advisory_status - Derived Blocked bookkeeping

Recurrence Functions:
    next_occurrence, spawn_instance - Next instance of a recurring task
"""

from .audit import changed_fields, diff_tasks
from .changeset import Changeset
from .events import (
    DependencyAdded,
    DependencyRemoved,
    RecurrenceSpawned,
    TaskAutoCompleted,
    TaskBlocked,
    TaskCanceled,
    TaskCompleted,
    TaskCreated,
    TaskDeleted,
    TaskReopened,
    TaskUnblocked,
    TaskUpdated,
)
from .models import (
    CompletionMode,
    Priority,
    RecurrencePattern,
    RecurrenceType,
    Task,
    TaskAudit,
    TaskFilter,
    TaskPage,
    TaskStatus,
    listing_order,
    new_task_id,
    utcnow,
)
from .recurrence import IntervalResolver, Occurrence, next_occurrence, spawn_instance
from .status import (
    TRANSITIONS,
    advisory_status,
    can_transition,
    check_completion,
    check_reopen,
    check_transition,
    unresolved,
)

__all__ = [
    # Models
    "Task",
    "TaskStatus",
    "Priority",
    "RecurrenceType",
    "RecurrencePattern",
    "CompletionMode",
    "TaskAudit",
    "TaskFilter",
    "TaskPage",
    "listing_order",
    "new_task_id",
    "utcnow",
    "Changeset",
    # Status
    "TRANSITIONS",
    "can_transition",
    "check_transition",
    "check_completion",
    "check_reopen",
    "advisory_status",
    "unresolved",
    # Recurrence
    "IntervalResolver",
    "Occurrence",
    "next_occurrence",
    "spawn_instance",
    # Audit
    "diff_tasks",
    "changed_fields",
    # Events
    "TaskCreated",
    "TaskUpdated",
    "TaskCompleted",
    "TaskAutoCompleted",
    "TaskReopened",
    "TaskCanceled",
    "TaskBlocked",
    "TaskUnblocked",
    "TaskDeleted",
    "DependencyAdded",
    "DependencyRemoved",
    "RecurrenceSpawned",
]
