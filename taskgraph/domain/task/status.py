"""Status state machine.

Pure functions deciding whether a single task may move between statuses.
Graph context (blockers, children) is passed in as plain task lists; the
completion propagator is responsible for loading it.
"""

from collections.abc import Iterable

from taskgraph.domain.shared import (
    BusinessRuleViolation,
    Err,
    Ok,
    Result,
    TaskError,
    ValidationError,
)

from .models import CompletionMode, Task, TaskStatus

_OPEN = frozenset({TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED})

# Every status appears as a key; anything missing from a target set is illegal.
TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.TODO: _OPEN | {TaskStatus.COMPLETED, TaskStatus.CANCELED},
    TaskStatus.IN_PROGRESS: _OPEN | {TaskStatus.COMPLETED, TaskStatus.CANCELED},
    TaskStatus.BLOCKED: _OPEN | {TaskStatus.COMPLETED, TaskStatus.CANCELED},
    TaskStatus.COMPLETED: frozenset({TaskStatus.TODO, TaskStatus.IN_PROGRESS}),
    TaskStatus.CANCELED: frozenset(),
}

REOPEN_TARGETS = frozenset({TaskStatus.TODO, TaskStatus.IN_PROGRESS})


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """Check the transition table. Same-status moves are no-ops and allowed."""
    return current == target or target in TRANSITIONS[current]


def check_transition(task: Task, target: TaskStatus) -> Result[None, BusinessRuleViolation]:
    """Reject a status change the transition table does not allow."""
    if can_transition(task.status, target):
        return Ok(None)
    if task.status == TaskStatus.COMPLETED:
        hint = "Completed tasks can only be reopened to Todo or InProgress"
    elif task.status == TaskStatus.CANCELED:
        hint = "Canceled tasks are terminal"
    else:
        hint = f"Allowed: {', '.join(sorted(s.value for s in TRANSITIONS[task.status]))}"
    return Err(
        BusinessRuleViolation(
            f"Cannot move task '{task.title}' from {task.status.value} to {target.value}. {hint}",
            code="INVALID_TRANSITION",
            details={"task_id": task.id, "from": task.status.value, "to": target.value},
        )
    )


def unresolved(tasks: Iterable[Task]) -> list[Task]:
    """Tasks that are neither Completed nor Canceled."""
    return [t for t in tasks if not t.status.is_resolved]


def _summaries(tasks: list[Task]) -> list[dict[str, str]]:
    return [{"id": t.id, "title": t.title, "status": t.status.value} for t in tasks]


def check_completion(
    task: Task,
    blockers: Iterable[Task],
    children: Iterable[Task],
    mode: CompletionMode = CompletionMode.NORMAL,
    force: bool = False,
) -> Result[list[Task], BusinessRuleViolation]:
    """Decide whether ``task`` may be marked Completed.

    Args:
        task: The task to complete.
        blockers: Tasks ``task`` depends on.
        children: Direct subtasks of ``task``.
        mode: NORMAL requires all children resolved;
            FORCE_PARENT_AUTO_COMPLETE skips that check.
        force: Explicit operator override that also skips blocker checks.

    Returns:
        Ok with the blockers that are still unresolved (non-empty only when
        ``force`` let them through), or Err describing the violated rule.
    """
    if task.status == TaskStatus.COMPLETED:
        return Err(
            BusinessRuleViolation(
                f"Task '{task.title}' is already completed",
                code="ALREADY_COMPLETED",
                details={"task_id": task.id},
            )
        )
    transition = check_transition(task, TaskStatus.COMPLETED)
    if isinstance(transition, Err):
        return transition

    open_blockers = unresolved(blockers)
    if open_blockers and not force:
        return Err(
            BusinessRuleViolation(
                f"Cannot complete task '{task.title}' with incomplete dependencies",
                code="INCOMPLETE_DEPENDENCIES",
                details={"task_id": task.id, "blockers": _summaries(open_blockers)},
            )
        )

    open_children = unresolved(children)
    if open_children and mode == CompletionMode.NORMAL and not force:
        return Err(
            BusinessRuleViolation(
                f"Cannot complete parent task '{task.title}' with incomplete children",
                code="PARENT_CHILDREN_INCOMPLETE",
                details={"task_id": task.id, "incompleteChildren": _summaries(open_children)},
            )
        )
    return Ok(open_blockers)


def check_reopen(task: Task, target: TaskStatus) -> Result[None, TaskError]:
    if target not in REOPEN_TARGETS:
        return Err(
            ValidationError(
                f"Reopened tasks must become Todo or InProgress, not {target.value}",
                details={"status": target.value},
            )
        )
    if task.status != TaskStatus.COMPLETED:
        return Err(
            BusinessRuleViolation(
                f"Only completed tasks can be reopened (task '{task.title}' is {task.status.value})",
                code="NOT_COMPLETED",
                details={"task_id": task.id, "status": task.status.value},
            )
        )
    return Ok(None)


def advisory_status(task: Task, blockers: Iterable[Task]) -> TaskStatus:
    """Derive the Blocked bookkeeping flag for an open task.

    Todo tasks with an unresolved blocker become Blocked; Blocked tasks
    whose blockers are all resolved go back to Todo. InProgress work and
    terminal tasks are left alone.
    """
    has_open_blocker = bool(unresolved(blockers))
    if task.status == TaskStatus.TODO and has_open_blocker:
        return TaskStatus.BLOCKED
    if task.status == TaskStatus.BLOCKED and not has_open_blocker:
        return TaskStatus.TODO
    return task.status
