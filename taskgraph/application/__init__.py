"""Application service layer for taskgraph.

Services orchestrate the domain rules over a repository. Every mutating
call is one transaction: fresh graph slice, validation, staged writes,
atomic commit.

Services:
    task_service - Task lifecycle, dependencies and bulk import
    schedule_service - Schedule planning
    completion - Completion, reopen and cancel cascades
    transaction - Commit with optimistic-lock retry and event publishing

Example usage:
    >>> from taskgraph.application import TaskService
    >>> from taskgraph.infrastructure import InMemoryTaskRepository
    >>> from taskgraph.domain.shared import is_ok
    >>>
    >>> service = TaskService(InMemoryTaskRepository())
    >>> result = service.create_task({"title": "Draft plan"})
    >>> is_ok(result)
    True
"""

from taskgraph.application.completion import CompletionOutcome, CompletionPropagator
from taskgraph.application.inputs import BulkEdge, BulkTaskRecord, TaskCreate, TaskUpdate
from taskgraph.application.schedule_service import ScheduleService
from taskgraph.application.task_service import TaskService, cycle_error, parse_input
from taskgraph.application.transaction import TransactionRunner

__all__ = [
    # Services
    "TaskService",
    "ScheduleService",
    # Cascades
    "CompletionPropagator",
    "CompletionOutcome",
    "TransactionRunner",
    # Inputs
    "TaskCreate",
    "TaskUpdate",
    "BulkTaskRecord",
    "BulkEdge",
    "parse_input",
    "cycle_error",
]
