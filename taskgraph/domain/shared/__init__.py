"""Shared domain building blocks.

- Result type for explicit error handling
- Typed engine errors
- Base domain event

Example usage:
    >>> from taskgraph.domain.shared import Err, NotFound, Ok, Result
    >>>
    >>> def find(task_id: str) -> Result[dict, NotFound]:
    ...     if task_id == "missing":
    ...         return Err(NotFound.task(task_id))
    ...     return Ok({"id": task_id})
"""

from taskgraph.domain.shared.errors import (
    BusinessRuleViolation,
    Conflict,
    DependencyCycle,
    NotFound,
    StorageFailure,
    TaskError,
    ValidationError,
)
from taskgraph.domain.shared.events import DomainEvent
from taskgraph.domain.shared.result import (
    Err,
    Ok,
    Result,
    collect,
    flat_map,
    is_err,
    is_ok,
    map_result,
    unwrap_or,
)

__all__ = [
    # Result
    "Ok",
    "Err",
    "Result",
    "is_ok",
    "is_err",
    "map_result",
    "flat_map",
    "unwrap_or",
    "collect",
    # Errors
    "TaskError",
    "NotFound",
    "ValidationError",
    "DependencyCycle",
    "BusinessRuleViolation",
    "Conflict",
    "StorageFailure",
    # Events
    "DomainEvent",
]
