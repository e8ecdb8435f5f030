"""Typed errors carried in ``Err`` results.

Each error kind maps to one HTTP-equivalent status so interface adapters can
translate without inspecting messages:

    NotFound               404  missing task, blocker or parent reference
    ValidationError        422  field constraints (title length, enums, ...)
    DependencyCycle        422  an edge would close a cycle; carries the edge
    BusinessRuleViolation  409  delete-with-children, unresolved blockers, ...
    Conflict               409  optimistic version check failed twice
    StorageFailure         500  the repository could not persist a changeset
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from pydantic import ValidationError as PydanticValidationError


@dataclass(frozen=True)
class TaskError:
    """Base class for all engine errors.

    Attributes:
        message: Human-readable description.
        code: Stable machine-readable code (e.g. ``HAS_CHILDREN``).
        details: Structured context such as offending ids.
    """

    message: str
    code: str = "TASK_ERROR"
    details: dict[str, Any] = field(default_factory=dict)

    status_code: ClassVar[int] = 500

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"{self.kind}({self.code}): {self.message}"


@dataclass(frozen=True)
class NotFound(TaskError):
    code: str = "NOT_FOUND"

    status_code: ClassVar[int] = 404

    @classmethod
    def task(cls, task_id: str, role: str = "Task") -> "NotFound":
        return cls(f"{role} not found: {task_id}", details={"task_id": task_id, "role": role})


@dataclass(frozen=True)
class ValidationError(TaskError):
    code: str = "VALIDATION_ERROR"

    status_code: ClassVar[int] = 422

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError, prefix: str = "") -> "ValidationError":
        """Convert a pydantic error into a field-level ValidationError."""
        fields = []
        for issue in exc.errors():
            location = ".".join(str(part) for part in issue.get("loc", ()))
            if prefix:
                location = f"{prefix}.{location}" if location else prefix
            fields.append({"field": location, "message": issue.get("msg", "")})
        summary = "; ".join(f"{f['field']}: {f['message']}" for f in fields)
        return cls(f"Validation failed: {summary}", details={"fields": fields})


@dataclass(frozen=True)
class DependencyCycle(TaskError):
    """An edge would close a cycle in the dependency + hierarchy graph.

    ``edge`` is the rejected ``(source, target)`` pair in combined-graph
    direction: ``(task, blocker)`` for dependencies, ``(child, parent)`` for
    hierarchy edges.
    """

    code: str = "DEPENDENCY_CYCLE"
    edge: tuple[str, str] | None = None

    status_code: ClassVar[int] = 422

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["edge"] = list(self.edge) if self.edge else None
        return data


@dataclass(frozen=True)
class BusinessRuleViolation(TaskError):
    code: str = "BUSINESS_RULE_VIOLATION"

    status_code: ClassVar[int] = 409


@dataclass(frozen=True)
class Conflict(TaskError):
    code: str = "CONFLICT"

    status_code: ClassVar[int] = 409


@dataclass(frozen=True)
class StorageFailure(TaskError):
    code: str = "STORAGE_FAILURE"

    status_code: ClassVar[int] = 500
