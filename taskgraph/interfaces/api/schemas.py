"""Request schemas for the taskgraph API.

Task creation, update and import bodies reuse the engine's input models
(``TaskCreate``, ``TaskUpdate``, ``BulkTaskRecord``); the models here cover
the remaining endpoint bodies.
"""

from pydantic import BaseModel, Field

from taskgraph.application import BulkEdge, BulkTaskRecord
from taskgraph.domain.task import CompletionMode, TaskStatus


# =============================================================================
# Status Schemas
# =============================================================================


class CompleteTaskRequest(BaseModel):
    """Request to complete a task."""

    mode: CompletionMode = CompletionMode.NORMAL
    force: bool = False


class ReopenTaskRequest(BaseModel):
    """Request to reopen a completed task."""

    status: TaskStatus = TaskStatus.TODO


# =============================================================================
# Dependency Schemas
# =============================================================================


class AddDependencyRequest(BaseModel):
    depends_on: str


class SetDependenciesRequest(BaseModel):
    """Full replacement blocker set."""

    depends_on: list[str] = Field(default_factory=list)


# =============================================================================
# Import Schemas
# =============================================================================


class BulkImportRequest(BaseModel):
    records: list[BulkTaskRecord]
    edges: list[BulkEdge] = Field(default_factory=list)
