"""Task domain events.

Immutable records of state changes, collected per operation and published
to subscribers after the operation's changeset commits.
"""

from taskgraph.domain.shared.events import DomainEvent


class TaskCreated(DomainEvent):
    task_id: str
    title: str
    parent_id: str | None = None


class TaskUpdated(DomainEvent):
    task_id: str
    fields: list[str]


class TaskCompleted(DomainEvent):
    """A task was completed by an explicit request."""

    task_id: str
    forced: bool = False


class TaskAutoCompleted(DomainEvent):
    """A parent was completed by the cascade after its last child resolved."""

    task_id: str
    triggered_by: str


class TaskReopened(DomainEvent):
    task_id: str
    status: str


class TaskCanceled(DomainEvent):
    task_id: str


class TaskBlocked(DomainEvent):
    """Advisory Blocked flag set because a blocker is unresolved."""

    task_id: str


class TaskUnblocked(DomainEvent):
    task_id: str


class TaskDeleted(DomainEvent):
    task_id: str
    detached_dependents: list[str] = []


class DependencyAdded(DomainEvent):
    task_id: str
    depends_on: str


class DependencyRemoved(DomainEvent):
    task_id: str
    depends_on: str


class RecurrenceSpawned(DomainEvent):
    """A completed recurring task produced its next instance."""

    task_id: str
    instance_id: str
