"""Base domain event infrastructure.

Domain events are immutable records of something that happened to a task.
The engine collects them while building a changeset and hands them to
subscribers only after the changeset has been committed.

Example usage:
    >>> from taskgraph.domain.shared.events import DomainEvent
    >>>
    >>> class TaskArchived(DomainEvent):
    ...     task_id: str
    ...
    >>> event = TaskArchived(task_id="a1")
    >>> event.name
    'TaskArchived'
"""

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field


class DomainEvent(BaseModel):
    """Base class for all domain events.

    Attributes:
        event_id: Unique identifier for this event instance.
        timestamp: UTC time the event was recorded.
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        return type(self).__name__
