"""Run engine operations as single repository transactions.

An operation is a function that reads a fresh graph snapshot, stages its
writes into a Changeset and returns a Result. The runner commits the
changeset atomically, retries on an optimistic-lock conflict and publishes
the operation's domain events once the commit has succeeded.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from taskgraph.domain.shared import Conflict, DomainEvent, Err, Result, TaskError
from taskgraph.domain.task import Changeset, utcnow
from taskgraph.infrastructure.storage import TaskRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[Changeset], Result[T, TaskError]]
EventHandler = Callable[[DomainEvent], None]


class TransactionRunner:
    """Commits operations with optimistic concurrency.

    Args:
        repository: Where changesets are committed.
        retries: How many times a conflicting operation is re-run against a
            fresh snapshot before Conflict is returned.
        clock: Source of the timestamp stamped on every write.
    """

    def __init__(
        self,
        repository: TaskRepository,
        retries: int = 1,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._retries = retries
        self._clock = clock
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        """Register a callback for events of committed operations."""
        self._handlers.append(handler)

    def run(self, name: str, operation: Operation[T]) -> Result[T, TaskError]:
        attempts = self._retries + 1
        for attempt in range(1, attempts + 1):
            changes = Changeset(now=self._clock())
            result = operation(changes)
            if isinstance(result, Err):
                logger.info(f"{name} rejected: {result.error}")
                return result
            if changes.is_empty:
                return result

            committed = self._repository.commit(changes)
            if not isinstance(committed, Err):
                logger.debug(
                    f"{name} committed {len(changes.saves)} saves, "
                    f"{len(changes.deletes)} deletes: {', '.join(sorted(changes.touched_ids()))}"
                )
                self._publish(changes.events)
                return result

            if isinstance(committed.error, Conflict) and attempt < attempts:
                logger.warning(f"{name} hit a version conflict (attempt {attempt}), retrying")
                continue
            logger.error(f"{name} failed to commit: {committed.error}")
            return committed
        raise AssertionError("unreachable")

    def _publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            logger.info(f"{event.name} {event.model_dump(exclude={'event_id', 'timestamp'})}")
            for handler in self._handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(f"Event handler failed for {event.name}")
