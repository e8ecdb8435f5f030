"""Task repository implementations.

The engine only talks to the ``TaskRepository`` protocol. Repositories
store tasks and audit entries and enforce nothing beyond storage, except the
optimistic version check performed when a changeset is committed.
"""

import logging
import threading
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from taskgraph.domain.shared import (
    Conflict,
    Err,
    NotFound,
    Ok,
    Result,
    StorageFailure,
    TaskError,
)
from taskgraph.domain.task import (
    Changeset,
    Task,
    TaskAudit,
    TaskFilter,
    TaskPage,
    listing_order,
)
from taskgraph.infrastructure.storage.json_storage import JsonStorage

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


class TaskRepository(Protocol):
    """Storage contract consumed by the engine."""

    def get(self, task_id: str) -> Result[Task, NotFound]: ...

    def list_all(self) -> list[Task]: ...

    def find(self, task_filter: TaskFilter) -> TaskPage: ...

    def children(self, parent_id: str) -> list[Task]: ...

    def blockers(self, task_id: str) -> list[Task]: ...

    def dependents(self, task_id: str) -> list[Task]: ...

    def save(self, task: Task) -> Result[Task, TaskError]: ...

    def delete(self, task_id: str) -> Result[None, TaskError]: ...

    def batch_save(self, tasks: list[Task]) -> Result[list[Task], TaskError]: ...

    def commit(self, changes: Changeset) -> Result[list[Task], TaskError]: ...

    def audits_for(self, task_id: str) -> list[TaskAudit]: ...


class InMemoryTaskRepository:
    """Dict-backed repository.

    Commits are serialized with a re-entrant lock and applied all-or-nothing
    after the version check, so concurrent engine calls in one process
    cannot interleave their writes.
    """

    def __init__(self, tasks: list[Task] | None = None) -> None:
        self._lock = threading.RLock()
        self._tasks: dict[str, Task] = {}
        self._audits: list[TaskAudit] = []
        for task in tasks or []:
            self._tasks[task.id] = task

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, task_id: str) -> Result[Task, NotFound]:
        with self._lock:
            task = self._tasks.get(task_id)
        if task is None:
            return Err(NotFound.task(task_id))
        return Ok(task)

    def list_all(self) -> list[Task]:
        with self._lock:
            return list(self._tasks.values())

    def find(self, task_filter: TaskFilter) -> TaskPage:
        matching = sorted(
            (t for t in self.list_all() if task_filter.matches(t)),
            key=listing_order,
        )
        start = (task_filter.page - 1) * task_filter.limit
        return TaskPage(
            tasks=matching[start : start + task_filter.limit],
            total=len(matching),
            page=task_filter.page,
            limit=task_filter.limit,
        )

    def children(self, parent_id: str) -> list[Task]:
        return [t for t in self.list_all() if t.parent_id == parent_id]

    def blockers(self, task_id: str) -> list[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return []
            return [self._tasks[b] for b in sorted(task.depends_on) if b in self._tasks]

    def dependents(self, task_id: str) -> list[Task]:
        return [t for t in self.list_all() if task_id in t.depends_on]

    def audits_for(self, task_id: str) -> list[TaskAudit]:
        with self._lock:
            return [a for a in self._audits if a.task_id == task_id]

    # =========================================================================
    # Writes
    # =========================================================================

    def save(self, task: Task) -> Result[Task, TaskError]:
        """Store a task as-is, without a version check."""
        result = self.batch_save([task])
        if isinstance(result, Err):
            return result
        return Ok(task)

    def batch_save(self, tasks: list[Task]) -> Result[list[Task], TaskError]:
        """Store several tasks as-is in one step."""
        with self._lock:
            snapshot = dict(self._tasks)
            for task in tasks:
                self._tasks[task.id] = task
            persisted = self._persist()
            if isinstance(persisted, Err):
                self._tasks = snapshot
                return persisted
        return Ok(list(tasks))

    def delete(self, task_id: str) -> Result[None, TaskError]:
        with self._lock:
            if task_id not in self._tasks:
                return Err(NotFound.task(task_id))
            snapshot = (dict(self._tasks), list(self._audits))
            del self._tasks[task_id]
            self._audits = [a for a in self._audits if a.task_id != task_id]
            persisted = self._persist()
            if isinstance(persisted, Err):
                self._tasks, self._audits = snapshot
            return persisted

    def commit(self, changes: Changeset) -> Result[list[Task], TaskError]:
        """Apply a changeset if every expected version still matches."""
        with self._lock:
            stale = self._stale_ids(changes)
            if stale:
                logger.info(f"Version conflict on {', '.join(sorted(stale))}")
                return Err(
                    Conflict(
                        "Tasks were modified concurrently",
                        details={"task_ids": sorted(stale)},
                    )
                )

            snapshot = (dict(self._tasks), list(self._audits))
            for task_id in changes.deletes:
                self._tasks.pop(task_id, None)
            self._tasks.update(changes.saves)
            self._audits = [a for a in self._audits if a.task_id not in changes.deletes]
            self._audits.extend(changes.audits)

            persisted = self._persist()
            if isinstance(persisted, Err):
                self._tasks, self._audits = snapshot
                return persisted
            return Ok(list(changes.saves.values()))

    def _stale_ids(self, changes: Changeset) -> set[str]:
        stale = set()
        for task_id, expected in changes.expected_versions.items():
            current = self._tasks.get(task_id)
            if expected is None:
                if current is not None:
                    stale.add(task_id)
            elif current is None or current.version != expected:
                stale.add(task_id)
        for task_id, seen in changes.read_versions.items():
            if task_id in changes.expected_versions:
                continue
            current = self._tasks.get(task_id)
            if current is None or current.version != seen:
                stale.add(task_id)
        return stale

    def _persist(self) -> Result[None, TaskError]:
        """Hook for durable subclasses; memory needs no flush."""
        return Ok(None)


class JsonTaskRepository(InMemoryTaskRepository):
    """Repository persisted to a single JSON document.

    The whole store is loaded at construction and rewritten atomically after
    every write. A failed write rolls the in-memory state back.
    """

    def __init__(self, path: Path, storage: JsonStorage | None = None) -> None:
        super().__init__()
        self._path = path
        self._storage = storage or JsonStorage()
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            logger.info(f"Starting empty task store at {self._path}")
            return
        result = self._storage.load_json(self._path)
        if isinstance(result, Err):
            raise StorageLoadError(result.error)
        data = result.value
        try:
            tasks = [Task.model_validate(item) for item in data.get("tasks", [])]
            audits = [TaskAudit.model_validate(item) for item in data.get("audits", [])]
        except PydanticValidationError as e:
            raise StorageLoadError(
                StorageFailure(f"Invalid task data in {self._path}: {e}", code="INVALID_DATA")
            ) from e
        self._tasks = {t.id: t for t in tasks}
        self._audits = audits
        logger.info(f"Loaded {len(tasks)} tasks from {self._path}")

    def _persist(self) -> Result[None, TaskError]:
        document = {
            "format": STORE_FORMAT_VERSION,
            "tasks": [t.model_dump(mode="json") for t in self._tasks.values()],
            "audits": [a.model_dump(mode="json") for a in self._audits],
        }
        return self._storage.save_json(self._path, document)


class StorageLoadError(Exception):
    """Raised when an existing store file cannot be read at startup."""

    def __init__(self, error: StorageFailure) -> None:
        super().__init__(str(error))
        self.error = error
