"""In-memory adjacency view of the task graph.

A GraphIndex is built at the start of every engine operation and thrown away
afterwards. Tasks live in slots of an arena; adjacency is stored as sets of
slot numbers, so lookups are O(1) and no task holds a reference to another.

Two edge families share the index:

- hierarchy: child -> parent (``parent_id``)
- dependency: task -> blocker (``depends_on``)

The combined graph used for cycle checks follows both families in those
directions.
"""

import logging
from collections import deque
from collections.abc import Iterable, Iterator
from typing import Protocol

from taskgraph.domain.shared.result import Ok, Result
from taskgraph.domain.task.models import Task

logger = logging.getLogger(__name__)


class TaskSource(Protocol):
    """The read side of a task repository, as far as the index needs it."""

    def get(self, task_id: str) -> Result[Task, object]: ...

    def children(self, parent_id: str) -> list[Task]: ...

    def dependents(self, task_id: str) -> list[Task]: ...

    def list_all(self) -> list[Task]: ...


class GraphIndex:
    """Arena-backed adjacency for hierarchy and dependency edges.

    Edges pointing at ids that are not in the index are kept on the task but
    ignored by adjacency queries; the engine rejects such references before
    writing, so they only appear when a partial slice is loaded.
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._slots: dict[str, int] = {}
        self._tasks: list[Task | None] = []
        self._free: list[int] = []
        # Adjacency keyed by task id so edges can be wired before the
        # other endpoint is added.
        self._children: dict[str, set[str]] = {}
        self._dependents: dict[str, set[str]] = {}
        for task in tasks:
            self.put(task)

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "GraphIndex":
        return cls(tasks)

    @classmethod
    def load(cls, source: TaskSource, seeds: Iterable[str] | None = None) -> "GraphIndex":
        """Load the slice of the graph an operation needs.

        With no seeds, every task is loaded. Otherwise the connected
        component of the seeds (following parents, children, blockers and
        dependents) is loaded, which covers every node a cycle check or
        completion cascade can reach. Unknown seeds are skipped; callers
        report them as NotFound.
        """
        if seeds is None:
            return cls(source.list_all())

        index = cls()
        queue: deque[str] = deque(seeds)
        seen: set[str] = set()
        while queue:
            task_id = queue.popleft()
            if task_id in seen:
                continue
            seen.add(task_id)
            result = source.get(task_id)
            if not isinstance(result, Ok):
                continue
            task = result.value
            index.put(task)
            neighbours: list[str] = list(task.depends_on)
            if task.parent_id:
                neighbours.append(task.parent_id)
            neighbours.extend(child.id for child in source.children(task_id))
            neighbours.extend(dep.id for dep in source.dependents(task_id))
            queue.extend(n for n in neighbours if n not in seen)
        logger.debug(f"Loaded graph slice of {len(index)} tasks from {len(seen)} ids")
        return index

    # =========================================================================
    # Mutation (working copy for the current operation)
    # =========================================================================

    def put(self, task: Task) -> None:
        """Add a task or replace it, rewiring its outgoing edges."""
        if task.id in self._slots:
            self._unlink(self._tasks[self._slots[task.id]])
            slot = self._slots[task.id]
            self._tasks[slot] = task
        else:
            slot = self._free.pop() if self._free else len(self._tasks)
            if slot == len(self._tasks):
                self._tasks.append(task)
            else:
                self._tasks[slot] = task
            self._slots[task.id] = slot
        if task.parent_id:
            self._children.setdefault(task.parent_id, set()).add(task.id)
        for blocker_id in task.depends_on:
            self._dependents.setdefault(blocker_id, set()).add(task.id)

    def remove(self, task_id: str) -> None:
        slot = self._slots.pop(task_id, None)
        if slot is None:
            return
        self._unlink(self._tasks[slot])
        self._tasks[slot] = None
        self._free.append(slot)

    def _unlink(self, task: Task | None) -> None:
        if task is None:
            return
        if task.parent_id:
            self._children.get(task.parent_id, set()).discard(task.id)
        for blocker_id in task.depends_on:
            self._dependents.get(blocker_id, set()).discard(task.id)

    # =========================================================================
    # Queries
    # =========================================================================

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[Task]:
        return (t for t in self._tasks if t is not None)

    def get(self, task_id: str) -> Task | None:
        slot = self._slots.get(task_id)
        return self._tasks[slot] if slot is not None else None

    def slot(self, task_id: str) -> int | None:
        return self._slots.get(task_id)

    def _resolve(self, ids: Iterable[str]) -> list[Task]:
        tasks = [self.get(i) for i in ids]
        return sorted((t for t in tasks if t is not None), key=lambda t: self._slots[t.id])

    def parent(self, task_id: str) -> Task | None:
        task = self.get(task_id)
        if task is None or task.parent_id is None:
            return None
        return self.get(task.parent_id)

    def children(self, task_id: str) -> list[Task]:
        return self._resolve(self._children.get(task_id, ()))

    def blockers(self, task_id: str) -> list[Task]:
        task = self.get(task_id)
        return self._resolve(task.depends_on) if task else []

    def dependents(self, task_id: str) -> list[Task]:
        return self._resolve(self._dependents.get(task_id, ()))

    def successors(self, task_id: str) -> list[str]:
        """Out-edges in the combined graph: the parent, then the blockers."""
        task = self.get(task_id)
        if task is None:
            return []
        out = [task.parent_id] if task.parent_id in self._slots else []
        out.extend(b for b in sorted(task.depends_on) if b in self._slots)
        return out

    def ancestors(self, task_id: str) -> list[Task]:
        """Parent chain from the direct parent upwards.

        Stops if the chain revisits a task, so a corrupted hierarchy cannot
        loop forever.
        """
        chain: list[Task] = []
        seen = {task_id}
        current = self.parent(task_id)
        while current is not None and current.id not in seen:
            chain.append(current)
            seen.add(current.id)
            current = self.parent(current.id)
        return chain

    def depth(self, task_id: str) -> int:
        return len(self.ancestors(task_id))

    def height(self) -> int:
        """Number of levels in the deepest hierarchy chain of the index."""
        if not self._slots:
            return 0
        return max(self.depth(task_id) for task_id in self._slots) + 1
