"""Changeset: the writes one engine operation commits atomically.

The engine stages every task it creates, modifies or deletes here, together
with the version it read, the audit trail and the events to publish.
Repositories apply a changeset all-or-nothing after checking that every
expected version still matches.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from taskgraph.domain.shared.events import DomainEvent

from .audit import diff_tasks
from .models import Task, TaskAudit


@dataclass
class Changeset:
    """Pending writes of a single operation.

    Attributes:
        saves: Staged task states keyed by id, versions already bumped.
        expected_versions: Version read for each staged or deleted id;
            None means the task is new and must not exist yet.
        read_versions: Version of every task the operation read while
            deciding; a task changed since then makes the commit stale.
        deletes: Ids to remove.
        audits: Field-level audit entries.
        events: Domain events to publish after commit.
    """

    now: datetime
    saves: dict[str, Task] = field(default_factory=dict)
    expected_versions: dict[str, int | None] = field(default_factory=dict)
    read_versions: dict[str, int] = field(default_factory=dict)
    deletes: set[str] = field(default_factory=set)
    audits: list[TaskAudit] = field(default_factory=list)
    events: list[DomainEvent] = field(default_factory=list)

    def expect(self, tasks: Iterable[Task]) -> None:
        """Remember the versions of tasks read, keeping the first version seen."""
        for task in tasks:
            self.read_versions.setdefault(task.id, task.version)

    def create(self, task: Task) -> Task:
        """Stage a new task. Returns the staged state (version 1)."""
        staged = task.model_copy(update={"version": 1, "created_at": self.now, "updated_at": self.now})
        self.expected_versions[task.id] = None
        self.saves[task.id] = staged
        return staged

    def update(self, before: Task, after: Task) -> Task:
        """Stage a modification of ``before``. Returns the staged state.

        Staging the same task twice keeps the version read the first time,
        so the commit still checks against what was loaded.
        """
        if before == after:
            return before
        if before.id not in self.expected_versions:
            self.expected_versions[before.id] = before.version
        expected = self.expected_versions[before.id]
        staged = after.model_copy(
            update={"version": (expected or 0) + 1, "updated_at": self.now}
        )
        if expected is not None:
            self.audits.extend(diff_tasks(before, staged, self.now))
        self.saves[staged.id] = staged
        return staged

    def delete(self, task: Task) -> None:
        if task.id not in self.expected_versions:
            self.expected_versions[task.id] = task.version
        self.saves.pop(task.id, None)
        self.deletes.add(task.id)

    def record(self, event: DomainEvent) -> None:
        self.events.append(event)

    @property
    def is_empty(self) -> bool:
        return not self.saves and not self.deletes

    def touched_ids(self) -> set[str]:
        return set(self.saves) | self.deletes
