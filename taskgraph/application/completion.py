"""Completion propagation.

Applies a status change to one task and carries its consequences through
the graph slice loaded for the operation:

1. the task itself is checked against its blockers and children,
2. the advisory Blocked flag of its dependents is refreshed,
3. parents opted into auto-completion are completed bottom-up,
4. recurring tasks that were completed spawn their next instance.

Everything is staged into the operation's Changeset; nothing is written
until the transaction runner commits it.
"""

import logging

from pydantic import BaseModel, Field, SerializeAsAny

from taskgraph.domain.graph import GraphIndex
from taskgraph.domain.shared import (
    BusinessRuleViolation,
    DomainEvent,
    Err,
    NotFound,
    Ok,
    Result,
    TaskError,
)
from taskgraph.domain.task import (
    Changeset,
    CompletionMode,
    IntervalResolver,
    RecurrenceSpawned,
    Task,
    TaskAutoCompleted,
    TaskBlocked,
    TaskCanceled,
    TaskCompleted,
    TaskReopened,
    TaskStatus,
    TaskUnblocked,
    advisory_status,
    check_completion,
    check_reopen,
    check_transition,
    next_occurrence,
    spawn_instance,
    unresolved,
)
from taskgraph.domain.task.recurrence import CustomUnit

logger = logging.getLogger(__name__)


class CompletionOutcome(BaseModel):
    """What a completion, reopen or cancel changed.

    Attributes:
        task: The requested task in its new state.
        auto_completed: Parents completed by the cascade, bottom-up.
        spawned: New instances created for recurring tasks.
        unblocked: Dependents whose advisory Blocked flag was cleared.
        events: Domain events recorded by the operation.
    """

    task: Task
    auto_completed: list[Task] = Field(default_factory=list)
    spawned: list[Task] = Field(default_factory=list)
    unblocked: list[Task] = Field(default_factory=list)
    events: list[SerializeAsAny[DomainEvent]] = Field(default_factory=list)


class CompletionPropagator:
    """Stages status changes and their cascades for one operation.

    Args:
        index: Graph slice for the operation; kept in sync with staged writes.
        changes: Changeset the writes are staged into.
        resolver: Interval resolver for Custom recurrence patterns.
        custom_unit: Unit used for Custom patterns when no resolver is given.
    """

    def __init__(
        self,
        index: GraphIndex,
        changes: Changeset,
        resolver: IntervalResolver | None = None,
        custom_unit: CustomUnit = "days",
    ) -> None:
        self._index = index
        self._changes = changes
        self._resolver = resolver
        self._custom_unit = custom_unit
        self._unblocked: dict[str, Task] = {}

    def stage(self, before: Task, after: Task) -> Task:
        """Stage a modification and mirror it into the index."""
        staged = self._changes.update(before, after)
        self._index.put(staged)
        return staged

    def _get(self, task_id: str) -> Result[Task, NotFound]:
        task = self._index.get(task_id)
        if task is None:
            return Err(NotFound.task(task_id))
        return Ok(task)

    # =========================================================================
    # Completion
    # =========================================================================

    def complete(
        self,
        task_id: str,
        mode: CompletionMode = CompletionMode.NORMAL,
        force: bool = False,
    ) -> Result[CompletionOutcome, TaskError]:
        """Complete a task, cascade to opted-in parents, spawn recurrences.

        Args:
            task_id: Task to complete.
            mode: NORMAL rejects open children; FORCE_PARENT_AUTO_COMPLETE
                skips that check.
            force: Operator override that also lets unresolved blockers
                through. The task is flagged ``force_completed``.
        """
        found = self._get(task_id)
        if isinstance(found, Err):
            return found

        completed = self._complete_one(found.value, mode, force, triggered_by=None)
        if isinstance(completed, Err):
            return completed

        cascade = self._cascade_parents(completed.value)
        if isinstance(cascade, Err):
            return cascade

        spawned = []
        for task in [completed.value, *cascade.value]:
            instance = self._spawn_next(task)
            if instance is not None:
                spawned.append(instance)

        return Ok(self._outcome(task_id, cascade.value, spawned))

    def _complete_one(
        self,
        task: Task,
        mode: CompletionMode,
        force: bool,
        triggered_by: str | None,
    ) -> Result[Task, TaskError]:
        checked = check_completion(
            task,
            self._index.blockers(task.id),
            self._index.children(task.id),
            mode,
            force,
        )
        if isinstance(checked, Err):
            return checked

        forced = bool(checked.value)
        if forced:
            logger.warning(
                f"Force-completing '{task.title}' past "
                f"{len(checked.value)} unresolved blocker(s)"
            )
        updated = self.stage(
            task,
            task.model_copy(update={"status": TaskStatus.COMPLETED, "force_completed": forced}),
        )
        if triggered_by is None:
            self._changes.record(TaskCompleted(task_id=task.id, forced=forced))
        else:
            self._changes.record(TaskAutoCompleted(task_id=task.id, triggered_by=triggered_by))
        self.refresh_advisory(self._index.dependents(task.id))
        return Ok(updated)

    def _cascade_parents(self, start: Task) -> Result[list[Task], TaskError]:
        """Walk up the hierarchy completing parents whose children are done.

        Only children flagged ``allow_parent_auto_complete`` trigger their
        parent. The walk is bounded by the height of the loaded hierarchy so
        a corrupted parent chain cannot loop.
        """
        max_depth = self._index.height() + 1
        visited = {start.id}
        completed: list[Task] = []
        current = start

        while current.allow_parent_auto_complete and current.parent_id:
            parent = self._index.get(current.parent_id)
            if parent is None or parent.status.is_resolved:
                break
            if parent.id in visited:
                logger.warning(f"Parent chain of {start.id} revisits {parent.id}, stopping")
                break
            if unresolved(self._index.children(parent.id)):
                break
            if len(completed) >= max_depth:
                return Err(
                    BusinessRuleViolation(
                        f"Auto-completion from '{start.title}' exceeded {max_depth} levels",
                        code="CASCADE_DEPTH_EXCEEDED",
                        details={"task_id": start.id, "max_depth": max_depth},
                    )
                )
            visited.add(parent.id)

            result = self._complete_one(
                parent,
                CompletionMode.FORCE_PARENT_AUTO_COMPLETE,
                force=False,
                triggered_by=start.id,
            )
            if isinstance(result, Err):
                logger.info(f"Auto-completion of parent {parent.id} rejected: {result.error}")
                return result
            logger.info(f"Auto-completed parent '{parent.title}' after '{current.title}'")
            completed.append(result.value)
            current = result.value

        return Ok(completed)

    def _spawn_next(self, task: Task) -> Task | None:
        occurrence = next_occurrence(task, self._resolver, self._custom_unit)
        if occurrence is None:
            if task.recurrence is not None:
                logger.info(f"Recurring task {task.id} reached the end of its series")
            return None
        instance = self._changes.create(spawn_instance(task, occurrence, self._changes.now))
        self._index.put(instance)
        self._changes.record(RecurrenceSpawned(task_id=task.id, instance_id=instance.id))
        logger.debug(f"Spawned {instance.id} from {task.id} starting {occurrence.start.isoformat()}")
        return instance

    # =========================================================================
    # Reopen / cancel
    # =========================================================================

    def reopen(
        self,
        task_id: str,
        status: TaskStatus = TaskStatus.TODO,
    ) -> Result[CompletionOutcome, TaskError]:
        """Move a Completed task back to Todo or InProgress.

        The parent and any spawned recurrence instance are left alone. Open
        dependents pick up the advisory Blocked flag again; Completed
        dependents keep their status and are flagged ``force_completed``
        since one of their blockers is now unresolved.
        """
        found = self._get(task_id)
        if isinstance(found, Err):
            return found
        task = found.value

        checked = check_reopen(task, status)
        if isinstance(checked, Err):
            return checked

        dependents = self._index.dependents(task_id)
        completed_dependents = [
            d for d in dependents if d.status == TaskStatus.COMPLETED and not d.force_completed
        ]

        updated = self.stage(
            task, task.model_copy(update={"status": status, "force_completed": False})
        )
        self._changes.record(TaskReopened(task_id=task_id, status=status.value))
        for dependent in completed_dependents:
            self.stage(dependent, dependent.model_copy(update={"force_completed": True}))

        self.refresh_advisory([updated, *dependents])
        return Ok(self._outcome(task_id, [], []))

    def cancel(self, task_id: str) -> Result[CompletionOutcome, TaskError]:
        """Cancel an open task.

        Canceled counts as resolved, so dependents may unblock and an opted-in
        parent may auto-complete.
        """
        found = self._get(task_id)
        if isinstance(found, Err):
            return found
        task = found.value

        if task.status == TaskStatus.CANCELED:
            return Err(
                BusinessRuleViolation(
                    f"Task '{task.title}' is already canceled",
                    code="ALREADY_CANCELED",
                    details={"task_id": task_id},
                )
            )
        checked = check_transition(task, TaskStatus.CANCELED)
        if isinstance(checked, Err):
            return checked

        updated = self.stage(task, task.model_copy(update={"status": TaskStatus.CANCELED}))
        self._changes.record(TaskCanceled(task_id=task_id))
        self.refresh_advisory(self._index.dependents(task_id))

        cascade = self._cascade_parents(updated)
        if isinstance(cascade, Err):
            return cascade
        spawned = [s for s in map(self._spawn_next, cascade.value) if s is not None]
        return Ok(self._outcome(task_id, cascade.value, spawned))

    # =========================================================================
    # Generic status changes
    # =========================================================================

    def set_status(self, task_id: str, target: TaskStatus) -> Result[Task, TaskError]:
        """Route a plain status change to the matching operation.

        Completed and Canceled go through the completion and cancel rules, a
        Completed task moving back to an open status is reopened, and moves
        among open statuses only consult the transition table.
        """
        found = self._get(task_id)
        if isinstance(found, Err):
            return found
        task = found.value
        if task.status == target:
            return Ok(task)

        if target == TaskStatus.COMPLETED:
            outcome = self.complete(task_id)
        elif target == TaskStatus.CANCELED:
            outcome = self.cancel(task_id)
        elif task.status == TaskStatus.COMPLETED:
            outcome = self.reopen(task_id, target)
        else:
            checked = check_transition(task, target)
            if isinstance(checked, Err):
                return checked
            return Ok(self.stage(task, task.model_copy(update={"status": target})))

        if isinstance(outcome, Err):
            return outcome
        return Ok(outcome.value.task)

    def refresh_advisory(self, tasks: list[Task]) -> None:
        """Recompute the advisory Blocked flag of ``tasks``."""
        for candidate in tasks:
            task = self._index.get(candidate.id)
            if task is None:
                continue
            status = advisory_status(task, self._index.blockers(task.id))
            if status == task.status:
                continue
            updated = self.stage(task, task.model_copy(update={"status": status}))
            if status == TaskStatus.BLOCKED:
                self._unblocked.pop(task.id, None)
                self._changes.record(TaskBlocked(task_id=task.id))
            else:
                self._unblocked[task.id] = updated
                self._changes.record(TaskUnblocked(task_id=task.id))

    def _outcome(self, task_id: str, auto: list[Task], spawned: list[Task]) -> CompletionOutcome:
        return CompletionOutcome(
            task=self._index.get(task_id),
            auto_completed=[self._index.get(t.id) for t in auto],
            spawned=spawned,
            unblocked=[self._index.get(t_id) for t_id in self._unblocked],
            events=list(self._changes.events),
        )
