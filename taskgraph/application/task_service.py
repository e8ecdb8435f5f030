"""Task service - the engine facade.

Every mutating call runs as one transaction: it loads a fresh graph slice,
validates the request (fields, references, cycles, status rules), stages
its writes into a Changeset and commits them atomically. Nothing is written
when any check fails.

Example:
    service = TaskService(InMemoryTaskRepository())
    result = service.create_task({"title": "Write report"})
    if isinstance(result, Ok):
        print(result.value.id)
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from taskgraph.application.completion import CompletionOutcome, CompletionPropagator
from taskgraph.application.inputs import BulkEdge, BulkTaskRecord, TaskCreate, TaskUpdate
from taskgraph.application.transaction import EventHandler, TransactionRunner
from taskgraph.config import EngineConfig
from taskgraph.domain.graph import (
    Edge,
    GraphIndex,
    dependency_edge,
    hierarchy_edge,
    would_create_cycle,
)
from taskgraph.domain.shared import (
    BusinessRuleViolation,
    DependencyCycle,
    Err,
    NotFound,
    Ok,
    Result,
    TaskError,
    ValidationError,
    collect,
    flat_map,
    map_result,
)
from taskgraph.domain.task import (
    Changeset,
    CompletionMode,
    DependencyAdded,
    DependencyRemoved,
    IntervalResolver,
    Task,
    TaskAudit,
    TaskCreated,
    TaskDeleted,
    TaskFilter,
    TaskPage,
    TaskStatus,
    TaskUpdated,
    changed_fields,
    new_task_id,
    unresolved,
    utcnow,
)
from taskgraph.infrastructure.storage import TaskRepository

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def parse_input(model: type[M], data: M | Mapping[str, Any], prefix: str = "") -> Result[M, ValidationError]:
    """Validate caller input into ``model``, converting pydantic errors."""
    if isinstance(data, model):
        return Ok(data)
    try:
        return Ok(model.model_validate(data))
    except PydanticValidationError as e:
        return Err(ValidationError.from_pydantic(e, prefix))


def cycle_error(edge: Edge, hierarchy: bool = False) -> DependencyCycle:
    """Build the error for an edge rejected by the cycle detector."""
    source, target = edge
    if source == target:
        what = "be its own parent" if hierarchy else "depend on itself"
        return DependencyCycle(
            f"Task {source} cannot {what}",
            code="SELF_REFERENCE",
            details={"task_id": source},
            edge=edge,
        )
    relation = "a child of" if hierarchy else "dependent on"
    return DependencyCycle(
        f"Making {source} {relation} {target} would create a cycle",
        details={"task_id": source, "target_id": target},
        edge=edge,
    )


class TaskService:
    """Engine operations over a task repository.

    Args:
        repository: Where tasks live.
        config: Engine defaults; ``EngineConfig()`` when omitted.
        clock: Timestamp source, injectable for tests.
        interval_resolver: Period for Custom recurrence patterns. When
            omitted, Custom patterns step by ``config.custom_recurrence_unit``.
    """

    def __init__(
        self,
        repository: TaskRepository,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        interval_resolver: IntervalResolver | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or EngineConfig()
        self._clock = clock or utcnow
        self._resolver = interval_resolver
        self._runner = TransactionRunner(
            repository, retries=self._config.conflict_retries, clock=self._clock
        )

    @property
    def repository(self) -> TaskRepository:
        return self._repository

    def subscribe(self, handler: EventHandler) -> None:
        """Receive the domain events of every committed operation."""
        self._runner.subscribe(handler)

    def _load(self, changes: Changeset, seeds: Iterable[str] | None = None) -> GraphIndex:
        """Load a graph slice and register every task in it as read.

        Any of those tasks changing before the commit makes the commit a
        Conflict, so decisions taken on the slice never go stale.
        """
        index = GraphIndex.load(self._repository, seeds)
        changes.expect(index)
        return index

    def _propagator(self, index: GraphIndex, changes: Changeset) -> CompletionPropagator:
        return CompletionPropagator(
            index,
            changes,
            resolver=self._resolver,
            custom_unit=self._config.custom_recurrence_unit,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_task(self, task_id: str) -> Result[Task, NotFound]:
        return self._repository.get(task_id)

    def list_tasks(self, task_filter: TaskFilter | Mapping[str, Any] | None = None) -> Result[TaskPage, ValidationError]:
        parsed = parse_input(TaskFilter, task_filter if task_filter is not None else {})
        if isinstance(parsed, Err):
            return parsed
        return Ok(self._repository.find(parsed.value))

    def get_subtasks(self, task_id: str) -> Result[list[Task], NotFound]:
        return map_result(self._repository.get(task_id), lambda task: self._repository.children(task.id))

    def task_history(self, task_id: str) -> Result[list[TaskAudit], NotFound]:
        """Audit entries of a task, oldest first."""
        found = self._repository.get(task_id)
        if isinstance(found, Err):
            return found
        audits = self._repository.audits_for(task_id)
        return Ok(sorted(audits, key=lambda a: a.changed_at))

    # =========================================================================
    # Create / update / delete
    # =========================================================================

    def create_task(self, data: TaskCreate | Mapping[str, Any]) -> Result[Task, TaskError]:
        return flat_map(
            parse_input(TaskCreate, data),
            lambda parsed: self._runner.run("create_task", lambda changes: self._create(changes, parsed)),
        )

    def add_subtask(self, parent_id: str, data: TaskCreate | Mapping[str, Any]) -> Result[Task, TaskError]:
        """Create a task under ``parent_id``."""
        parsed = parse_input(TaskCreate, data)
        if isinstance(parsed, Err):
            return parsed
        subtask = parsed.value.model_copy(update={"parent_id": parent_id})
        return self._runner.run("add_subtask", lambda changes: self._create(changes, subtask))

    def _create(self, changes: Changeset, data: TaskCreate) -> Result[Task, TaskError]:
        blocker_ids = list(dict.fromkeys(data.depends_on))
        seeds = [*blocker_ids, data.parent_id] if data.parent_id else blocker_ids
        index = self._load(changes, seeds)

        if data.parent_id and data.parent_id not in index:
            return Err(NotFound.task(data.parent_id, role="Parent task"))
        for blocker_id in blocker_ids:
            if blocker_id not in index:
                return Err(NotFound.task(blocker_id, role="Blocker"))

        built = self._build_task(data, new_task_id(), blocker_ids, changes.now)
        if isinstance(built, Err):
            return built
        task = built.value

        edges = [dependency_edge(task.id, b) for b in blocker_ids]
        if task.parent_id:
            edges.append(hierarchy_edge(task.id, task.parent_id))
        offending = would_create_cycle(index, edges)
        if offending is not None:
            return Err(cycle_error(offending, hierarchy=offending[1] == task.parent_id))

        checked = self._initial_status(task, [index.get(b) for b in blocker_ids])
        if isinstance(checked, Err):
            return checked

        staged = changes.create(checked.value)
        index.put(staged)
        changes.record(TaskCreated(task_id=staged.id, title=staged.title, parent_id=staged.parent_id))
        logger.info(f"Created task {staged.id} '{staged.title}'")
        return Ok(staged)

    def _build_task(
        self,
        data: TaskCreate,
        task_id: str,
        blocker_ids: Iterable[str],
        now: datetime,
        parent_id: str | None = None,
    ) -> Result[Task, ValidationError]:
        """Apply configured defaults and validate the full task."""
        fields = data.model_dump(exclude={"depends_on", "ref"})
        if fields["priority"] is None:
            fields["priority"] = self._config.default_priority
        if fields["estimated_duration_minutes"] is None:
            fields["estimated_duration_minutes"] = self._config.default_estimated_duration_minutes
        if fields["allow_parent_auto_complete"] is None:
            fields["allow_parent_auto_complete"] = self._config.default_allow_parent_auto_complete
        if parent_id is not None:
            fields["parent_id"] = parent_id
        try:
            task = Task(
                **fields,
                id=task_id,
                depends_on=set(blocker_ids),
                created_at=now,
                updated_at=now,
            )
        except PydanticValidationError as e:
            return Err(ValidationError.from_pydantic(e))
        return Ok(task)

    @staticmethod
    def _initial_status(task: Task, blockers: list[Task]) -> Result[Task, TaskError]:
        """Check a new task's requested status against its blockers."""
        open_blockers = unresolved(blockers)
        if not open_blockers:
            return Ok(task)
        if task.status == TaskStatus.COMPLETED:
            return Err(
                BusinessRuleViolation(
                    f"Cannot create task '{task.title}' as Completed with incomplete dependencies",
                    code="INCOMPLETE_DEPENDENCIES",
                    details={"blockers": [b.id for b in open_blockers]},
                )
            )
        if task.status == TaskStatus.TODO:
            return Ok(task.model_copy(update={"status": TaskStatus.BLOCKED}))
        return Ok(task)

    def update_task(self, task_id: str, data: TaskUpdate | Mapping[str, Any]) -> Result[Task, TaskError]:
        """Apply a partial update.

        Field changes are validated against the full task. A status change is
        routed through the completion, cancel or reopen rules; a new parent is
        checked for existence and cycles.
        """
        parsed = parse_input(TaskUpdate, data)
        if isinstance(parsed, Err):
            return parsed
        return self._runner.run(
            "update_task", lambda changes: self._update(changes, task_id, parsed.value)
        )

    def _update(self, changes: Changeset, task_id: str, data: TaskUpdate) -> Result[Task, TaskError]:
        fields = data.changes()
        target_status = fields.pop("status", None)
        new_parent = fields.get("parent_id")

        index = self._load(changes, [task_id, new_parent] if new_parent else [task_id])
        task = index.get(task_id)
        if task is None:
            return Err(NotFound.task(task_id))

        if new_parent is not None and new_parent != task.parent_id:
            if new_parent not in index:
                return Err(NotFound.task(new_parent, role="Parent task"))
            offending = would_create_cycle(index, [hierarchy_edge(task_id, new_parent)])
            if offending is not None:
                return Err(cycle_error(offending, hierarchy=True))

        propagator = self._propagator(index, changes)
        if fields:
            try:
                updated = Task.model_validate({**task.model_dump(), **fields})
            except PydanticValidationError as e:
                return Err(ValidationError.from_pydantic(e))
            names = changed_fields(task, updated)
            if names:
                propagator.stage(task, updated)
                changes.record(TaskUpdated(task_id=task_id, fields=names))

        if target_status is not None:
            moved = propagator.set_status(task_id, target_status)
            if isinstance(moved, Err):
                return moved

        return Ok(index.get(task_id))

    def delete_task(self, task_id: str) -> Result[None, TaskError]:
        """Delete a task without children, detaching it from its dependents."""
        return self._runner.run("delete_task", lambda changes: self._delete(changes, task_id))

    def _delete(self, changes: Changeset, task_id: str) -> Result[None, TaskError]:
        index = self._load(changes, [task_id])
        task = index.get(task_id)
        if task is None:
            return Err(NotFound.task(task_id))

        children = index.children(task_id)
        if children:
            return Err(
                BusinessRuleViolation(
                    f"Cannot delete task '{task.title}' while it has {len(children)} subtask(s)",
                    code="HAS_CHILDREN",
                    details={"task_id": task_id, "children": [c.id for c in children]},
                )
            )

        propagator = self._propagator(index, changes)
        dependents = index.dependents(task_id)
        for dependent in dependents:
            propagator.stage(
                dependent,
                dependent.model_copy(update={"depends_on": dependent.depends_on - {task_id}}),
            )
        changes.delete(task)
        index.remove(task_id)
        propagator.refresh_advisory(dependents)

        changes.record(TaskDeleted(task_id=task_id, detached_dependents=[d.id for d in dependents]))
        logger.info(f"Deleted task {task_id}, detached from {len(dependents)} dependent(s)")
        return Ok(None)

    # =========================================================================
    # Dependencies
    # =========================================================================

    def add_dependency(self, task_id: str, blocker_id: str) -> Result[Task, TaskError]:
        """Make ``task_id`` depend on ``blocker_id``. Adding an existing edge is a no-op."""
        return self._runner.run(
            "add_dependency", lambda changes: self._set_blockers(changes, task_id, [blocker_id], replace=False)
        )

    def set_dependencies(self, task_id: str, blocker_ids: Iterable[str]) -> Result[Task, TaskError]:
        """Replace the full blocker set of a task."""
        wanted = list(dict.fromkeys(blocker_ids))
        return self._runner.run(
            "set_dependencies", lambda changes: self._set_blockers(changes, task_id, wanted, replace=True)
        )

    def _set_blockers(
        self,
        changes: Changeset,
        task_id: str,
        blocker_ids: list[str],
        replace: bool,
    ) -> Result[Task, TaskError]:
        index = self._load(changes, [task_id, *blocker_ids])
        task = index.get(task_id)
        if task is None:
            return Err(NotFound.task(task_id))
        for blocker_id in blocker_ids:
            if blocker_id not in index:
                return Err(NotFound.task(blocker_id, role="Blocker"))

        wanted = set(blocker_ids) if replace else task.depends_on | set(blocker_ids)
        if wanted == task.depends_on:
            return Ok(task)

        added = [b for b in blocker_ids if b not in task.depends_on]
        removed = sorted(task.depends_on - wanted)
        offending = would_create_cycle(index, [dependency_edge(task_id, b) for b in added])
        if offending is not None:
            return Err(cycle_error(offending))

        if task.status == TaskStatus.COMPLETED:
            open_blockers = unresolved(index.get(b) for b in added)
            if open_blockers:
                return Err(
                    BusinessRuleViolation(
                        f"Completed task '{task.title}' cannot gain an unresolved blocker",
                        code="COMPLETED_TASK_BLOCKER",
                        details={"task_id": task_id, "blockers": [b.id for b in open_blockers]},
                    )
                )

        propagator = self._propagator(index, changes)
        updated = propagator.stage(task, task.model_copy(update={"depends_on": wanted}))
        for blocker_id in added:
            changes.record(DependencyAdded(task_id=task_id, depends_on=blocker_id))
        for blocker_id in removed:
            changes.record(DependencyRemoved(task_id=task_id, depends_on=blocker_id))
        propagator.refresh_advisory([updated])
        return Ok(index.get(task_id))

    def remove_dependency(self, task_id: str, blocker_id: str) -> Result[Task, TaskError]:
        """Drop one blocker. Removing an edge that does not exist is a no-op."""
        return self._runner.run(
            "remove_dependency", lambda changes: self._remove_dependency(changes, task_id, blocker_id)
        )

    def _remove_dependency(self, changes: Changeset, task_id: str, blocker_id: str) -> Result[Task, TaskError]:
        index = self._load(changes, [task_id])
        task = index.get(task_id)
        if task is None:
            return Err(NotFound.task(task_id))
        if blocker_id not in task.depends_on:
            return Ok(task)

        propagator = self._propagator(index, changes)
        updated = propagator.stage(
            task, task.model_copy(update={"depends_on": task.depends_on - {blocker_id}})
        )
        changes.record(DependencyRemoved(task_id=task_id, depends_on=blocker_id))
        propagator.refresh_advisory([updated])
        return Ok(index.get(task_id))

    # =========================================================================
    # Status changes
    # =========================================================================

    def complete_task(
        self,
        task_id: str,
        mode: CompletionMode | str = CompletionMode.NORMAL,
        force: bool = False,
    ) -> Result[CompletionOutcome, TaskError]:
        """Complete a task and run its cascade.

        Args:
            task_id: Task to complete.
            mode: ``normal`` or ``forceParentAutoComplete``.
            force: Also complete past unresolved blockers.
        """
        try:
            mode = CompletionMode(mode)
        except ValueError:
            return Err(
                ValidationError(
                    f"Unknown completion mode: {mode}",
                    details={"mode": str(mode), "allowed": [m.value for m in CompletionMode]},
                )
            )

        def operation(changes: Changeset) -> Result[CompletionOutcome, TaskError]:
            index = self._load(changes, [task_id])
            return self._propagator(index, changes).complete(task_id, mode, force)

        return self._runner.run("complete_task", operation)

    def reopen_task(
        self,
        task_id: str,
        status: TaskStatus | str = TaskStatus.TODO,
    ) -> Result[CompletionOutcome, TaskError]:
        """Move a Completed task back to Todo or InProgress."""
        try:
            status = TaskStatus(status)
        except ValueError:
            return Err(ValidationError(f"Unknown status: {status}", details={"status": str(status)}))

        def operation(changes: Changeset) -> Result[CompletionOutcome, TaskError]:
            index = self._load(changes, [task_id])
            return self._propagator(index, changes).reopen(task_id, status)

        return self._runner.run("reopen_task", operation)

    def cancel_task(self, task_id: str) -> Result[CompletionOutcome, TaskError]:
        """Cancel an open task; Canceled counts as resolved for dependents."""

        def operation(changes: Changeset) -> Result[CompletionOutcome, TaskError]:
            index = self._load(changes, [task_id])
            return self._propagator(index, changes).cancel(task_id)

        return self._runner.run("cancel_task", operation)

    # =========================================================================
    # Bulk import
    # =========================================================================

    def bulk_import(
        self,
        records: Iterable[BulkTaskRecord | Mapping[str, Any]],
        edges: Iterable[BulkEdge | Mapping[str, Any] | tuple[str, str]] = (),
    ) -> Result[list[Task], TaskError]:
        """Create many tasks and their edges in one transaction.

        Records reference each other through their ``ref``; references that
        are not refs of the batch must be ids of existing tasks. Cycle
        detection covers the whole batch before anything is written.

        Returns:
            The created tasks, in record order.
        """
        parsed = collect(
            parse_input(BulkTaskRecord, raw, prefix=f"records.{position}")
            for position, raw in enumerate(records)
        )
        if isinstance(parsed, Err):
            return parsed
        parsed_records: list[BulkTaskRecord] = parsed.value

        parsed = collect(
            parse_input(
                BulkEdge,
                {"task": raw[0], "depends_on": raw[1]} if isinstance(raw, tuple) else raw,
                prefix=f"edges.{position}",
            )
            for position, raw in enumerate(edges)
        )
        if isinstance(parsed, Err):
            return parsed
        parsed_edges: list[BulkEdge] = parsed.value

        refs = [r.ref for r in parsed_records if r.ref is not None]
        duplicates = sorted({ref for ref in refs if refs.count(ref) > 1})
        if duplicates:
            return Err(
                ValidationError(
                    f"Duplicate refs in import: {', '.join(duplicates)}",
                    code="DUPLICATE_REF",
                    details={"refs": duplicates},
                )
            )

        return self._runner.run(
            "bulk_import", lambda changes: self._bulk_import(changes, parsed_records, parsed_edges)
        )

    def _bulk_import(
        self,
        changes: Changeset,
        records: list[BulkTaskRecord],
        extra_edges: list[BulkEdge],
    ) -> Result[list[Task], TaskError]:
        ids = [new_task_id() for _ in records]
        by_ref = {r.ref: task_id for r, task_id in zip(records, ids) if r.ref is not None}

        external = {
            token
            for r in records
            for token in [*r.depends_on, r.parent_id]
            if token is not None and token not in by_ref
        }
        external.update(e.depends_on for e in extra_edges if e.depends_on not in by_ref)
        index = self._load(changes, sorted(external))

        def resolve(token: str, role: str) -> Result[str, NotFound]:
            if token in by_ref:
                return Ok(by_ref[token])
            if token in index:
                return Ok(token)
            return Err(NotFound(f"{role} not found: {token}", details={"ref": token, "role": role}))

        parents: dict[str, str] = {}
        blockers: dict[str, list[str]] = {task_id: [] for task_id in ids}
        for record, task_id in zip(records, ids):
            if record.parent_id is not None:
                parent = resolve(record.parent_id, "Parent task")
                if isinstance(parent, Err):
                    return parent
                parents[task_id] = parent.value
            for token in record.depends_on:
                blocker = resolve(token, "Blocker")
                if isinstance(blocker, Err):
                    return blocker
                blockers[task_id].append(blocker.value)
        for edge in extra_edges:
            if edge.task not in by_ref:
                return Err(
                    ValidationError(
                        f"Import edge must start at a record of the batch: {edge.task}",
                        code="UNKNOWN_REF",
                        details={"ref": edge.task},
                    )
                )
            blocker = resolve(edge.depends_on, "Blocker")
            if isinstance(blocker, Err):
                return blocker
            blockers[by_ref[edge.task]].append(blocker.value)

        built: list[Task] = []
        for position, (record, task_id) in enumerate(zip(records, ids)):
            task = self._build_task(
                record,
                task_id,
                dict.fromkeys(blockers[task_id]),
                changes.now,
                parent_id=parents.get(task_id),
            )
            if isinstance(task, Err):
                return Err(ValidationError(task.error.message, details={"record": position, **task.error.details}))
            built.append(task.value)

        # Nodes first, edges checked as one batch against the combined graph.
        for task in built:
            index.put(task.model_copy(update={"parent_id": None, "depends_on": set()}))
        batch_edges = []
        for task in built:
            if task.parent_id:
                batch_edges.append(hierarchy_edge(task.id, task.parent_id))
            batch_edges.extend(dependency_edge(task.id, b) for b in dict.fromkeys(blockers[task.id]))
        offending = would_create_cycle(index, batch_edges)
        if offending is not None:
            source, target = offending
            return Err(cycle_error(offending, hierarchy=parents.get(source) == target))

        for task in built:
            index.put(task)

        created: list[Task] = []
        for task in built:
            checked = self._initial_status(task, index.blockers(task.id))
            if isinstance(checked, Err):
                return checked
            staged = changes.create(checked.value)
            index.put(staged)
            changes.record(TaskCreated(task_id=staged.id, title=staged.title, parent_id=staged.parent_id))
            created.append(staged)

        logger.info(f"Imported {len(created)} tasks with {len(batch_edges)} edges")
        return Ok(created)
