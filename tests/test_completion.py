# tests/test_completion.py

from __future__ import annotations

from taskgraph.domain.shared import BusinessRuleViolation, Err, Ok, ValidationError
from taskgraph.domain.task import CompletionMode, TaskStatus


def test_blocker_must_be_resolved_before_completion(service, make_task, reload) -> None:
    b = make_task("Task B")
    a = make_task("Task A", depends_on=[b.id])
    assert a.status == TaskStatus.BLOCKED

    rejected = service.complete_task(a.id)
    assert isinstance(rejected, Err)
    assert isinstance(rejected.error, BusinessRuleViolation)
    assert rejected.error.code == "INCOMPLETE_DEPENDENCIES"

    assert isinstance(service.update_task(b.id, {"status": "Completed"}), Ok)
    assert reload(a.id).status == TaskStatus.TODO

    completed = service.complete_task(a.id)
    assert isinstance(completed, Ok)
    assert completed.value.task.status == TaskStatus.COMPLETED
    assert reload(a.id).status == TaskStatus.COMPLETED


def test_completing_blocker_reports_unblocked_dependents(service, make_task) -> None:
    b = make_task("Blocker")
    a = make_task("Dependent", depends_on=[b.id])

    outcome = service.complete_task(b.id)

    assert isinstance(outcome, Ok)
    assert [t.id for t in outcome.value.unblocked] == [a.id]


def test_force_parent_mode_does_not_bypass_blockers(service, make_task, reload) -> None:
    blocker = make_task("Blocker", status="InProgress")
    parent = make_task("Parent", depends_on=[blocker.id])
    child = service.add_subtask(parent.id, {"title": "Child"}).value
    assert isinstance(service.complete_task(child.id), Ok)

    result = service.complete_task(parent.id, CompletionMode.FORCE_PARENT_AUTO_COMPLETE)

    assert isinstance(result, Err)
    assert result.error.code == "INCOMPLETE_DEPENDENCIES"
    assert reload(parent.id).status != TaskStatus.COMPLETED


def test_normal_mode_rejects_parent_with_open_children(service, make_task) -> None:
    parent = make_task("Parent")
    child = service.add_subtask(parent.id, {"title": "Child"}).value

    result = service.complete_task(parent.id)

    assert isinstance(result, Err)
    assert result.error.code == "PARENT_CHILDREN_INCOMPLETE"
    assert [c["id"] for c in result.error.details["incompleteChildren"]] == [child.id]

    forced = service.complete_task(parent.id, "forceParentAutoComplete")
    assert isinstance(forced, Ok)


def test_last_child_auto_completes_parent(service, make_task, reload) -> None:
    parent = make_task("Parent")
    first = service.add_subtask(parent.id, {"title": "First", "allow_parent_auto_complete": True}).value
    second = service.add_subtask(parent.id, {"title": "Second", "allow_parent_auto_complete": True}).value

    outcome = service.complete_task(first.id).value
    assert outcome.auto_completed == []
    assert reload(parent.id).status == TaskStatus.TODO

    outcome = service.complete_task(second.id).value
    assert [t.id for t in outcome.auto_completed] == [parent.id]
    assert reload(parent.id).status == TaskStatus.COMPLETED
    assert "TaskAutoCompleted" in [e.name for e in outcome.events]


def test_cascade_climbs_multiple_levels(service, make_task, reload) -> None:
    root = make_task("Root")
    mid = service.add_subtask(root.id, {"title": "Middle", "allow_parent_auto_complete": True}).value
    leaf = service.add_subtask(mid.id, {"title": "Leaf", "allow_parent_auto_complete": True}).value

    outcome = service.complete_task(leaf.id).value

    assert [t.id for t in outcome.auto_completed] == [mid.id, root.id]
    assert reload(root.id).status == TaskStatus.COMPLETED


def test_cascade_respects_opt_in_flag(service, make_task, reload) -> None:
    parent = make_task("Parent")
    child = service.add_subtask(parent.id, {"title": "Child"}).value

    outcome = service.complete_task(child.id).value

    assert outcome.auto_completed == []
    assert reload(parent.id).status == TaskStatus.TODO


def test_failed_cascade_aborts_whole_completion(service, make_task, reload) -> None:
    blocker = make_task("Blocker")
    parent = make_task("Parent", depends_on=[blocker.id])
    child = service.add_subtask(parent.id, {"title": "Child", "allow_parent_auto_complete": True}).value

    result = service.complete_task(child.id)

    assert isinstance(result, Err)
    assert result.error.code == "INCOMPLETE_DEPENDENCIES"
    assert reload(child.id).status == TaskStatus.TODO
    assert reload(parent.id).status == TaskStatus.BLOCKED


def test_explicit_force_marks_task(service, make_task, reload) -> None:
    blocker = make_task("Blocker")
    task = make_task("Urgent", depends_on=[blocker.id])

    outcome = service.complete_task(task.id, force=True).value

    assert outcome.task.force_completed is True
    assert reload(task.id).status == TaskStatus.COMPLETED
    assert outcome.events[0].forced is True


def test_completing_twice_is_rejected(service, make_task) -> None:
    task = make_task("Once only")
    service.complete_task(task.id)

    result = service.complete_task(task.id)

    assert isinstance(result, Err)
    assert result.error.code == "ALREADY_COMPLETED"


def test_unknown_mode_is_validation_error(service, make_task) -> None:
    task = make_task("Some task")

    result = service.complete_task(task.id, "sideways")

    assert isinstance(result, Err)
    assert isinstance(result.error, ValidationError)


def test_missing_task_is_not_found(service) -> None:
    result = service.complete_task("nope")

    assert isinstance(result, Err)
    assert result.error.kind == "NotFound"


def test_reopen_blocks_open_dependents_and_leaves_parent(service, make_task, reload) -> None:
    parent = make_task("Parent")
    blocker = service.add_subtask(parent.id, {"title": "Blocker", "allow_parent_auto_complete": True}).value
    dependent = make_task("Dependent", depends_on=[blocker.id])
    service.complete_task(blocker.id)
    assert reload(parent.id).status == TaskStatus.COMPLETED
    assert reload(dependent.id).status == TaskStatus.TODO

    outcome = service.reopen_task(blocker.id)

    assert isinstance(outcome, Ok)
    assert outcome.value.task.status == TaskStatus.TODO
    assert reload(dependent.id).status == TaskStatus.BLOCKED
    assert reload(parent.id).status == TaskStatus.COMPLETED


def test_reopen_flags_completed_dependents(service, make_task, reload) -> None:
    blocker = make_task("Blocker")
    dependent = make_task("Dependent", depends_on=[blocker.id])
    service.complete_task(blocker.id)
    service.complete_task(dependent.id)

    service.reopen_task(blocker.id, "InProgress")

    assert reload(blocker.id).status == TaskStatus.IN_PROGRESS
    assert reload(dependent.id).status == TaskStatus.COMPLETED
    assert reload(dependent.id).force_completed is True


def test_reopen_requires_completed_task(service, make_task) -> None:
    task = make_task("Open task")

    result = service.reopen_task(task.id)

    assert isinstance(result, Err)
    assert result.error.code == "NOT_COMPLETED"


def test_canceled_blocker_counts_as_resolved(service, make_task, reload) -> None:
    blocker = make_task("Blocker")
    task = make_task("Dependent", depends_on=[blocker.id])

    outcome = service.cancel_task(blocker.id).value

    assert outcome.task.status == TaskStatus.CANCELED
    assert reload(task.id).status == TaskStatus.TODO
    assert isinstance(service.complete_task(task.id), Ok)


def test_cancel_rules(service, make_task) -> None:
    done = make_task("Done")
    service.complete_task(done.id)
    dropped = make_task("Dropped")
    service.cancel_task(dropped.id)

    completed = service.cancel_task(done.id)
    assert isinstance(completed, Err)
    assert completed.error.code == "INVALID_TRANSITION"

    again = service.cancel_task(dropped.id)
    assert isinstance(again, Err)
    assert again.error.code == "ALREADY_CANCELED"


def test_canceling_last_child_completes_opted_in_parent(service, make_task, reload) -> None:
    parent = make_task("Parent")
    child = service.add_subtask(parent.id, {"title": "Child", "allow_parent_auto_complete": True}).value

    outcome = service.cancel_task(child.id).value

    assert [t.id for t in outcome.auto_completed] == [parent.id]
    assert reload(parent.id).status == TaskStatus.COMPLETED


def test_subscribers_receive_committed_events(service, make_task) -> None:
    received = []
    service.subscribe(received.append)
    task = make_task("Watched")

    service.complete_task(task.id)
    service.complete_task(task.id)  # rejected, publishes nothing

    assert [e.name for e in received] == ["TaskCreated", "TaskCompleted"]
