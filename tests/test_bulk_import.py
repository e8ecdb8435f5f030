# tests/test_bulk_import.py

from __future__ import annotations

from taskgraph.domain.shared import DependencyCycle, Err, NotFound, Ok, ValidationError
from taskgraph.domain.task import TaskStatus


def test_refs_wire_parents_and_dependencies(service, repository) -> None:
    result = service.bulk_import(
        [
            {"ref": "epic", "title": "Launch"},
            {"ref": "design", "title": "Design", "parent_id": "epic"},
            {"ref": "build", "title": "Build", "parent_id": "epic", "depends_on": ["design"]},
            {"ref": "ship", "title": "Ship"},
        ],
        edges=[("ship", "build"), {"task": "ship", "depends_on": "design"}],
    )

    assert isinstance(result, Ok)
    epic, design, build, ship = result.value
    assert [t.title for t in result.value] == ["Launch", "Design", "Build", "Ship"]
    assert design.parent_id == epic.id
    assert build.depends_on == {design.id}
    assert ship.depends_on == {build.id, design.id}
    assert build.status == TaskStatus.BLOCKED
    assert design.status == TaskStatus.TODO
    assert all(t.version == 1 for t in result.value)
    assert len(repository.list_all()) == 4


def test_batch_cycle_rejects_everything(service, repository) -> None:
    result = service.bulk_import(
        [
            {"ref": "a", "title": "Task A", "depends_on": ["b"]},
            {"ref": "b", "title": "Task B", "depends_on": ["c"]},
            {"ref": "c", "title": "Task C"},
        ],
        edges=[("c", "a")],
    )

    assert isinstance(result, Err)
    assert isinstance(result.error, DependencyCycle)
    assert repository.list_all() == []


def test_hierarchy_cycle_in_batch(service, repository) -> None:
    result = service.bulk_import(
        [
            {"ref": "x", "title": "Task X", "parent_id": "y"},
            {"ref": "y", "title": "Task Y", "parent_id": "x"},
        ]
    )

    assert isinstance(result.error, DependencyCycle)
    assert repository.list_all() == []


def test_existing_ids_can_be_referenced(service, make_task) -> None:
    existing = make_task("Already here")
    service.complete_task(existing.id)

    result = service.bulk_import(
        [{"ref": "new", "title": "Follow up", "parent_id": existing.id, "depends_on": [existing.id]}]
    )

    (task,) = result.value
    assert task.parent_id == existing.id
    assert task.depends_on == {existing.id}
    assert task.status == TaskStatus.TODO


def test_unknown_reference_is_not_found(service, repository) -> None:
    result = service.bulk_import([{"ref": "a", "title": "Task A", "depends_on": ["missing"]}])

    assert isinstance(result.error, NotFound)
    assert result.error.details == {"ref": "missing", "role": "Blocker"}
    assert repository.list_all() == []


def test_duplicate_refs_are_rejected(service) -> None:
    result = service.bulk_import([{"ref": "a", "title": "First"}, {"ref": "a", "title": "Second"}])

    assert isinstance(result.error, ValidationError)
    assert result.error.code == "DUPLICATE_REF"
    assert result.error.details["refs"] == ["a"]


def test_invalid_record_names_its_position(service, repository) -> None:
    result = service.bulk_import([{"title": "Fine"}, {"title": "no"}])

    assert isinstance(result.error, ValidationError)
    assert [f["field"] for f in result.error.details["fields"]] == ["records.1.title"]
    assert repository.list_all() == []


def test_edge_must_start_at_batch_record(service, make_task) -> None:
    existing = make_task("Existing")

    result = service.bulk_import([{"ref": "a", "title": "Task A"}], edges=[(existing.id, "a")])

    assert isinstance(result.error, ValidationError)
    assert result.error.code == "UNKNOWN_REF"


def test_empty_import_writes_nothing(service, repository) -> None:
    assert service.bulk_import([]) == Ok([])
    assert repository.list_all() == []
