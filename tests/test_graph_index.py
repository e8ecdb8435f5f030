# tests/test_graph_index.py

from __future__ import annotations

from taskgraph.domain.graph import GraphIndex
from taskgraph.domain.task import Task
from taskgraph.infrastructure import InMemoryTaskRepository


def _task(task_id: str, depends_on: set[str] | None = None, parent_id: str | None = None) -> Task:
    return Task(id=task_id, title=f"Task {task_id}", depends_on=depends_on or set(), parent_id=parent_id)


def _ids(tasks: list[Task]) -> list[str]:
    return [t.id for t in tasks]


def test_adjacency_queries() -> None:
    index = GraphIndex.from_tasks(
        [
            _task("p"),
            _task("c1", parent_id="p"),
            _task("c2", {"c1"}, parent_id="p"),
            _task("other", {"c1"}),
        ]
    )

    assert _ids(index.children("p")) == ["c1", "c2"]
    assert _ids(index.blockers("c2")) == ["c1"]
    assert _ids(index.dependents("c1")) == ["c2", "other"]
    assert index.parent("c1").id == "p"
    assert index.successors("c2") == ["p", "c1"]
    assert len(index) == 4
    assert "c1" in index and "missing" not in index


def test_put_rewires_edges() -> None:
    index = GraphIndex.from_tasks([_task("p1"), _task("p2"), _task("c", {"p1"}, parent_id="p1")])

    index.put(_task("c", {"p2"}, parent_id="p2"))

    assert index.children("p1") == []
    assert _ids(index.children("p2")) == ["c"]
    assert index.dependents("p1") == []
    assert _ids(index.dependents("p2")) == ["c"]


def test_remove_frees_slot_and_edges() -> None:
    index = GraphIndex.from_tasks([_task("a"), _task("b", {"a"}), _task("c")])
    old_slot = index.slot("b")

    index.remove("b")
    index.put(_task("d"))

    assert index.get("b") is None
    assert index.dependents("a") == []
    assert index.slot("d") == old_slot


def test_edges_to_unloaded_tasks_are_ignored() -> None:
    index = GraphIndex.from_tasks([_task("a", {"ghost"}, parent_id="ghost")])

    assert index.blockers("a") == []
    assert index.successors("a") == []
    assert index.parent("a") is None


def test_depth_height_and_ancestors() -> None:
    index = GraphIndex.from_tasks(
        [_task("root"), _task("mid", parent_id="root"), _task("leaf", parent_id="mid")]
    )

    assert _ids(index.ancestors("leaf")) == ["mid", "root"]
    assert index.depth("leaf") == 2
    assert index.height() == 3
    assert GraphIndex().height() == 0


def test_ancestors_stop_on_corrupted_parent_loop() -> None:
    index = GraphIndex.from_tasks([_task("a", parent_id="b"), _task("b", parent_id="a")])

    assert _ids(index.ancestors("a")) == ["b"]


def test_load_with_seeds_takes_connected_slice() -> None:
    repository = InMemoryTaskRepository(
        [
            _task("p"),
            _task("c", parent_id="p"),
            _task("blocker"),
            _task("dependent", {"c"}),
            _task("c2", {"blocker"}, parent_id="p"),
            _task("island"),
        ]
    )

    index = GraphIndex.load(repository, ["c"])

    assert {t.id for t in index} == {"p", "c", "c2", "blocker", "dependent"}
    assert "island" not in index


def test_load_without_seeds_takes_everything() -> None:
    repository = InMemoryTaskRepository([_task("a"), _task("b")])

    assert len(GraphIndex.load(repository)) == 2


def test_load_skips_unknown_seeds() -> None:
    repository = InMemoryTaskRepository([_task("a")])

    index = GraphIndex.load(repository, ["missing", "a"])

    assert [t.id for t in index] == ["a"]
