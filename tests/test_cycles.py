# tests/test_cycles.py

from __future__ import annotations

import random

from taskgraph.domain.graph import (
    GraphIndex,
    dependency_edge,
    find_cycle,
    has_cycle,
    hierarchy_edge,
    would_create_cycle,
)
from taskgraph.domain.shared import DependencyCycle, Err, Ok
from taskgraph.domain.task import Task


def _task(task_id: str, depends_on: set[str] | None = None, parent_id: str | None = None) -> Task:
    return Task(id=task_id, title=f"Task {task_id}", depends_on=depends_on or set(), parent_id=parent_id)


def test_self_edge_is_a_cycle() -> None:
    index = GraphIndex.from_tasks([_task("a")])
    assert would_create_cycle(index, [dependency_edge("a", "a")]) == ("a", "a")


def test_chain_closing_edge_is_rejected() -> None:
    # c blocks b blocks a
    index = GraphIndex.from_tasks([_task("a", {"b"}), _task("b", {"c"}), _task("c")])

    assert would_create_cycle(index, [dependency_edge("c", "a")]) == ("c", "a")
    assert would_create_cycle(index, [dependency_edge("a", "c")]) is None


def test_hierarchy_and_dependency_edges_combine() -> None:
    # child -> parent through the hierarchy; the parent depending on its
    # child closes a cycle neither family forms alone.
    index = GraphIndex.from_tasks([_task("parent"), _task("child", parent_id="parent")])

    assert has_cycle(index, [dependency_edge("parent", "child")])
    assert not has_cycle(index, [dependency_edge("child", "parent")])


def test_reparenting_under_descendant_is_rejected() -> None:
    index = GraphIndex.from_tasks(
        [_task("root"), _task("mid", parent_id="root"), _task("leaf", parent_id="mid")]
    )
    assert would_create_cycle(index, [hierarchy_edge("root", "leaf")]) == ("root", "leaf")


def test_batch_edges_are_checked_against_each_other() -> None:
    index = GraphIndex.from_tasks([_task("x"), _task("y")])

    offending = would_create_cycle(index, [dependency_edge("x", "y"), dependency_edge("y", "x")])

    assert offending == ("y", "x")


def test_find_cycle_reports_existing_cycle() -> None:
    index = GraphIndex.from_tasks([_task("a", {"b"}), _task("b", {"c"}), _task("c", {"a"}), _task("d")])

    cycle = find_cycle(index)

    assert cycle is not None
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {"a", "b", "c"}
    assert find_cycle(index, within={"a", "d"}) is None


def test_random_edge_operations_never_create_cycle(service, make_task, repository) -> None:
    rng = random.Random(20240101)
    ids = [make_task(f"Node {n}").id for n in range(8)]

    accepted = rejected = 0
    for _ in range(250):
        task_id, other = rng.choice(ids), rng.choice(ids)
        roll = rng.random()
        if roll < 0.5:
            result = service.add_dependency(task_id, other)
        elif roll < 0.7:
            result = service.remove_dependency(task_id, other)
        elif roll < 0.85:
            result = service.update_task(task_id, {"parent_id": other})
        else:
            result = service.set_dependencies(task_id, rng.sample(ids, k=rng.randint(0, 3)))

        if isinstance(result, Ok):
            accepted += 1
        else:
            assert isinstance(result, Err)
            rejected += 1
            if task_id == other and roll < 0.5:
                assert isinstance(result.error, DependencyCycle)
        assert find_cycle(GraphIndex.load(repository)) is None

    assert accepted > 0
    assert rejected > 0
