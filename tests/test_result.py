# tests/test_result.py

from __future__ import annotations

from taskgraph.domain.shared import (
    Err,
    NotFound,
    Ok,
    collect,
    flat_map,
    is_err,
    is_ok,
    map_result,
    unwrap_or,
)


def test_variants() -> None:
    assert is_ok(Ok(1)) and not is_err(Ok(1))
    assert is_err(Err("boom")) and not is_ok(Err("boom"))


def test_map_and_flat_map() -> None:
    assert map_result(Ok(2), lambda v: v * 3) == Ok(6)
    assert map_result(Err("boom"), lambda v: v * 3) == Err("boom")
    assert flat_map(Ok(2), lambda v: Err(f"rejected {v}")) == Err("rejected 2")
    assert flat_map(Err("first"), lambda v: Ok(v)) == Err("first")


def test_unwrap_or() -> None:
    assert unwrap_or(Ok("value"), "default") == "value"
    assert unwrap_or(Err(NotFound.task("x")), "default") == "default"


def test_collect_stops_at_first_error() -> None:
    seen = []

    def results():
        for item in (Ok(1), Err("bad"), Ok(3)):
            seen.append(item)
            yield item

    assert collect([Ok(1), Ok(2)]) == Ok([1, 2])
    assert collect(results()) == Err("bad")
    assert len(seen) == 2


def test_error_serialization() -> None:
    error = NotFound.task("abc", role="Blocker")

    assert error.status_code == 404
    assert error.to_dict() == {
        "kind": "NotFound",
        "code": "NOT_FOUND",
        "message": "Blocker not found: abc",
        "details": {"task_id": "abc", "role": "Blocker"},
    }
    assert str(error) == "NotFound(NOT_FOUND): Blocker not found: abc"
