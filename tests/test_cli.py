# tests/test_cli.py

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest
from typer.testing import CliRunner

from taskgraph import __version__
from taskgraph.infrastructure import JsonTaskRepository
from taskgraph.interfaces.cli import app

runner = CliRunner()


@pytest.fixture()
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "tasks.json"


def _run(data_file: Path, *args: str):
    return runner.invoke(app, [*args, "--data-file", str(data_file)])


def _add(data_file: Path, title: str, *options: str) -> str:
    result = _run(data_file, "task", "add", title, *options)
    assert result.exit_code == 0, result.output
    match = re.search(r"#([0-9a-f]+)", result.output)
    assert match, result.output
    return match.group(1)


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"taskgraph version {__version__}" in result.output


def test_add_list_and_done(data_file: Path) -> None:
    task_id = _add(data_file, "Write report", "--priority", "High")

    listed = _run(data_file, "task", "list")
    assert listed.exit_code == 0
    assert "[ ] Write report (High)" in listed.output

    done = _run(data_file, "task", "done", task_id)
    assert done.exit_code == 0
    assert "Completed: Write report" in done.output

    stored = JsonTaskRepository(data_file).get(task_id).value
    assert stored.status.value == "Completed"


def test_top_level_done_shortcut(data_file: Path) -> None:
    task_id = _add(data_file, "Quick task")

    result = _run(data_file, "done", task_id)

    assert result.exit_code == 0
    assert "Completed: Quick task" in result.output


def test_errors_exit_with_status_one(data_file: Path) -> None:
    task_id = _add(data_file, "Loner")

    result = _run(data_file, "dep", "add", task_id, task_id)

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_blocked_completion_lists_blockers(data_file: Path) -> None:
    blocker = _add(data_file, "Blocker")
    task_id = _add(data_file, "Dependent", "--depends-on", blocker)

    result = _run(data_file, "task", "done", task_id)

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert f"Blocker ({blocker}, Todo)" in result.output


def test_dependency_commands(data_file: Path) -> None:
    blocker = _add(data_file, "Blocker")
    task_id = _add(data_file, "Dependent")

    added = _run(data_file, "dep", "add", task_id, blocker)
    assert added.exit_code == 0
    assert "[Blocked]" in added.output

    listed = _run(data_file, "dep", "list", task_id)
    assert "Depends on:" in listed.output
    assert "Blocker" in listed.output

    removed = _run(data_file, "dep", "remove", task_id, blocker)
    assert removed.exit_code == 0
    assert "[Todo]" in removed.output


def test_subtask_tree(data_file: Path) -> None:
    parent = _add(data_file, "Parent")
    _add(data_file, "Child", "--parent", parent, "--auto-complete-parent")

    result = _run(data_file, "task", "tree")

    assert result.exit_code == 0
    assert "[ ] Parent" in result.output
    assert "  [ ] Child" in result.output
    assert "Progress: 0/2" in result.output


def test_import_file(data_file: Path, tmp_path: Path) -> None:
    source = tmp_path / "import.json"
    source.write_text(
        json.dumps(
            {
                "records": [{"ref": "a", "title": "Task A"}, {"ref": "b", "title": "Task B"}],
                "edges": [{"task": "b", "depends_on": "a"}],
            }
        ),
        encoding="utf-8",
    )

    result = _run(data_file, "task", "import", str(source))

    assert result.exit_code == 0
    assert "Imported 2 task(s)" in result.output
    assert len(JsonTaskRepository(data_file).list_all()) == 2


def test_schedule(data_file: Path) -> None:
    _add(data_file, "Plan me", "--estimate", "45")

    result = _run(data_file, "schedule", "--start", "2024-01-08T09:00:00+00:00", "--commit")

    assert result.exit_code == 0
    assert "2024-01-08 09:00 - 09:45  Plan me" in result.output
    assert "Schedule saved." in result.output


def test_data_file_from_environment(data_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKGRAPH_DATA", str(data_file))

    result = runner.invoke(app, ["task", "add", "From env"])

    assert result.exit_code == 0
    assert data_file.exists()
