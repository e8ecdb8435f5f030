# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from taskgraph.application import ScheduleService, TaskService
from taskgraph.config import EngineConfig
from taskgraph.domain.shared import Ok
from taskgraph.domain.task import Task
from taskgraph.infrastructure import InMemoryTaskRepository


class FixedClock:
    """Deterministic clock; advance it explicitly."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep config and data files out of the real home directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("TASKGRAPH_HOME", str(home))
    monkeypatch.delenv("TASKGRAPH_DATA", raising=False)
    return home


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 3, 10, 0, tzinfo=UTC))


@pytest.fixture()
def repository() -> InMemoryTaskRepository:
    return InMemoryTaskRepository()


@pytest.fixture()
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture()
def service(repository: InMemoryTaskRepository, config: EngineConfig, clock: FixedClock) -> TaskService:
    return TaskService(repository, config=config, clock=clock)


@pytest.fixture()
def schedule_service(
    repository: InMemoryTaskRepository, config: EngineConfig, clock: FixedClock
) -> ScheduleService:
    return ScheduleService(repository, config=config, clock=clock)


@pytest.fixture()
def make_task(service: TaskService) -> Callable[..., Task]:
    """Create a task through the service and return it, failing loudly."""

    def _make(title: str, **fields: Any) -> Task:
        result = service.create_task({"title": title, **fields})
        assert isinstance(result, Ok), result
        return result.value

    return _make


@pytest.fixture()
def reload(service: TaskService) -> Callable[[str], Task]:
    """Fetch the committed state of a task."""

    def _reload(task_id: str) -> Task:
        result = service.get_task(task_id)
        assert isinstance(result, Ok), result
        return result.value

    return _reload
