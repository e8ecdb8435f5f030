# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from taskgraph.config import EngineConfig, get_config_dir, load_config, save_config
from taskgraph.domain.task import Priority
from taskgraph.logging_setup import setup_logging


def test_defaults_when_no_file(isolated_home: Path) -> None:
    config = load_config()

    assert config == EngineConfig()
    assert get_config_dir() == isolated_home
    assert config.resolved_data_file() == isolated_home / "tasks.json"


def test_save_and_load(isolated_home: Path) -> None:
    written = save_config(EngineConfig(default_priority=Priority.HIGH, conflict_retries=3))

    assert written == isolated_home / "config.json"
    loaded = load_config()
    assert loaded.default_priority == Priority.HIGH
    assert loaded.conflict_retries == 3


def test_invalid_file_falls_back_to_defaults(isolated_home: Path) -> None:
    isolated_home.mkdir(parents=True, exist_ok=True)
    (isolated_home / "config.json").write_text('{"conflict_retries": -1}', encoding="utf-8")

    assert load_config() == EngineConfig()


def test_explicit_paths(tmp_path: Path) -> None:
    config = EngineConfig(data_file=str(tmp_path / "store.json"), log_dir=str(tmp_path / "logs"))

    assert config.resolved_data_file() == tmp_path / "store.json"
    assert config.resolved_log_dir() == tmp_path / "logs"


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)


def test_setup_logging_writes_file(tmp_path: Path, restore_root_logger) -> None:
    setup_logging(log_dir=tmp_path / "logs")

    logging.getLogger("taskgraph.test").debug("hello from the engine")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "hello from the engine" in (tmp_path / "logs" / "taskgraph.log").read_text(encoding="utf-8")
