"""Engine configuration.

Stored in ~/.taskgraph/config.json (directory overridable with the
TASKGRAPH_HOME environment variable). Missing or unreadable files fall back
to defaults.
"""

import json
import logging
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from taskgraph.domain.task.models import Priority

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"


class EngineConfig(BaseModel):
    """Defaults and policy switches for the engine."""

    default_priority: Priority = Priority.MEDIUM
    default_estimated_duration_minutes: int = Field(default=30, ge=0)
    default_allow_parent_auto_complete: bool = False
    # Retries after an optimistic-lock conflict before surfacing Conflict.
    conflict_retries: int = Field(default=1, ge=0)
    # Spacing unit for Custom recurrence when no resolver is supplied.
    custom_recurrence_unit: Literal["hours", "days", "weeks"] = "days"
    data_file: str | None = None
    log_dir: str | None = None

    def resolved_data_file(self) -> Path:
        if self.data_file:
            return Path(self.data_file).expanduser()
        return get_config_dir() / "tasks.json"

    def resolved_log_dir(self) -> Path:
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return get_config_dir() / "logs"


def get_config_dir() -> Path:
    """Get the taskgraph config directory, creating it if needed."""
    override = os.environ.get("TASKGRAPH_HOME")
    config_dir = Path(override).expanduser() if override else Path.home() / ".taskgraph"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def load_config(path: Path | None = None) -> EngineConfig:
    """Load engine configuration, falling back to defaults."""
    config_file = path or get_config_dir() / CONFIG_FILE_NAME
    if config_file.exists():
        try:
            data = json.loads(config_file.read_text(encoding="utf-8"))
            return EngineConfig(**data)
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Ignoring invalid config {config_file}: {e}")
    return EngineConfig()


def save_config(config: EngineConfig, path: Path | None = None) -> Path:
    """Write engine configuration and return the file written."""
    config_file = path or get_config_dir() / CONFIG_FILE_NAME
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(
        json.dumps(config.model_dump(mode="json"), indent=2),
        encoding="utf-8",
    )
    return config_file
