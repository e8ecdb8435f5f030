"""Shared utilities for taskgraph CLI commands.

- Data file resolution and service construction
- Result unwrapping with a red ``Error:`` line and exit code 1
- Formatted output helpers (error, success, info)
- Task formatting for display
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional, TypeVar

import typer

from taskgraph.application import ScheduleService, TaskService
from taskgraph.config import EngineConfig, load_config
from taskgraph.domain.shared import Err, Result, TaskError
from taskgraph.domain.task import Task, TaskStatus
from taskgraph.infrastructure.storage import JsonTaskRepository, StorageLoadError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Reusable data file option for CLI commands
# Usage: def my_command(data_file: data_file_option = None) -> None:
data_file_option = Annotated[
    Optional[str],
    typer.Option(
        "--data-file",
        "-d",
        help="Task store JSON file (or set TASKGRAPH_DATA env var)",
        envvar="TASKGRAPH_DATA",
    ),
]

STATUS_MARKS = {
    TaskStatus.TODO: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.BLOCKED: "[!]",
    TaskStatus.COMPLETED: "[x]",
    TaskStatus.CANCELED: "[-]",
}


def open_repository(data_file: str | None, config: EngineConfig) -> JsonTaskRepository:
    """Open the JSON task store, exiting with an error if it is unreadable."""
    path = Path(data_file).expanduser() if data_file else config.resolved_data_file()
    try:
        return JsonTaskRepository(path)
    except StorageLoadError as e:
        print_error(e.error.message)
        raise typer.Exit(1) from e


def get_service(data_file: str | None = None) -> TaskService:
    """Build a TaskService over the configured task store."""
    config = load_config()
    return TaskService(open_repository(data_file, config), config=config)


def get_schedule_service(data_file: str | None = None) -> ScheduleService:
    config = load_config()
    return ScheduleService(open_repository(data_file, config), config=config)


def unwrap(result: Result[T, TaskError]) -> T:
    """Return the Ok value or print the error and exit with status 1."""
    if isinstance(result, Err):
        error = result.error
        print_error(error.message)
        for item in error.details.get("fields", []):
            typer.echo(f"  - {item['field']}: {item['message']}", err=True)
        for key in ("blockers", "incompleteChildren"):
            for item in error.details.get(key, []):
                if isinstance(item, dict):
                    typer.echo(f"  - {item['title']} ({item['id']}, {item['status']})", err=True)
                else:
                    typer.echo(f"  - {item}", err=True)
        raise typer.Exit(1)
    return result.value


def parse_datetime(value: str | None, option: str) -> datetime | None:
    """Parse an ISO 8601 option value, exiting on bad input."""
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        print_error(f"{option} must be an ISO 8601 date or datetime, got {value!r}")
        raise typer.Exit(1)


def print_error(msg: str) -> None:
    """Print a formatted error message.

    Args:
        msg: Error message to display
    """
    typer.echo(typer.style(f"Error: {msg}", fg=typer.colors.RED), err=True)


def print_success(msg: str) -> None:
    typer.echo(typer.style(msg, fg=typer.colors.GREEN))


def print_info(msg: str) -> None:
    typer.echo(typer.style(msg, fg=typer.colors.BLUE))


def print_warning(msg: str) -> None:
    typer.echo(typer.style(f"Warning: {msg}", fg=typer.colors.YELLOW), err=True)


def print_separator(char: str = "=", width: int = 60) -> None:
    typer.echo(char * width)


def print_header(title: str, width: int = 60) -> None:
    """Print a formatted header with separators.

    Args:
        title: Header title text
        width: Width of the separator lines
    """
    print_separator("=", width)
    typer.echo(title)
    print_separator("=", width)


def format_task_line(task: Task, indent: int = 0) -> str:
    """One-line summary: status mark, title, priority, due date and id."""
    parts = [f"{'  ' * indent}{STATUS_MARKS[task.status]} {task.title}"]
    parts.append(f"({task.priority.value})")
    if task.due_at:
        parts.append(f"due {task.due_at:%Y-%m-%d %H:%M}")
    parts.append(f"#{task.id}")
    return " ".join(parts)


def print_task(task: Task) -> None:
    """Print the full details of a task."""
    print_header(f"TASK {task.id}")
    typer.echo(f"Title:       {task.title}")
    typer.echo(f"Status:      {task.status.value}" + (" (forced)" if task.force_completed else ""))
    typer.echo(f"Priority:    {task.priority.value}")
    if task.description:
        typer.echo(f"Description: {task.description}")
    if task.due_at:
        typer.echo(f"Due:         {task.due_at.isoformat()}")
    if task.estimated_duration_minutes is not None:
        typer.echo(f"Estimate:    {task.estimated_duration_minutes} min")
    if task.parent_id:
        auto = " (auto-completes parent)" if task.allow_parent_auto_complete else ""
        typer.echo(f"Parent:      {task.parent_id}{auto}")
    if task.depends_on:
        typer.echo(f"Depends on:  {', '.join(sorted(task.depends_on))}")
    if task.scheduled_start and task.scheduled_end:
        typer.echo(
            f"Scheduled:   {task.scheduled_start.isoformat()} -> {task.scheduled_end.isoformat()}"
        )
    if task.recurrence:
        pattern = task.recurrence
        typer.echo(
            f"Recurs:      every {pattern.interval} x {pattern.type.value} "
            f"from {pattern.start_date:%Y-%m-%d}"
            + (f" until {pattern.end_date:%Y-%m-%d}" if pattern.end_date else "")
        )
    if task.original_task_id:
        typer.echo(f"Spawned by:  {task.original_task_id}")
    print_separator()


__all__ = [
    "data_file_option",
    "open_repository",
    "get_service",
    "get_schedule_service",
    "unwrap",
    "parse_datetime",
    "print_error",
    "print_success",
    "print_info",
    "print_warning",
    "print_separator",
    "print_header",
    "format_task_line",
    "print_task",
]
