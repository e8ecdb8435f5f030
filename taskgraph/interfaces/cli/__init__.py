"""CLI interface for taskgraph using Typer.

Usage:
    taskgraph task add "Write report"     # Add a task
    taskgraph task done <id>              # Complete it (cascades to parents)
    taskgraph dep add <task> <blocker>    # Add a dependency
    taskgraph schedule --commit           # Plan open tasks into working hours

The CLI is structured as:
- app: Main Typer application
- commands/: Individual command groups (task, dep)
- common.py: Shared utilities for CLI commands
- main.py: Entry point that sets up logging and runs the app
"""

from typing import Optional

import typer

from taskgraph import __version__
from taskgraph.interfaces.cli.commands import dep, task
from taskgraph.interfaces.cli.common import (
    data_file_option,
    get_schedule_service,
    parse_datetime,
    print_header,
    print_success,
    print_warning,
    unwrap,
)

app = typer.Typer(
    name="taskgraph",
    help="Task hierarchy, dependency graph and completion engine",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"taskgraph version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """taskgraph - tasks with subtasks, dependencies and recurrence.

    Completing a task checks its blockers and subtasks, completes opted-in
    parents and spawns the next instance of recurring tasks.
    """
    pass


# =============================================================================
# Register Command Groups
# =============================================================================

app.add_typer(task.app, name="task")
app.add_typer(dep.app, name="dep")


# =============================================================================
# Top-Level Commands
# =============================================================================


@app.command("done")
def done(
    task_id: str = typer.Argument(..., help="Task ID"),
    data_file: data_file_option = None,
) -> None:
    """Mark a task completed (shortcut for 'task done')."""
    task.done(task_id, force_parent=False, force=False, data_file=data_file)


@app.command("schedule")
def schedule(
    start: Optional[str] = typer.Option(None, "--start", help="Plan from this time (ISO 8601)"),
    day_start: str = typer.Option("09:00", "--day-start", help="Working day start (HH:MM)"),
    day_end: str = typer.Option("17:30", "--day-end", help="Working day end (HH:MM)"),
    timezone: str = typer.Option("UTC", "--timezone", help="IANA time zone of working hours"),
    capacity: int = typer.Option(480, "--capacity", help="Minutes of work per day"),
    commit: bool = typer.Option(False, "--commit", help="Save the planned windows"),
    data_file: data_file_option = None,
) -> None:
    """Plan open tasks dependency-first into working hours."""
    options = {
        "working_hours": {"start": day_start, "end": day_end, "timezone": timezone},
        "start_date": parse_datetime(start, "--start"),
        "daily_capacity": capacity,
        "commit": commit,
    }
    service = get_schedule_service(data_file)
    plan = unwrap(service.plan_schedule(options))
    if not plan.tasks:
        typer.echo("Nothing to schedule.")
        return

    titles = {t.id: t.title for t in service.repository.list_all()}
    print_header("SCHEDULE")
    for slot in plan.tasks:
        typer.echo(
            f"{slot.scheduled_start:%Y-%m-%d %H:%M} - {slot.scheduled_end:%H:%M}  "
            f"{titles.get(slot.task_id, slot.task_id)}"
        )
        for note in slot.constraints.notes:
            print_warning(f"  {note}")
    summary = plan.summary
    typer.echo(f"\n{summary.total_planned_minutes} minutes planned, {summary.violations} late")
    if commit:
        print_success("Schedule saved.")


__all__ = ["app"]
