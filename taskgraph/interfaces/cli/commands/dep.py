"""Dependency CLI commands.

Dependencies read "TASK depends on BLOCKER": TASK cannot be completed until
BLOCKER is completed or canceled.
"""

from typing import Optional

import typer

from taskgraph.interfaces.cli.common import (
    data_file_option,
    format_task_line,
    get_service,
    print_success,
    unwrap,
)

app = typer.Typer(help="Dependency commands")


@app.command("add")
def add(
    task_id: str = typer.Argument(..., help="Dependent task ID"),
    blocker_id: str = typer.Argument(..., help="Blocker task ID"),
    data_file: data_file_option = None,
) -> None:
    """Make TASK depend on BLOCKER."""
    service = get_service(data_file)
    task = unwrap(service.add_dependency(task_id, blocker_id))
    print_success(f"{task.title} now depends on {blocker_id} [{task.status.value}]")


@app.command("remove")
def remove(
    task_id: str = typer.Argument(..., help="Dependent task ID"),
    blocker_id: str = typer.Argument(..., help="Blocker task ID"),
    data_file: data_file_option = None,
) -> None:
    """Drop the dependency of TASK on BLOCKER."""
    service = get_service(data_file)
    task = unwrap(service.remove_dependency(task_id, blocker_id))
    print_success(f"{task.title} no longer depends on {blocker_id} [{task.status.value}]")


@app.command("set")
def set_dependencies(
    task_id: str = typer.Argument(..., help="Dependent task ID"),
    blocker_ids: Optional[list[str]] = typer.Argument(None, help="Complete blocker list"),
    data_file: data_file_option = None,
) -> None:
    """Replace all blockers of TASK (no blockers clears them)."""
    service = get_service(data_file)
    task = unwrap(service.set_dependencies(task_id, blocker_ids or []))
    print_success(f"{task.title} depends on {len(task.depends_on)} task(s)")


@app.command("list")
def list_dependencies(
    task_id: str = typer.Argument(..., help="Task ID"),
    data_file: data_file_option = None,
) -> None:
    """Show what TASK waits for and what waits for TASK."""
    service = get_service(data_file)
    task = unwrap(service.get_task(task_id))
    repository = service.repository

    typer.echo(format_task_line(task))
    blockers = repository.blockers(task_id)
    dependents = repository.dependents(task_id)
    typer.echo("Depends on:" if blockers else "Depends on: nothing")
    for blocker in blockers:
        typer.echo(format_task_line(blocker, indent=1))
    typer.echo("Blocks:" if dependents else "Blocks: nothing")
    for dependent in dependents:
        typer.echo(format_task_line(dependent, indent=1))
