"""Task management CLI commands.

Commands for the task lifecycle: adding and editing tasks, completing,
reopening and canceling them, and viewing lists, trees and history.
"""

import json
from pathlib import Path
from typing import Any, Optional

import typer

from taskgraph.application import CompletionOutcome
from taskgraph.domain.task import (
    CompletionMode,
    Priority,
    RecurrenceType,
    Task,
    TaskStatus,
    utcnow,
)
from taskgraph.interfaces.cli.common import (
    data_file_option,
    format_task_line,
    get_service,
    parse_datetime,
    print_error,
    print_header,
    print_info,
    print_separator,
    print_success,
    print_task,
    unwrap,
)

app = typer.Typer(help="Task management commands")


# =============================================================================
# Output Formatting Helpers
# =============================================================================


def print_outcome(outcome: CompletionOutcome, verb: str) -> None:
    """Report a completion/reopen/cancel and everything it cascaded to."""
    task = outcome.task
    suffix = " (forced past open blockers)" if task.force_completed and verb == "Completed" else ""
    print_success(f"{verb}: {task.title}{suffix}")
    for parent in outcome.auto_completed:
        print_info(f"  Auto-completed parent: {parent.title} #{parent.id}")
    for dependent in outcome.unblocked:
        print_info(f"  Unblocked: {dependent.title} #{dependent.id}")
    for instance in outcome.spawned:
        start = instance.recurrence.start_date if instance.recurrence else None
        when = f" starting {start:%Y-%m-%d}" if start else ""
        print_info(f"  Next occurrence: {instance.title} #{instance.id}{when}")


def print_tree_recursive(tasks: list[Task], by_parent: dict[str | None, list[Task]], indent: int = 0) -> None:
    """Recursively print the hierarchy below ``tasks``."""
    for task in tasks:
        typer.echo(format_task_line(task, indent))
        print_tree_recursive(by_parent.get(task.id, []), by_parent, indent + 1)


# =============================================================================
# Queries
# =============================================================================


@app.command("list")
def list_tasks(
    status: Optional[TaskStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    priority: Optional[Priority] = typer.Option(None, "--priority", help="Filter by priority"),
    parent: Optional[str] = typer.Option(None, "--parent", help="Only subtasks of this task"),
    top_level: bool = typer.Option(False, "--top-level", help="Only tasks without a parent"),
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Search title and description"),
    page: int = typer.Option(1, "--page", help="Page number"),
    limit: int = typer.Option(50, "--limit", help="Tasks per page (max 200)"),
    data_file: data_file_option = None,
) -> None:
    """List tasks, highest priority and earliest due first."""
    service = get_service(data_file)
    result = unwrap(
        service.list_tasks(
            {
                "status": status,
                "priority": priority,
                "parent_id": parent,
                "top_level_only": top_level,
                "q": query,
                "page": page,
                "limit": limit,
            }
        )
    )
    if not result.tasks:
        typer.echo("No tasks found.")
        return
    for task in result.tasks:
        typer.echo(format_task_line(task))
    if result.total_pages > 1:
        typer.echo(f"\nPage {result.page}/{result.total_pages} ({result.total} tasks)")


@app.command("tree")
def tree(data_file: data_file_option = None) -> None:
    """Show the task hierarchy."""
    service = get_service(data_file)
    tasks = service.repository.list_all()
    if not tasks:
        typer.echo("No tasks found.")
        return
    ids = {t.id for t in tasks}
    by_parent: dict[str | None, list[Task]] = {}
    for task in sorted(tasks, key=lambda t: t.created_at):
        key = task.parent_id if task.parent_id in ids else None
        by_parent.setdefault(key, []).append(task)
    print_tree_recursive(by_parent.get(None, []), by_parent)

    done = sum(1 for t in tasks if t.is_resolved)
    print_separator("-")
    typer.echo(f"Progress: {done}/{len(tasks)} resolved ({done / len(tasks) * 100:.1f}%)")


@app.command("show")
def show(
    task_id: str = typer.Argument(..., help="Task ID"),
    data_file: data_file_option = None,
) -> None:
    """Show the details of a task."""
    service = get_service(data_file)
    task = unwrap(service.get_task(task_id))
    print_task(task)
    subtasks = unwrap(service.get_subtasks(task_id))
    if subtasks:
        typer.echo("Subtasks:")
        for child in subtasks:
            typer.echo(format_task_line(child, indent=1))


@app.command("history")
def history(
    task_id: str = typer.Argument(..., help="Task ID"),
    data_file: data_file_option = None,
) -> None:
    """Show the audit trail of a task."""
    service = get_service(data_file)
    entries = unwrap(service.task_history(task_id))
    if not entries:
        typer.echo("No changes recorded.")
        return
    print_header(f"HISTORY {task_id}")
    for entry in entries:
        typer.echo(
            f"{entry.changed_at:%Y-%m-%d %H:%M:%S}  {entry.field_name}: "
            f"{entry.old_value} -> {entry.new_value}"
        )


# =============================================================================
# Create / Update / Delete
# =============================================================================


@app.command("add")
def add(
    title: str = typer.Argument(..., help="Task title (3-200 characters)"),
    description: Optional[str] = typer.Option(None, "--description", help="Longer description"),
    priority: Optional[Priority] = typer.Option(None, "--priority", "-p", help="Priority"),
    status: TaskStatus = typer.Option(TaskStatus.TODO, "--status", help="Initial status"),
    due: Optional[str] = typer.Option(None, "--due", help="Due date (ISO 8601)"),
    estimate: Optional[int] = typer.Option(None, "--estimate", "-e", help="Estimated minutes"),
    parent: Optional[str] = typer.Option(None, "--parent", help="Parent task ID"),
    depends_on: Optional[list[str]] = typer.Option(
        None, "--depends-on", help="Blocker task ID (repeatable)"
    ),
    auto_complete_parent: Optional[bool] = typer.Option(
        None,
        "--auto-complete-parent/--no-auto-complete-parent",
        help="Complete the parent when its last open child completes",
    ),
    repeat: Optional[RecurrenceType] = typer.Option(None, "--repeat", help="Recurrence type"),
    every: int = typer.Option(1, "--every", help="Recurrence interval"),
    until: Optional[str] = typer.Option(None, "--until", help="Last date of the series (ISO 8601)"),
    data_file: data_file_option = None,
) -> None:
    """Add a task."""
    due_at = parse_datetime(due, "--due")
    data: dict[str, Any] = {
        "title": title,
        "description": description,
        "priority": priority,
        "status": status,
        "due_at": due_at,
        "estimated_duration_minutes": estimate,
        "parent_id": parent,
        "depends_on": depends_on or [],
        "allow_parent_auto_complete": auto_complete_parent,
    }
    if repeat is not None:
        data["recurrence"] = {
            "type": repeat,
            "interval": every,
            "start_date": due_at or utcnow(),
            "end_date": parse_datetime(until, "--until"),
        }

    service = get_service(data_file)
    task = unwrap(service.create_task(data))
    print_success(f"Added: {task.title} #{task.id}")
    if task.status == TaskStatus.BLOCKED:
        print_info("  Blocked until its dependencies are resolved")


@app.command("update")
def update(
    task_id: str = typer.Argument(..., help="Task ID"),
    title: Optional[str] = typer.Option(None, "--title", help="New title"),
    description: Optional[str] = typer.Option(None, "--description", help="New description"),
    status: Optional[TaskStatus] = typer.Option(None, "--status", help="New status"),
    priority: Optional[Priority] = typer.Option(None, "--priority", "-p", help="New priority"),
    due: Optional[str] = typer.Option(None, "--due", help="New due date (ISO 8601)"),
    estimate: Optional[int] = typer.Option(None, "--estimate", "-e", help="Estimated minutes"),
    parent: Optional[str] = typer.Option(None, "--parent", help="Move under this parent"),
    detach: bool = typer.Option(False, "--detach", help="Make the task top-level"),
    data_file: data_file_option = None,
) -> None:
    """Update fields of a task."""
    options = {
        "title": title,
        "description": description,
        "status": status,
        "priority": priority,
        "due_at": parse_datetime(due, "--due"),
        "estimated_duration_minutes": estimate,
        "parent_id": parent,
    }
    data = {name: value for name, value in options.items() if value is not None}
    if detach:
        data["parent_id"] = None
    if not data:
        print_error("Nothing to update.")
        raise typer.Exit(1)

    service = get_service(data_file)
    task = unwrap(service.update_task(task_id, data))
    print_success(f"Updated: {task.title} [{task.status.value}]")


@app.command("delete")
def delete(
    task_id: str = typer.Argument(..., help="Task ID"),
    data_file: data_file_option = None,
) -> None:
    """Delete a task without subtasks."""
    service = get_service(data_file)
    unwrap(service.delete_task(task_id))
    print_success(f"Deleted: {task_id}")


@app.command("import")
def import_tasks(
    path: Path = typer.Argument(..., help='JSON file with {"records": [...], "edges": [...]}'),
    data_file: data_file_option = None,
) -> None:
    """Import a batch of tasks with their edges."""
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print_error(f"Cannot read {path}: {e}")
        raise typer.Exit(1) from e
    if isinstance(document, list):
        document = {"records": document}

    service = get_service(data_file)
    created = unwrap(service.bulk_import(document.get("records", []), document.get("edges", [])))
    print_success(f"Imported {len(created)} task(s)")
    for task in created:
        typer.echo(format_task_line(task, indent=1))


# =============================================================================
# Status Changes
# =============================================================================


@app.command("done")
def done(
    task_id: str = typer.Argument(..., help="Task ID"),
    force_parent: bool = typer.Option(
        False, "--force-parent", help="Complete even if subtasks are still open"
    ),
    force: bool = typer.Option(
        False, "--force", help="Complete even if dependencies are unresolved"
    ),
    data_file: data_file_option = None,
) -> None:
    """Mark a task completed."""
    mode = CompletionMode.FORCE_PARENT_AUTO_COMPLETE if force_parent else CompletionMode.NORMAL
    service = get_service(data_file)
    outcome = unwrap(service.complete_task(task_id, mode, force=force))
    print_outcome(outcome, "Completed")


@app.command("reopen")
def reopen(
    task_id: str = typer.Argument(..., help="Task ID"),
    status: TaskStatus = typer.Option(TaskStatus.TODO, "--status", help="Todo or InProgress"),
    data_file: data_file_option = None,
) -> None:
    """Reopen a completed task."""
    service = get_service(data_file)
    outcome = unwrap(service.reopen_task(task_id, status))
    print_outcome(outcome, "Reopened")


@app.command("cancel")
def cancel(
    task_id: str = typer.Argument(..., help="Task ID"),
    data_file: data_file_option = None,
) -> None:
    """Cancel a task."""
    service = get_service(data_file)
    outcome = unwrap(service.cancel_task(task_id))
    print_outcome(outcome, "Canceled")
