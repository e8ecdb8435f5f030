"""CLI command groups for taskgraph.

Command groups:
- task: Task lifecycle (add, update, done, reopen, cancel, list, tree, ...)
- dep: Dependency edges (add, remove, set, list)

Each command group is a Typer app that gets registered
with the main app using app.add_typer().
"""

from taskgraph.interfaces.cli.commands import dep, task

__all__ = ["task", "dep"]
