"""Interfaces layer for taskgraph.

Thin adapters around the application services:
- CLI: Command-line interface using Typer, backed by the JSON task store
- API: REST API using FastAPI

Adapters validate input, call the services and translate typed errors
(red ``Error:`` line and exit code 1 for the CLI, the error's HTTP status
for the API). They carry no domain rules.
"""

from taskgraph.interfaces.cli import app

__all__ = ["app"]
