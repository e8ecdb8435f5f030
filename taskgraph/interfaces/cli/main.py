"""Entry point for the taskgraph CLI.

Usage:
    python -m taskgraph.interfaces.cli.main

Or via installed entry point:
    taskgraph <command>
"""

import logging
import os

from taskgraph.config import load_config
from taskgraph.interfaces.cli import app
from taskgraph.logging_setup import setup_logging


def main() -> None:
    """Configure logging and run the taskgraph CLI application."""
    config = load_config()
    console_level = logging.INFO if os.environ.get("TASKGRAPH_VERBOSE") else logging.WARNING
    setup_logging(log_dir=config.resolved_log_dir(), console_level=console_level)
    app()


if __name__ == "__main__":
    main()
