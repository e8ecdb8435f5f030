"""API interface for taskgraph.

This module exports the FastAPI router and app factory.
"""

from taskgraph.interfaces.api.routes import create_app, router

__all__ = ["router", "create_app"]
