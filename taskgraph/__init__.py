"""taskgraph - dependency-aware task hierarchy and completion engine."""

__version__ = "0.1.0"
