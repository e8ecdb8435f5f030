"""Storage infrastructure for taskgraph.

Repository implementations behind the ``TaskRepository`` protocol, using
Result types for explicit error handling.
"""

from taskgraph.infrastructure.storage.json_storage import JsonStorage
from taskgraph.infrastructure.storage.repositories import (
    InMemoryTaskRepository,
    JsonTaskRepository,
    StorageLoadError,
    TaskRepository,
)

__all__ = [
    "JsonStorage",
    "TaskRepository",
    "InMemoryTaskRepository",
    "JsonTaskRepository",
    "StorageLoadError",
]
