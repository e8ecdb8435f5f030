"""Infrastructure layer for taskgraph.

Exports:
    Storage:
        - JsonStorage: Low-level JSON document I/O
        - TaskRepository: Protocol consumed by the engine
        - InMemoryTaskRepository: Dict-backed repository
        - JsonTaskRepository: Repository persisted to a JSON file
"""

from taskgraph.infrastructure.storage import (
    InMemoryTaskRepository,
    JsonStorage,
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
