"""JSON file storage with Result-based error handling.

Thin wrapper around file I/O for the task store document. Writes go through
a temporary file and an atomic rename so a crash never leaves a half-written
store behind.
"""

import json
import os
from pathlib import Path
from typing import Any

from taskgraph.domain.shared import Err, Ok, Result, StorageFailure


class JsonStorage:
    """Low-level JSON document I/O.

    Example:
        storage = JsonStorage()
        result = storage.load_json(Path("tasks.json"))
        if isinstance(result, Ok):
            data = result.value
        else:
            print(f"Error: {result.error}")
    """

    def load_json(self, path: Path) -> Result[dict[str, Any], StorageFailure]:
        """Load a JSON object from ``path``.

        Returns:
            Ok(dict) on success, Err(StorageFailure) if the file is missing,
            unreadable or not a JSON object.
        """
        try:
            if not path.exists():
                return Err(StorageFailure(f"File not found: {path}", code="FILE_NOT_FOUND"))

            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                return Err(StorageFailure(f"Expected a JSON object in {path}", code="INVALID_JSON"))
            return Ok(data)

        except json.JSONDecodeError as e:
            return Err(StorageFailure(f"Invalid JSON in {path}: {e}", code="INVALID_JSON"))
        except PermissionError:
            return Err(StorageFailure(f"Permission denied reading {path}"))
        except OSError as e:
            return Err(StorageFailure(f"Error reading {path}: {e}"))

    def save_json(
        self,
        path: Path,
        data: dict[str, Any],
        indent: int = 2,
    ) -> Result[None, StorageFailure]:
        """Atomically replace ``path`` with ``data`` serialized as JSON."""
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            content = json.dumps(data, indent=indent)
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
            return Ok(None)

        except TypeError as e:
            return Err(StorageFailure(f"Data not JSON serializable: {e}"))
        except PermissionError:
            return Err(StorageFailure(f"Permission denied writing {path}"))
        except OSError as e:
            return Err(StorageFailure(f"Error writing {path}: {e}"))
