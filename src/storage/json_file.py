"""
JSON file storage backend.

Default backend: the controller state document lives in one JSON file that
is replaced atomically (write ``<path>.tmp``, then rename) on every save, so
a crash mid-write leaves the previous state intact.
"""

import json
import os
import threading
from typing import Any

from storage.base import StorageBackend, StorageReadError, StorageWriteError


class JSONFileStorage(StorageBackend):
    """Single-document persistence for ``IssuanceController.to_dict()`` output."""

    def __init__(self, file_path: str = "issuance_state.json"):
        self.file_path = file_path
        self._lock = threading.Lock()

    @property
    def _temp_path(self) -> str:
        return f"{self.file_path}.tmp"

    def load_state(self) -> dict[str, Any] | None:
        with self._lock:
            try:
                with open(self.file_path, encoding="utf-8") as f:
                    text = f.read()
            except FileNotFoundError:
                return None
            except OSError as e:
                raise StorageReadError(f"Cannot read state file {self.file_path}: {e}") from e

        if not text.strip():
            return None
        try:
            state = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageReadError(f"State file {self.file_path} is not valid JSON: {e}") from e
        if not isinstance(state, dict):
            raise StorageReadError(
                f"State file {self.file_path} must hold a JSON object, got {type(state).__name__}"
            )
        return state

    def save_state(self, state: dict[str, Any]) -> None:
        try:
            text = json.dumps(state, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageWriteError(f"State is not JSON serializable: {e}") from e

        with self._lock:
            try:
                with open(self._temp_path, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(self._temp_path, self.file_path)
            except OSError as e:
                raise StorageWriteError(f"Cannot write state file {self.file_path}: {e}") from e

    def is_available(self) -> bool:
        directory = os.path.dirname(os.path.abspath(self.file_path))
        return os.path.isdir(directory) and os.access(directory, os.W_OK)

    def get_info(self) -> dict[str, Any]:
        info = super().get_info()
        info["file_path"] = self.file_path
        try:
            stat = os.stat(self.file_path)
        except FileNotFoundError:
            info["file_exists"] = False
            return info
        info.update({
            "file_exists": True,
            "file_size_bytes": stat.st_size,
            "last_modified": stat.st_mtime,
        })
        return info

    def delete(self) -> bool:
        """Remove the state file; False if there was none."""
        with self._lock:
            try:
                os.remove(self.file_path)
            except FileNotFoundError:
                return False
            return True
