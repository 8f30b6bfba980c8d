"""
Storage abstraction layer for the issuance controller.

Backends:
- JSON file (default)
- Memory (for testing)

Usage:
    from storage import get_storage_backend

    storage = get_storage_backend()
    storage.save_state(controller.to_dict())
    data = storage.load_state()
"""

import os

from storage.base import StorageBackend, StorageError, StorageReadError, StorageWriteError
from storage.json_file import JSONFileStorage
from storage.memory import MemoryStorage

__all__ = [
    "JSONFileStorage",
    "MemoryStorage",
    "StorageBackend",
    "StorageError",
    "StorageReadError",
    "StorageWriteError",
    "get_storage_backend",
]


def get_storage_backend() -> StorageBackend:
    """
    Build the backend selected by the environment.

    Environment variables:
        STORAGE_BACKEND: "json" (default) or "memory"
        ISSUANCE_STATE_FILE: Path for JSON storage (default: issuance_state.json)
    """
    backend_type = os.getenv("STORAGE_BACKEND", "json").lower()

    if backend_type == "json":
        return JSONFileStorage(os.getenv("ISSUANCE_STATE_FILE", "issuance_state.json"))
    if backend_type == "memory":
        return MemoryStorage()

    raise StorageError(f"Unknown storage backend: {backend_type}")
