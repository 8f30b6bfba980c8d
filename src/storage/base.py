"""
Abstract base class for storage backends.

A backend persists the controller's full state document: registry, cooldowns,
ledger balances and notification log, exactly as produced by
``IssuanceController.to_dict()``.
"""

from abc import ABC, abstractmethod
from typing import Any


class StorageError(Exception):
    """Base exception for storage-related errors."""
    pass


class StorageReadError(StorageError):
    """Raised when reading from storage fails."""
    pass


class StorageWriteError(StorageError):
    """Raised when writing to storage fails."""
    pass


class StorageBackend(ABC):
    """Interface every state storage backend implements."""

    @abstractmethod
    def load_state(self) -> dict[str, Any] | None:
        """
        Load the persisted controller state.

        Returns:
            State dictionary, or None if nothing has been saved yet

        Raises:
            StorageReadError: If reading fails
        """
        pass

    @abstractmethod
    def save_state(self, state: dict[str, Any]) -> None:
        """
        Persist the complete controller state.

        Raises:
            StorageWriteError: If writing fails
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True if the backend can currently be written to."""
        pass

    def get_info(self) -> dict[str, Any]:
        """Backend type, availability and configuration."""
        return {
            "backend_type": self.__class__.__name__,
            "available": self.is_available(),
        }
