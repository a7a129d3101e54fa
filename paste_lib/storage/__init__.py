"""Storage abstraction package for PasteStore."""
from typing import Any

from .base import StorageBackend
from .database_backend import DatabaseStorage
from .errors import BackendUnavailableError, InvalidKeyError, StorageConfigurationError, StorageError
from .file_backend import FileStorageBackend
from .memory_backend import MemoryStorage


def create_storage(backend: str = "filesystem", **options: Any) -> StorageBackend:
    """Build the paste store selected by configuration.

    `backend` is one of "database", "filesystem" or "memory"; `options` are
    the backend's `model_options`.
    """
    name = (backend or "").lower()
    if name == "database":
        return DatabaseStorage.from_options(**options)
    if name == "filesystem":
        return FileStorageBackend.from_options(**options)
    if name == "memory":
        return MemoryStorage()
    raise StorageConfigurationError(f"unknown storage backend {backend!r}")


__all__ = [
    "StorageBackend",
    "DatabaseStorage",
    "FileStorageBackend",
    "MemoryStorage",
    "create_storage",
    "StorageError",
    "StorageConfigurationError",
    "BackendUnavailableError",
    "InvalidKeyError",
]
