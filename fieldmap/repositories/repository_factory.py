from typing import Optional

from fieldmap.core.config import Settings, settings as default_settings
from fieldmap.repositories.base import StorageBackend
from fieldmap.repositories.memory_repo import InMemoryStorageBackend
from fieldmap.repositories.postgres_repo import PostgresStorageBackend


def get_storage_backend(settings: Optional[Settings] = None) -> StorageBackend:
    """
    Returns the storage backend selected by the global configuration.
    """
    settings = settings or default_settings
    if settings.STORAGE_BACKEND == "memory":
        return InMemoryStorageBackend()
    elif settings.STORAGE_BACKEND == "postgresql":
        return PostgresStorageBackend()
    else:
        raise ValueError(f"Unsupported STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
