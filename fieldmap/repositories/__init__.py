"""
📦 Repositories Barrel
Toggle store, mapping store and unit of work for every storage backend
"""

from .base import (
    GlobalToggleRepositoryBase,
    IntegrationMappingRepositoryBase,
    StorageBackend,
    UnitOfWorkBase,
)
from .memory_repo import InMemoryStorage, InMemoryStorageBackend, InMemoryUnitOfWork
from .postgres_repo import PostgresStorageBackend, PostgresUnitOfWork
from .repository_factory import get_storage_backend

__all__ = [
    "GlobalToggleRepositoryBase",
    "IntegrationMappingRepositoryBase",
    "StorageBackend",
    "UnitOfWorkBase",
    "InMemoryStorage",
    "InMemoryStorageBackend",
    "InMemoryUnitOfWork",
    "PostgresStorageBackend",
    "PostgresUnitOfWork",
    "get_storage_backend",
]
