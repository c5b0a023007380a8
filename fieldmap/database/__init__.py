"""
🗄️ Database Package
asyncpg connection management and table schemas for the PostgreSQL backend
"""

from .connection import DatabaseManager, close_database_connections, get_database_manager, storage_errors
from .schemas import Base, create_schema_ddl

__all__ = [
    "DatabaseManager",
    "close_database_connections",
    "get_database_manager",
    "storage_errors",
    "Base",
    "create_schema_ddl",
]
