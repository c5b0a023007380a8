"""
🗄️ Pure asyncpg Database Connection Management
Connection pooling and transaction scopes for the PostgreSQL backend

Features:
- Connection pooling with asyncpg
- Read scopes (read-only, repeatable read) and write scopes (read committed)
- Storage errors translated to StorageUnavailableError
- Idempotent schema bootstrap
"""

import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator, List, Optional

import asyncpg

from fieldmap.core.config import settings
from fieldmap.core.exceptions import StorageUnavailableError
from fieldmap.database.schemas import create_schema_ddl

logger = logging.getLogger(__name__)

# Errors meaning "the database cannot be reached right now"
STORAGE_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver/network failures into StorageUnavailableError"""
    try:
        yield
    except STORAGE_ERRORS as e:
        logger.error(f"❌ Storage unavailable during {operation}: {e}")
        raise StorageUnavailableError(f"Storage unavailable during {operation}: {e}", cause=e) from e


class DatabaseManager:
    """
    Pure asyncpg database manager
    Handles connection pooling and transaction scopes
    """

    def __init__(
        self,
        connection_string: str,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: Optional[float] = None,
    ):
        self.connection_string = connection_string
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None
        self._init_lock = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    async def initialize(self) -> None:
        """Initialize the connection pool"""
        async with self._init_lock:
            if self._pool is not None:
                return
            with storage_errors("pool initialization"):
                self._pool = await asyncpg.create_pool(
                    self.connection_string,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=self.command_timeout,
                    server_settings={
                        'jit': 'off'
                    }
                )
            self.logger.info("✅ PostgreSQL connection pool initialized")

    async def get_pool(self) -> asyncpg.Pool:
        """Get the connection pool, initializing if necessary"""
        if self._pool is None:
            await self.initialize()
        return self._pool

    async def close(self) -> None:
        """Close the connection pool"""
        if self._pool:
            await self._pool.close()
            self._pool = None
            self.logger.info("🔒 PostgreSQL connection pool closed")

    async def health_check(self) -> bool:
        """Check database connectivity"""
        try:
            pool = await self.get_pool()
            async with pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except (StorageUnavailableError, *STORAGE_ERRORS) as e:
            self.logger.error(f"❌ Database health check failed: {e}")
            return False

    async def acquire(self) -> asyncpg.Connection:
        """Acquire a raw connection; caller must ``release`` it"""
        pool = await self.get_pool()
        with storage_errors("connection acquire"):
            return await pool.acquire()

    async def release(self, conn: asyncpg.Connection) -> None:
        pool = await self.get_pool()
        with storage_errors("connection release"):
            await pool.release(conn)

    @asynccontextmanager
    async def read_scope(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Read-only REPEATABLE READ transaction: every query inside sees the
        same committed snapshot.
        """
        conn = await self.acquire()
        try:
            with storage_errors("read"):
                async with conn.transaction(isolation="repeatable_read", readonly=True):
                    yield conn
        finally:
            await self.release(conn)

    @asynccontextmanager
    async def write_scope(self) -> AsyncIterator[asyncpg.Connection]:
        """Single read-write transaction, committed when the block exits cleanly"""
        conn = await self.acquire()
        try:
            with storage_errors("write"):
                async with conn.transaction():
                    yield conn
        finally:
            await self.release(conn)

    async def ensure_schema(self) -> List[str]:
        """Create the engine tables if they don't exist. Returns executed statements"""
        statements = create_schema_ddl()
        async with self.write_scope() as conn:
            for statement in statements:
                await conn.execute(statement)
        self.logger.info(f"✅ Schema ensured ({len(statements)} statements)")
        return statements


# 🌍 Global database manager instance
_db_manager: Optional[DatabaseManager] = None


async def get_database_manager() -> DatabaseManager:
    """Get the global database manager instance"""
    global _db_manager

    if _db_manager is None:
        _db_manager = DatabaseManager(
            settings.POSTGRES_URL,
            min_size=settings.DB_POOL_MIN_SIZE,
            max_size=settings.DB_POOL_MAX_SIZE,
            command_timeout=settings.DB_COMMAND_TIMEOUT_SECONDS,
        )
        await _db_manager.initialize()

    return _db_manager


async def close_database_connections() -> None:
    """Close all database connections"""
    global _db_manager

    if _db_manager:
        await _db_manager.close()
        _db_manager = None
