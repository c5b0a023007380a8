"""
🗄️ PostgreSQL Repository Implementation
Toggle and mapping stores over the asyncpg DatabaseManager
"""
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg

from fieldmap.core.exceptions import (
    DuplicateKeyError,
    NotFoundError,
    StorageUnavailableError,
    UnitOfWorkError,
)
from fieldmap.core.logging import LoggerMixin
from fieldmap.database.connection import DatabaseManager, get_database_manager, storage_errors
from fieldmap.database.schemas import (
    GLOBAL_TOGGLES_TABLE,
    INTEGRATION_MAPPING_STEPS_TABLE,
    INTEGRATION_MAPPINGS_TABLE,
)
from fieldmap.models import GlobalToggle, IntegrationMapping, MappingStep, utcnow
from fieldmap.repositories.base import (
    GlobalToggleRepositoryBase,
    IntegrationMappingRepositoryBase,
    StorageBackend,
    UnitOfWorkBase,
)

TOGGLE_COLUMNS = "id, key, description, is_enabled, created_at, updated_at, updated_by"
MAPPING_COLUMNS = "integration_key, version, created_at, updated_at, updated_by"
STEP_COLUMNS = "integration_key, position, source_field, target_field, transformer_name, args"


def _decode_args(raw: Any) -> Optional[Dict[str, Optional[str]]]:
    # asyncpg returns JSONB as text unless a codec is registered
    if raw is None:
        return None
    if isinstance(raw, str):
        return json.loads(raw)
    return dict(raw)


def _toggle_from_record(record: asyncpg.Record) -> GlobalToggle:
    return GlobalToggle(**dict(record))


def _mapping_from_records(header: asyncpg.Record, steps: List[asyncpg.Record]) -> IntegrationMapping:
    return IntegrationMapping(
        integration_key=header["integration_key"],
        version=header["version"],
        created_at=header["created_at"],
        updated_at=header["updated_at"],
        updated_by=header["updated_by"],
        steps=tuple(
            MappingStep(
                source_field=s["source_field"],
                target_field=s["target_field"],
                transformer_name=s["transformer_name"],
                args=_decode_args(s["args"]),
            )
            for s in sorted(steps, key=lambda s: s["position"])
        ),
    )


class _PostgresRepositoryMixin(LoggerMixin):
    """
    Connection handling shared by both stores.

    Inside a unit of work every statement runs on the unit's connection and
    transaction. Outside one, reads use a read-only REPEATABLE READ scope and
    each write runs in its own transaction.
    """

    def __init__(self, db_manager: Optional[DatabaseManager] = None,
                 uow: Optional["PostgresUnitOfWork"] = None):
        self._db_manager = db_manager
        self._uow = uow

    async def _get_db_manager(self) -> DatabaseManager:
        if self._db_manager is None:
            self._db_manager = await get_database_manager()
        return self._db_manager

    @asynccontextmanager
    async def _reading(self) -> AsyncIterator[asyncpg.Connection]:
        if self._uow is not None:
            yield self._uow.connection
            return
        db_manager = await self._get_db_manager()
        async with db_manager.read_scope() as conn:
            yield conn

    @asynccontextmanager
    async def _writing(self) -> AsyncIterator[asyncpg.Connection]:
        if self._uow is not None:
            yield self._uow.connection
            return
        db_manager = await self._get_db_manager()
        async with db_manager.write_scope() as conn:
            yield conn


class PostgresGlobalToggleRepository(_PostgresRepositoryMixin, GlobalToggleRepositoryBase):

    async def get_by_key(self, key: str) -> Optional[GlobalToggle]:
        async with self._reading() as conn:
            with storage_errors("toggle read"):
                record = await conn.fetchrow(
                    f"SELECT {TOGGLE_COLUMNS} FROM {GLOBAL_TOGGLES_TABLE} WHERE key = $1", key
                )
        return _toggle_from_record(record) if record else None

    async def get_all(self) -> List[GlobalToggle]:
        async with self._reading() as conn:
            with storage_errors("toggle read"):
                records = await conn.fetch(
                    f"SELECT {TOGGLE_COLUMNS} FROM {GLOBAL_TOGGLES_TABLE} ORDER BY key"
                )
        return [_toggle_from_record(r) for r in records]

    async def get_all_enabled(self) -> List[GlobalToggle]:
        async with self._reading() as conn:
            with storage_errors("toggle read"):
                records = await conn.fetch(
                    f"SELECT {TOGGLE_COLUMNS} FROM {GLOBAL_TOGGLES_TABLE} "
                    f"WHERE is_enabled = TRUE ORDER BY key"
                )
        return [_toggle_from_record(r) for r in records]

    async def create(self, toggle: GlobalToggle) -> GlobalToggle:
        query = f"""
            INSERT INTO {GLOBAL_TOGGLES_TABLE} ({TOGGLE_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING {TOGGLE_COLUMNS}
        """
        try:
            async with self._writing() as conn:
                with storage_errors("toggle create"):
                    record = await conn.fetchrow(
                        query,
                        toggle.id, toggle.key, toggle.description, toggle.is_enabled,
                        toggle.created_at, toggle.updated_at, toggle.updated_by,
                    )
        except asyncpg.exceptions.UniqueViolationError as e:
            self.logger.warning(f"⚠️ Duplicate toggle key '{toggle.key}'")
            raise DuplicateKeyError("GlobalToggle", toggle.key) from e

        self.logger.info(f"🚦 Toggle '{toggle.key}' created", enabled=toggle.is_enabled)
        return _toggle_from_record(record)

    async def set_enabled(self, key: str, enabled: bool, actor: Optional[str] = None) -> GlobalToggle:
        # Flag, timestamp and actor change in one statement
        query = f"""
            UPDATE {GLOBAL_TOGGLES_TABLE}
            SET is_enabled = $2,
                updated_at = GREATEST($3, created_at),
                updated_by = $4
            WHERE key = $1
            RETURNING {TOGGLE_COLUMNS}
        """
        async with self._writing() as conn:
            with storage_errors("toggle update"):
                record = await conn.fetchrow(query, key, enabled, utcnow(), actor)

        if record is None:
            raise NotFoundError("GlobalToggle", key)

        self.logger.info(f"🚦 Toggle '{key}' set to {enabled}", actor=actor)
        return _toggle_from_record(record)


class PostgresIntegrationMappingRepository(_PostgresRepositoryMixin, IntegrationMappingRepositoryBase):

    async def get_by_integration_key(self, key: str) -> Optional[IntegrationMapping]:
        async with self._reading() as conn:
            with storage_errors("mapping read"):
                header = await conn.fetchrow(
                    f"SELECT {MAPPING_COLUMNS} FROM {INTEGRATION_MAPPINGS_TABLE} WHERE integration_key = $1",
                    key,
                )
                if header is None:
                    return None
                steps = await conn.fetch(
                    f"SELECT {STEP_COLUMNS} FROM {INTEGRATION_MAPPING_STEPS_TABLE} "
                    f"WHERE integration_key = $1 ORDER BY position",
                    key,
                )
        return _mapping_from_records(header, steps)

    async def get_all(self) -> List[IntegrationMapping]:
        # Headers and steps come from the same snapshot
        async with self._reading() as conn:
            with storage_errors("mapping read"):
                headers = await conn.fetch(
                    f"SELECT {MAPPING_COLUMNS} FROM {INTEGRATION_MAPPINGS_TABLE} ORDER BY integration_key"
                )
                steps = await conn.fetch(
                    f"SELECT {STEP_COLUMNS} FROM {INTEGRATION_MAPPING_STEPS_TABLE} "
                    f"ORDER BY integration_key, position"
                )

        steps_by_key: Dict[str, List[asyncpg.Record]] = {}
        for step in steps:
            steps_by_key.setdefault(step["integration_key"], []).append(step)

        return [
            _mapping_from_records(header, steps_by_key.get(header["integration_key"], []))
            for header in headers
        ]

    async def upsert(self, mapping: IntegrationMapping) -> IntegrationMapping:
        """
        Replace the mapping header and its whole step sequence in one
        transaction. The version is incremented by the database so
        concurrent upserts never reuse a version number.
        """
        now = utcnow()
        header_query = f"""
            INSERT INTO {INTEGRATION_MAPPINGS_TABLE} ({MAPPING_COLUMNS})
            VALUES ($1, 1, $2, $2, $3)
            ON CONFLICT (integration_key) DO UPDATE
            SET version = {INTEGRATION_MAPPINGS_TABLE}.version + 1,
                updated_at = GREATEST(EXCLUDED.updated_at, {INTEGRATION_MAPPINGS_TABLE}.created_at),
                updated_by = EXCLUDED.updated_by
            RETURNING {MAPPING_COLUMNS}
        """
        step_rows = [
            (
                mapping.integration_key,
                position,
                step.source_field,
                step.target_field,
                step.transformer_name,
                json.dumps(dict(step.args)) if step.args is not None else None,
            )
            for position, step in enumerate(mapping.steps)
        ]

        async with self._writing() as conn:
            with storage_errors("mapping upsert"):
                header = await conn.fetchrow(header_query, mapping.integration_key, now, mapping.updated_by)
                await conn.execute(
                    f"DELETE FROM {INTEGRATION_MAPPING_STEPS_TABLE} WHERE integration_key = $1",
                    mapping.integration_key,
                )
                if step_rows:
                    await conn.executemany(
                        f"INSERT INTO {INTEGRATION_MAPPING_STEPS_TABLE} ({STEP_COLUMNS}) "
                        f"VALUES ($1, $2, $3, $4, $5, $6::jsonb)",
                        step_rows,
                    )

        stored = mapping.model_copy(update={
            "version": header["version"],
            "created_at": header["created_at"],
            "updated_at": header["updated_at"],
            "updated_by": header["updated_by"],
        })
        self.logger.info(
            f"🗺️ Mapping '{mapping.integration_key}' saved",
            version=stored.version, steps=len(stored.steps),
        )
        return stored

    async def delete(self, key: str) -> bool:
        async with self._writing() as conn:
            with storage_errors("mapping delete"):
                status = await conn.execute(
                    f"DELETE FROM {INTEGRATION_MAPPINGS_TABLE} WHERE integration_key = $1", key
                )
        deleted = status == "DELETE 1"
        if deleted:
            self.logger.info(f"🗑️ Mapping '{key}' deleted")
        return deleted


class PostgresUnitOfWork(UnitOfWorkBase):
    """One pooled connection and one transaction for the whole scope"""

    def __init__(self, db_manager: DatabaseManager):
        super().__init__()
        self._db_manager = db_manager
        self._connection: Optional[asyncpg.Connection] = None
        self._transaction = None
        self._tx_finished = False
        self.toggles = PostgresGlobalToggleRepository(db_manager, uow=self)
        self.mappings = PostgresIntegrationMappingRepository(db_manager, uow=self)

    @property
    def connection(self) -> asyncpg.Connection:
        if self._connection is None:
            raise UnitOfWorkError("Unit of work is not active")
        self._ensure_active()
        return self._connection

    async def _begin(self) -> None:
        self._connection = await self._db_manager.acquire()
        try:
            with storage_errors("transaction begin"):
                self._transaction = self._connection.transaction()
                await self._transaction.start()
        except BaseException:
            await self._db_manager.release(self._connection)
            self._connection = None
            raise

    async def _commit(self) -> None:
        try:
            with storage_errors("commit"):
                await self._transaction.commit()
        finally:
            self._tx_finished = True

    async def _rollback(self) -> None:
        if self._transaction is None or self._tx_finished:
            return
        try:
            with storage_errors("rollback"):
                await self._transaction.rollback()
        finally:
            self._tx_finished = True

    async def _close(self) -> None:
        if self._connection is not None:
            await self._db_manager.release(self._connection)
            self._connection = None


class PostgresStorageBackend(StorageBackend):
    """
    PostgreSQL backend. The DatabaseManager pool is shared process-wide.
    """

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        super().__init__()
        self._db_manager = db_manager

    @property
    def db_manager(self) -> DatabaseManager:
        if self._db_manager is None:
            raise StorageUnavailableError("PostgreSQL backend is not connected")
        return self._db_manager

    async def connect(self) -> None:
        """
        Ensures the database manager is initialized and the connection
        pool is ready.
        """
        if self._db_manager is None:
            self._db_manager = await get_database_manager()
        self.is_connected = await self._db_manager.health_check()
        if not self.is_connected:
            raise StorageUnavailableError("Failed to connect to PostgreSQL via DatabaseManager.")

    async def disconnect(self) -> None:
        """
        The DatabaseManager handles connection pooling globally,
        so a backend-level disconnect is not needed.
        """
        self.is_connected = False

    async def health_check(self) -> bool:
        return await self.db_manager.health_check()

    async def ensure_schema(self) -> List[str]:
        return await self.db_manager.ensure_schema()

    def toggles(self) -> PostgresGlobalToggleRepository:
        return PostgresGlobalToggleRepository(self._db_manager)

    def mappings(self) -> PostgresIntegrationMappingRepository:
        return PostgresIntegrationMappingRepository(self._db_manager)

    def unit_of_work(self) -> PostgresUnitOfWork:
        return PostgresUnitOfWork(self.db_manager)
