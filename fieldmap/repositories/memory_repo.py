"""
🧠 In-memory storage backend
Committed state is an immutable snapshot swapped atomically under a lock.

Readers always see one whole snapshot, so they can never observe a
half-written step list or a toggle flip without its timestamps. A unit of
work stages its writes against a private working copy (read-your-writes)
and, on commit, replays them against the latest committed snapshot. The
new snapshot is published only when every staged write succeeds.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from fieldmap.core.exceptions import DuplicateKeyError, NotFoundError, StorageUnavailableError
from fieldmap.core.logging import LoggerMixin
from fieldmap.models import GlobalToggle, IntegrationMapping, utcnow
from fieldmap.repositories.base import (
    GlobalToggleRepositoryBase,
    IntegrationMappingRepositoryBase,
    StorageBackend,
    UnitOfWorkBase,
)


@dataclass(frozen=True)
class _Snapshot:
    toggles: Mapping[str, GlobalToggle] = field(default_factory=lambda: MappingProxyType({}))
    mappings: Mapping[str, IntegrationMapping] = field(default_factory=lambda: MappingProxyType({}))


class _WorkingSet:
    """Mutable copy of a snapshot; every store write goes through here"""

    def __init__(self, snapshot: _Snapshot):
        self.toggles: Dict[str, GlobalToggle] = dict(snapshot.toggles)
        self.mappings: Dict[str, IntegrationMapping] = dict(snapshot.mappings)

    def create_toggle(self, toggle: GlobalToggle) -> GlobalToggle:
        if toggle.key in self.toggles:
            raise DuplicateKeyError("GlobalToggle", toggle.key)
        self.toggles[toggle.key] = toggle
        return toggle

    def set_enabled(self, key: str, enabled: bool, actor: Optional[str], now: datetime) -> GlobalToggle:
        current = self.toggles.get(key)
        if current is None:
            raise NotFoundError("GlobalToggle", key)
        updated = current.with_enabled(enabled, actor=actor, now=now)
        self.toggles[key] = updated
        return updated

    def upsert_mapping(self, mapping: IntegrationMapping, now: datetime) -> IntegrationMapping:
        previous = self.mappings.get(mapping.integration_key)
        stored = mapping.next_version(previous, actor=mapping.updated_by, now=now)
        self.mappings[mapping.integration_key] = stored
        return stored

    def delete_mapping(self, key: str) -> bool:
        return self.mappings.pop(key, None) is not None

    def freeze(self) -> _Snapshot:
        return _Snapshot(
            toggles=MappingProxyType(dict(self.toggles)),
            mappings=MappingProxyType(dict(self.mappings)),
        )


Operation = Callable[[_WorkingSet], Any]


class InMemoryStorage(LoggerMixin):
    """
    Process-local committed state shared by every repository and unit of work
    created from the same backend.
    """

    def __init__(self):
        self._snapshot = _Snapshot()
        self._lock = asyncio.Lock()

    def snapshot(self) -> _Snapshot:
        return self._snapshot

    async def publish(self, operations: Sequence[Operation]) -> List[Any]:
        """
        Apply ``operations`` to the latest committed snapshot and swap it in.
        All-or-nothing: the first failing operation aborts the publish.
        """
        async with self._lock:
            working = _WorkingSet(self._snapshot)
            results = [operation(working) for operation in operations]
            self._snapshot = working.freeze()
        return results


class InMemoryGlobalToggleRepository(GlobalToggleRepositoryBase):
    """Toggle store over InMemoryStorage; bound to a unit of work when ``uow`` is given"""

    def __init__(self, storage: InMemoryStorage, uow: Optional["InMemoryUnitOfWork"] = None):
        self._storage = storage
        self._uow = uow

    def _view(self) -> Mapping[str, GlobalToggle]:
        if self._uow is not None:
            return self._uow.working().toggles
        return self._storage.snapshot().toggles

    async def _write(self, operation: Operation) -> Any:
        if self._uow is not None:
            return self._uow.stage(operation)
        results = await self._storage.publish([operation])
        return results[0]

    async def get_by_key(self, key: str) -> Optional[GlobalToggle]:
        return self._view().get(key)

    async def get_all(self) -> List[GlobalToggle]:
        return sorted(self._view().values(), key=lambda t: t.key)

    async def get_all_enabled(self) -> List[GlobalToggle]:
        return [t for t in await self.get_all() if t.is_enabled]

    async def create(self, toggle: GlobalToggle) -> GlobalToggle:
        return await self._write(lambda ws: ws.create_toggle(toggle))

    async def set_enabled(self, key: str, enabled: bool, actor: Optional[str] = None) -> GlobalToggle:
        now = utcnow()
        return await self._write(lambda ws: ws.set_enabled(key, enabled, actor, now))


class InMemoryIntegrationMappingRepository(IntegrationMappingRepositoryBase):
    def __init__(self, storage: InMemoryStorage, uow: Optional["InMemoryUnitOfWork"] = None):
        self._storage = storage
        self._uow = uow

    def _view(self) -> Mapping[str, IntegrationMapping]:
        if self._uow is not None:
            return self._uow.working().mappings
        return self._storage.snapshot().mappings

    async def _write(self, operation: Operation) -> Any:
        if self._uow is not None:
            return self._uow.stage(operation)
        results = await self._storage.publish([operation])
        return results[0]

    async def get_by_integration_key(self, key: str) -> Optional[IntegrationMapping]:
        return self._view().get(key)

    async def get_all(self) -> List[IntegrationMapping]:
        return sorted(self._view().values(), key=lambda m: m.integration_key)

    async def upsert(self, mapping: IntegrationMapping) -> IntegrationMapping:
        now = utcnow()
        return await self._write(lambda ws: ws.upsert_mapping(mapping, now))

    async def delete(self, key: str) -> bool:
        return await self._write(lambda ws: ws.delete_mapping(key))


class InMemoryUnitOfWork(UnitOfWorkBase):
    """
    Stages writes in a private working copy and publishes them in one swap.

    Uniqueness and existence are checked twice: when the write is staged
    (against the working copy) and again at commit (against whatever was
    committed meanwhile), so a concurrent duplicate create makes this
    commit fail with nothing applied.
    """

    def __init__(self, storage: InMemoryStorage):
        super().__init__()
        self._storage = storage
        self._working: Optional[_WorkingSet] = None
        self._operations: List[Operation] = []
        self.toggles = InMemoryGlobalToggleRepository(storage, uow=self)
        self.mappings = InMemoryIntegrationMappingRepository(storage, uow=self)

    def working(self) -> _WorkingSet:
        self._ensure_active()
        return self._working

    def stage(self, operation: Operation) -> Any:
        result = operation(self.working())
        self._operations.append(operation)
        return result

    async def _begin(self) -> None:
        self._working = _WorkingSet(self._storage.snapshot())
        self._operations = []

    async def _commit(self) -> None:
        await self._storage.publish(self._operations)
        self.logger.info(f"💾 Published {len(self._operations)} staged writes")

    async def _rollback(self) -> None:
        if self._operations:
            self.logger.info(f"Discarding {len(self._operations)} staged writes")
        self._operations = []
        self._working = None


class InMemoryStorageBackend(StorageBackend):
    """Backend used for development and tests; state lives for the process"""

    def __init__(self, storage: Optional[InMemoryStorage] = None):
        super().__init__()
        self.storage = storage or InMemoryStorage()

    async def connect(self) -> None:
        self.is_connected = True

    async def disconnect(self) -> None:
        self.is_connected = False

    async def health_check(self) -> bool:
        try:
            self.storage.snapshot()
        except StorageUnavailableError:
            return False
        return True

    def toggles(self) -> InMemoryGlobalToggleRepository:
        return InMemoryGlobalToggleRepository(self.storage)

    def mappings(self) -> InMemoryIntegrationMappingRepository:
        return InMemoryIntegrationMappingRepository(self.storage)

    def unit_of_work(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self.storage)
