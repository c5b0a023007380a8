"""
🏗️ Base repository interfaces
Toggle store, mapping store and the unit of work that commits them together
"""
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Awaitable, Callable, List, Optional, Type

from fieldmap.core.exceptions import UnitOfWorkError
from fieldmap.core.logging import LoggerMixin
from fieldmap.models import GlobalToggle, IntegrationMapping


# 1. Toggle store
class GlobalToggleRepositoryBase(ABC):
    @abstractmethod
    async def get_by_key(self, key: str) -> Optional[GlobalToggle]: ...
    @abstractmethod
    async def get_all(self) -> List[GlobalToggle]: ...
    @abstractmethod
    async def get_all_enabled(self) -> List[GlobalToggle]: ...
    @abstractmethod
    async def create(self, toggle: GlobalToggle) -> GlobalToggle:
        """Raises DuplicateKeyError when the key already exists"""
    @abstractmethod
    async def set_enabled(self, key: str, enabled: bool, actor: Optional[str] = None) -> GlobalToggle:
        """Raises NotFoundError when the key does not exist"""

    async def is_enabled(self, key: str) -> bool:
        # Absent toggle means disabled
        toggle = await self.get_by_key(key)
        return bool(toggle and toggle.is_enabled)


# 2. Mapping store
class IntegrationMappingRepositoryBase(ABC):
    @abstractmethod
    async def get_by_integration_key(self, key: str) -> Optional[IntegrationMapping]: ...
    @abstractmethod
    async def get_all(self) -> List[IntegrationMapping]: ...
    @abstractmethod
    async def upsert(self, mapping: IntegrationMapping) -> IntegrationMapping:
        """Replace the whole mapping (steps included); returns the stored version"""
    @abstractmethod
    async def delete(self, key: str) -> bool: ...


# 3. Unit of work
AfterCommitHook = Callable[[], Awaitable[None]]


class UnitOfWorkBase(LoggerMixin, ABC):
    """
    Transactional scope over both stores.

    Used as ``async with backend.unit_of_work() as uow``. Writes made through
    ``uow.toggles`` / ``uow.mappings`` become visible to other readers only
    on ``commit()``. Leaving the block without committing, or with an
    exception, rolls everything back. A unit of work is single-use.
    """

    toggles: GlobalToggleRepositoryBase
    mappings: IntegrationMappingRepositoryBase

    def __init__(self):
        self._active = False
        self._completed = False
        self._after_commit: List[AfterCommitHook] = []

    @abstractmethod
    async def _begin(self) -> None: ...
    @abstractmethod
    async def _commit(self) -> None: ...
    @abstractmethod
    async def _rollback(self) -> None: ...

    async def _close(self) -> None:
        """Release resources held by the scope"""

    def after_commit(self, hook: AfterCommitHook) -> None:
        """Register a coroutine to run once the commit succeeded"""
        self._after_commit.append(hook)

    def _ensure_active(self) -> None:
        if not self._active:
            raise UnitOfWorkError("Unit of work is not active")

    async def __aenter__(self) -> "UnitOfWorkBase":
        if self._active or self._completed:
            raise UnitOfWorkError("Unit of work cannot be reused")
        await self._begin()
        self._active = True
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        try:
            if self._active:
                if exc_type is not None:
                    self.logger.warning(f"↩️ Rolling back unit of work after {exc_type.__name__}")
                await self.rollback()
        finally:
            self._active = False
            await self._close()

    async def commit(self) -> None:
        self._ensure_active()
        try:
            await self._commit()
        except BaseException:
            self._active = False
            self._completed = True
            await self._rollback()
            raise
        self._active = False
        self._completed = True
        self.logger.debug("✅ Unit of work committed")

        for hook in self._after_commit:
            await hook()

    async def rollback(self) -> None:
        self._ensure_active()
        self._active = False
        self._completed = True
        await self._rollback()
        self.logger.debug("Unit of work rolled back")


# 4. Storage backend (composition point for repositories)
class StorageBackend(ABC):
    def __init__(self):
        self.is_connected: bool = False

    @abstractmethod
    async def connect(self) -> None: ...
    @abstractmethod
    async def disconnect(self) -> None: ...
    @abstractmethod
    async def health_check(self) -> bool: ...
    @abstractmethod
    def toggles(self) -> GlobalToggleRepositoryBase:
        """Repository outside any unit of work; each write is its own transaction"""
    @abstractmethod
    def mappings(self) -> IntegrationMappingRepositoryBase: ...
    @abstractmethod
    def unit_of_work(self) -> UnitOfWorkBase: ...
