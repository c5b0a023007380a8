"""
🛠️ Administrative Service
Write operations on toggles and mappings, each in one unit of work
"""

from typing import Optional

from fieldmap.core.logging import LoggerMixin, log_context
from fieldmap.models import GlobalToggle, IntegrationMapping
from fieldmap.repositories.base import StorageBackend, UnitOfWorkBase
from fieldmap.services.configuration_provider import IntegrationConfigurationProviderBase


class AdminService(LoggerMixin):
    """
    Every method opens its own unit of work and commits it, then drops the
    provider's cached configuration so readers pick up the new state.
    """

    def __init__(self, backend: StorageBackend,
                 provider: Optional[IntegrationConfigurationProviderBase] = None):
        self.backend = backend
        self.provider = provider

    def _invalidate_after_commit(self, uow: UnitOfWorkBase) -> None:
        if self.provider is not None:
            uow.after_commit(self.provider.invalidate)

    async def create_toggle(self, key: str, description: str = "", enabled: bool = False,
                            actor: Optional[str] = None) -> GlobalToggle:
        """
        Raises:
            DuplicateKeyError: a toggle with ``key`` already exists
        """
        toggle = GlobalToggle(key=key, description=description, is_enabled=enabled, updated_by=actor)

        with log_context(toggle_key=key, actor=actor):
            async with self.backend.unit_of_work() as uow:
                self._invalidate_after_commit(uow)
                created = await uow.toggles.create(toggle)
                await uow.commit()

            self.logger.info(f"🚦 Toggle '{key}' created", enabled=enabled)
        return created

    async def set_toggle(self, key: str, enabled: bool, actor: Optional[str] = None) -> GlobalToggle:
        """
        Raises:
            NotFoundError: no toggle with ``key``
        """
        with log_context(toggle_key=key, actor=actor):
            async with self.backend.unit_of_work() as uow:
                self._invalidate_after_commit(uow)
                toggle = await uow.toggles.set_enabled(key, enabled, actor)
                await uow.commit()

            self.logger.info(f"🚦 Toggle '{key}' {'enabled' if enabled else 'disabled'}")
        return toggle

    async def save_integration(self, mapping: IntegrationMapping, actor: Optional[str] = None,
                               description: str = "", enabled: bool = False) -> IntegrationMapping:
        """
        Store ``mapping`` (replacing any previous chain) and create its toggle
        when missing, atomically. An existing toggle keeps its state.

        Transformer names are not checked here: a mapping may be saved
        before the transformer it references is deployed.
        """
        mapping = mapping.model_copy(update={"updated_by": actor})

        with log_context(integration_key=mapping.integration_key, actor=actor):
            async with self.backend.unit_of_work() as uow:
                self._invalidate_after_commit(uow)
                stored = await uow.mappings.upsert(mapping)
                if await uow.toggles.get_by_key(mapping.integration_key) is None:
                    await uow.toggles.create(GlobalToggle(
                        key=mapping.integration_key,
                        description=description,
                        is_enabled=enabled,
                        updated_by=actor,
                    ))
                await uow.commit()

            self.logger.info(
                f"🗺️ Integration '{stored.integration_key}' saved",
                version=stored.version,
                steps=len(stored.steps),
            )
        return stored

    async def delete_integration(self, integration_key: str, actor: Optional[str] = None) -> bool:
        """
        Remove the mapping and disable its toggle. Toggles are never deleted.
        """
        with log_context(integration_key=integration_key, actor=actor):
            async with self.backend.unit_of_work() as uow:
                self._invalidate_after_commit(uow)
                deleted = await uow.mappings.delete(integration_key)
                if await uow.toggles.get_by_key(integration_key) is not None:
                    await uow.toggles.set_enabled(integration_key, False, actor)
                await uow.commit()

            self.logger.info(f"🗑️ Integration '{integration_key}' delete requested", deleted=deleted)
        return deleted
