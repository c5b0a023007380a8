"""
🧩 Configuration Provider
Joins integration mappings with their toggles to yield the active integrations
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from fieldmap.core.exceptions import FieldMapError, IntegrationDisabledError, IntegrationNotConfiguredError
from fieldmap.core.logging import LoggerMixin
from fieldmap.models import IntegrationMapping, utcnow
from fieldmap.repositories.base import StorageBackend
from fieldmap.transformers.registry import TransformerRegistry


class IntegrationConfigurationProviderBase(ABC):
    """Read surface consumed by the pipeline executor and status reporting"""

    @abstractmethod
    async def get_all_active_integrations(self) -> List[IntegrationMapping]: ...

    @abstractmethod
    async def get_active_integration(self, integration_key: str) -> IntegrationMapping:
        """
        Raises:
            IntegrationDisabledError: toggle missing or disabled
            IntegrationNotConfiguredError: toggle enabled but no mapping stored
        """

    async def count_active_integrations(self) -> int:
        return len(await self.get_all_active_integrations())

    async def invalidate(self) -> None:
        """Drop any cached state; no-op for uncached providers"""


class ConfigurationProvider(LoggerMixin, IntegrationConfigurationProviderBase):
    """
    Fail-closed join of mappings and toggles.

    A mapping is active only when a toggle with the same key exists and is
    enabled. A missing toggle counts as disabled, so a freshly authored
    mapping stays invisible until its toggle is created and switched on.
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    async def get_all_active_integrations(self) -> List[IntegrationMapping]:
        enabled = await self.backend.toggles().get_all_enabled()
        mappings = await self.backend.mappings().get_all()

        enabled_keys = {toggle.key for toggle in enabled}
        active = [m for m in mappings if m.integration_key in enabled_keys]

        self.logger.debug(
            "Resolved active integrations",
            enabled_toggles=len(enabled_keys),
            mappings=len(mappings),
            active=len(active),
        )
        return active

    async def get_active_integration(self, integration_key: str) -> IntegrationMapping:
        if not await self.backend.toggles().is_enabled(integration_key):
            raise IntegrationDisabledError(integration_key)

        mapping = await self.backend.mappings().get_by_integration_key(integration_key)
        if mapping is None:
            raise IntegrationNotConfiguredError(integration_key)
        return mapping


async def engine_status(registry: TransformerRegistry,
                        provider: IntegrationConfigurationProviderBase) -> Dict[str, Any]:
    """
    Status payload for an external health reporter.

    ``degraded`` when no transformer is registered or no integration is
    active, ``unhealthy`` when the configuration cannot be read.
    """
    status: Dict[str, Any] = {
        "status": "healthy",
        "transformers": len(registry),
        "active_integrations": None,
        "timestamp": utcnow().isoformat(),
    }

    try:
        status["active_integrations"] = await provider.count_active_integrations()
    except FieldMapError as e:
        status["status"] = "unhealthy"
        status["error"] = e.to_dict()
        return status

    if status["transformers"] == 0 or status["active_integrations"] == 0:
        status["status"] = "degraded"
    return status
