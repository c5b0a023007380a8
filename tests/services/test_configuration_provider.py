from unittest.mock import patch

import pytest

from fieldmap.core.exceptions import (
    IntegrationDisabledError,
    IntegrationNotConfiguredError,
    StorageUnavailableError,
)
from fieldmap.models import GlobalToggle
from fieldmap.repositories.memory_repo import InMemoryStorageBackend
from fieldmap.services.configuration_provider import ConfigurationProvider, engine_status
from fieldmap.transformers.registry import TransformerRegistry
from tests.fixtures.sample_data import ALIASED_CHAIN_MAPPING, BROKEN_MAPPING, CONTACT_MAPPING


@pytest.mark.asyncio
async def test_only_mappings_with_enabled_toggles_are_active(backend, provider):
    # crm-sync: enabled toggle; contact-export: disabled toggle; legacy-billing: no toggle
    for mapping in (ALIASED_CHAIN_MAPPING, CONTACT_MAPPING, BROKEN_MAPPING):
        await backend.mappings().upsert(mapping)
    await backend.toggles().create(GlobalToggle(key="crm-sync", is_enabled=True))
    await backend.toggles().create(GlobalToggle(key="contact-export", is_enabled=False))

    active = await provider.get_all_active_integrations()

    assert [m.integration_key for m in active] == ["crm-sync"]
    assert await provider.count_active_integrations() == 1


@pytest.mark.asyncio
async def test_enabled_toggle_without_mapping_is_not_an_integration(backend, provider):
    await backend.toggles().create(GlobalToggle(key="orphan", is_enabled=True))

    assert await provider.get_all_active_integrations() == []


@pytest.mark.asyncio
async def test_disabling_toggle_hides_integration(backend, provider):
    await backend.mappings().upsert(CONTACT_MAPPING)
    await backend.toggles().create(GlobalToggle(key="contact-export", is_enabled=True))
    assert await provider.count_active_integrations() == 1

    await backend.toggles().set_enabled("contact-export", False, actor="ops")

    assert await provider.get_all_active_integrations() == []


@pytest.mark.asyncio
async def test_get_active_integration_fails_closed(backend, provider):
    await backend.mappings().upsert(CONTACT_MAPPING)

    with pytest.raises(IntegrationDisabledError) as exc_info:
        await provider.get_active_integration("contact-export")
    assert exc_info.value.category == "configuration"

    await backend.toggles().create(GlobalToggle(key="contact-export", is_enabled=True))
    mapping = await provider.get_active_integration("contact-export")
    assert mapping.integration_key == "contact-export"


@pytest.mark.asyncio
async def test_get_active_integration_enabled_but_no_mapping(backend, provider):
    await backend.toggles().create(GlobalToggle(key="crm-sync", is_enabled=True))

    with pytest.raises(IntegrationNotConfiguredError) as exc_info:
        await provider.get_active_integration("crm-sync")
    assert exc_info.value.category == "configuration"
    assert exc_info.value.to_dict()["category"] == "configuration"


@pytest.mark.asyncio
async def test_engine_status_healthy(backend, provider, registry):
    await backend.mappings().upsert(CONTACT_MAPPING)
    await backend.toggles().create(GlobalToggle(key="contact-export", is_enabled=True))

    status = await engine_status(registry, provider)

    assert status["status"] == "healthy"
    assert status["transformers"] == 4
    assert status["active_integrations"] == 1


@pytest.mark.asyncio
async def test_engine_status_degraded_without_active_integrations(provider, registry):
    status = await engine_status(registry, provider)

    assert status["status"] == "degraded"
    assert status["active_integrations"] == 0


@pytest.mark.asyncio
async def test_engine_status_degraded_without_transformers(backend, provider):
    await backend.mappings().upsert(CONTACT_MAPPING)
    await backend.toggles().create(GlobalToggle(key="contact-export", is_enabled=True))

    status = await engine_status(TransformerRegistry(), provider)

    assert status["status"] == "degraded"


@pytest.mark.asyncio
async def test_engine_status_unhealthy_when_storage_down(registry):
    backend = InMemoryStorageBackend()

    with patch.object(backend.storage, "snapshot", side_effect=StorageUnavailableError("Storage unavailable")):
        status = await engine_status(registry, ConfigurationProvider(backend))

    assert status["status"] == "unhealthy"
    assert status["error"]["category"] == "storage"
