from unittest.mock import AsyncMock

import pytest
import structlog

from fieldmap.core.exceptions import DuplicateKeyError, NotFoundError
from fieldmap.models import GlobalToggle
from fieldmap.services.admin_service import AdminService
from tests.fixtures.sample_data import CONTACT_MAPPING


@pytest.fixture
def spy_provider():
    provider = AsyncMock()
    provider.invalidate = AsyncMock()
    return provider


@pytest.mark.asyncio
async def test_create_toggle(admin, backend):
    toggle = await admin.create_toggle("crm-sync", "CRM sync", enabled=True, actor="ops")

    assert toggle.is_enabled is True
    assert toggle.updated_by == "ops"
    assert await backend.toggles().get_by_key("crm-sync") == toggle


@pytest.mark.asyncio
async def test_create_duplicate_toggle_rejected(admin, backend):
    await admin.create_toggle("crm-sync", "first")

    with pytest.raises(DuplicateKeyError):
        await admin.create_toggle("crm-sync", "second", enabled=True)

    stored = await backend.toggles().get_all()
    assert [(t.key, t.description, t.is_enabled) for t in stored] == [("crm-sync", "first", False)]


@pytest.mark.asyncio
async def test_set_toggle_flips_and_stamps(admin):
    created = await admin.create_toggle("crm-sync")

    toggle = await admin.set_toggle("crm-sync", True, actor="alice")

    assert toggle.is_enabled is True
    assert toggle.updated_by == "alice"
    assert toggle.updated_at >= created.updated_at


@pytest.mark.asyncio
async def test_set_toggle_requires_existing_key(admin):
    with pytest.raises(NotFoundError):
        await admin.set_toggle("missing", True)


@pytest.mark.asyncio
async def test_save_integration_creates_toggle_disabled_by_default(admin, backend, provider):
    stored = await admin.save_integration(CONTACT_MAPPING, actor="ops", description="Contacts")

    toggle = await backend.toggles().get_by_key("contact-export")
    assert stored.version == 1
    assert stored.updated_by == "ops"
    assert toggle.is_enabled is False
    assert toggle.description == "Contacts"
    # Invisible until explicitly enabled
    assert await provider.get_all_active_integrations() == []


@pytest.mark.asyncio
async def test_save_integration_keeps_existing_toggle_state(admin, backend):
    await admin.create_toggle("contact-export", enabled=True)

    first = await admin.save_integration(CONTACT_MAPPING, enabled=False)
    second = await admin.save_integration(CONTACT_MAPPING)

    assert (first.version, second.version) == (1, 2)
    assert await backend.toggles().is_enabled("contact-export") is True


@pytest.mark.asyncio
async def test_save_integration_is_atomic(backend, provider):
    """A failing toggle create leaves the mapping unwritten too."""
    admin = AdminService(backend, provider)
    toggles = backend.toggles()

    async def racing_get_by_key(key):
        # Pretend the toggle does not exist, then let the create collide
        await toggles.create(GlobalToggle(key=key))
        return None

    original = backend.unit_of_work

    def uow_with_race():
        uow = original()
        uow.toggles.get_by_key = racing_get_by_key
        return uow

    backend.unit_of_work = uow_with_race

    with pytest.raises(DuplicateKeyError):
        await admin.save_integration(CONTACT_MAPPING)

    assert await backend.mappings().get_all() == []


@pytest.mark.asyncio
async def test_delete_integration_disables_toggle(admin, backend, provider):
    await admin.save_integration(CONTACT_MAPPING, enabled=True)
    assert await provider.count_active_integrations() == 1

    assert await admin.delete_integration("contact-export", actor="ops") is True

    toggle = await backend.toggles().get_by_key("contact-export")
    assert toggle is not None
    assert toggle.is_enabled is False
    assert await backend.mappings().get_all() == []
    assert await admin.delete_integration("contact-export") is False


@pytest.mark.asyncio
async def test_cache_invalidated_after_each_commit(backend, spy_provider):
    admin = AdminService(backend, spy_provider)

    await admin.create_toggle("crm-sync")
    await admin.set_toggle("crm-sync", True)
    await admin.save_integration(CONTACT_MAPPING)

    assert spy_provider.invalidate.await_count == 3


@pytest.mark.asyncio
async def test_cache_not_invalidated_when_commit_fails(backend, spy_provider):
    admin = AdminService(backend, spy_provider)

    with pytest.raises(NotFoundError):
        await admin.set_toggle("missing", True)

    spy_provider.invalidate.assert_not_awaited()


@pytest.mark.asyncio
async def test_log_context_bound_only_for_the_operation(backend, spy_provider):
    seen = []
    spy_provider.invalidate.side_effect = lambda: seen.append(structlog.contextvars.get_contextvars())
    admin = AdminService(backend, spy_provider)

    await admin.save_integration(CONTACT_MAPPING, actor="ops")

    assert seen == [{"integration_key": "contact-export", "actor": "ops"}]
    assert "integration_key" not in structlog.contextvars.get_contextvars()
    assert "actor" not in structlog.contextvars.get_contextvars()
