import pytest
import structlog
import structlog.testing

from fieldmap.repositories.memory_repo import InMemoryStorageBackend
from fieldmap.services.admin_service import AdminService
from fieldmap.services.configuration_provider import ConfigurationProvider
from fieldmap.services.pipeline_executor import PipelineExecutor
from fieldmap.transformers.registry import build_default_registry


@pytest.fixture
def registry():
    """Frozen registry with the built-in transformers."""
    return build_default_registry()


@pytest.fixture
def backend():
    """Fresh in-memory backend per test."""
    return InMemoryStorageBackend()


@pytest.fixture
def provider(backend):
    return ConfigurationProvider(backend)


@pytest.fixture
def admin(backend, provider):
    return AdminService(backend, provider)


@pytest.fixture
def executor(registry, provider):
    return PipelineExecutor(registry, provider)


@pytest.fixture(autouse=True)
def captured_logs():
    """Keep structlog output off stdout so CLI tests can parse it."""
    with structlog.testing.capture_logs() as logs:
        yield logs
