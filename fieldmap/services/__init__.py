"""
📦 Services Barrel
This module re-exports all services for convenient access.
"""

from .admin_service import AdminService
from .cached_configuration_provider import CachedConfigurationProvider
from .configuration_provider import (
    ConfigurationProvider,
    IntegrationConfigurationProviderBase,
    engine_status,
)
from .pipeline_executor import PipelineExecutor

__all__ = [
    "AdminService",
    "CachedConfigurationProvider",
    "ConfigurationProvider",
    "IntegrationConfigurationProviderBase",
    "engine_status",
    "PipelineExecutor",
]
