"""
📦 Models Barrel
Re-exports the domain models for convenient access.
"""

from .mapping import IntegrationMapping, MappingStep
from .pipeline import PipelineRun, PipelineState
from .toggle import GlobalToggle, utcnow

__all__ = [
    "GlobalToggle",
    "IntegrationMapping",
    "MappingStep",
    "PipelineRun",
    "PipelineState",
    "utcnow",
]
