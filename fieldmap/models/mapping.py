"""
🗺️ Integration mapping models
An integration owns an ordered chain of transformer steps
"""

from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from fieldmap.models.toggle import utcnow


class MappingStep(BaseModel):
    """One transformer application: read source_field, write target_field"""

    model_config = ConfigDict(frozen=True)

    source_field: str = Field(..., min_length=1)
    target_field: str = Field(..., min_length=1)
    transformer_name: str = Field(..., min_length=1, max_length=200)
    args: Optional[Mapping[str, Optional[str]]] = Field(default=None)

    @field_validator("args", mode="after")
    @classmethod
    def freeze_args(cls, value: Optional[Mapping[str, Optional[str]]]) -> Optional[Mapping[str, Optional[str]]]:
        # Read-only copy: committed steps are shared by every reader
        if value is None:
            return None
        return MappingProxyType(dict(value))

    @field_serializer("args")
    def serialize_args(self, value: Optional[Mapping[str, Optional[str]]]):
        return dict(value) if value is not None else None


class IntegrationMapping(BaseModel):
    """
    Ordered transformer chain for one integration.

    ``integration_key`` joins to the GlobalToggle key that gates the
    integration. Steps are applied first-to-last; the tuple is replaced as a
    whole on every update, never patched in place.
    """

    model_config = ConfigDict(frozen=True)

    integration_key: str = Field(..., min_length=1, max_length=100)
    steps: Tuple[MappingStep, ...] = Field(default=())
    version: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    updated_by: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def check_timestamps(self) -> "IntegrationMapping":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self

    @property
    def transformer_names(self) -> Tuple[str, ...]:
        return tuple(step.transformer_name for step in self.steps)

    def next_version(self, previous: Optional["IntegrationMapping"], actor: Optional[str] = None,
                     now: Optional[datetime] = None) -> "IntegrationMapping":
        """
        Stamp this mapping as the successor of ``previous`` (or as a first
        version when there is none).
        """
        stamp = now or utcnow()
        if previous is None:
            return self.model_copy(update={
                "version": 1,
                "created_at": stamp,
                "updated_at": stamp,
                "updated_by": actor,
            })
        return self.model_copy(update={
            "version": previous.version + 1,
            "created_at": previous.created_at,
            "updated_at": max(stamp, previous.created_at),
            "updated_by": actor,
        })
