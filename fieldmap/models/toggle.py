"""
🚦 Global toggle model
Uniquely-keyed feature flag gating whether an integration is active
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GlobalToggle(BaseModel):
    """
    Persisted feature flag with audit metadata.

    Toggles are immutable values: a flip produces a new instance through
    ``with_enabled`` so the enabled state and its timestamps always travel
    together.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Surrogate key")
    key: str = Field(..., min_length=1, max_length=100, description="Stable identifier used by callers")
    description: str = Field(default="", max_length=500, description="Human-readable description")
    is_enabled: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    updated_by: Optional[str] = Field(default=None, max_length=200, description="Actor of the last mutation")

    @model_validator(mode="after")
    def check_timestamps(self) -> "GlobalToggle":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self

    def with_enabled(self, enabled: bool, actor: Optional[str] = None,
                     now: Optional[datetime] = None) -> "GlobalToggle":
        """Return a copy flipped to ``enabled`` with updated_at/updated_by stamped"""
        stamp = max(now or utcnow(), self.created_at)
        return GlobalToggle(
            id=self.id,
            key=self.key,
            description=self.description,
            is_enabled=enabled,
            created_at=self.created_at,
            updated_at=stamp,
            updated_by=actor,
        )
