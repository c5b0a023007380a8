# fieldmap/models/pipeline.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from fieldmap.core.exceptions import FieldMapError


class PipelineState(str, Enum):
    """Lifecycle of one mapping application"""
    PENDING = "pending"
    RESOLVING = "resolving"
    APPLYING = "applying"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    PipelineState.PENDING: {PipelineState.RESOLVING, PipelineState.FAILED},
    PipelineState.RESOLVING: {PipelineState.APPLYING, PipelineState.FAILED},
    PipelineState.APPLYING: {PipelineState.COMPLETED, PipelineState.FAILED},
    PipelineState.COMPLETED: set(),
    PipelineState.FAILED: set(),
}


@dataclass
class PipelineRun:
    """Outcome of applying one mapping to one record."""
    integration_key: str
    state: PipelineState = PipelineState.PENDING
    output: Optional[Dict[str, str]] = None
    error: Optional[FieldMapError] = None
    history: List[PipelineState] = field(default_factory=lambda: [PipelineState.PENDING])
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def transition(self, new_state: PipelineState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(f"Invalid pipeline transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
        if new_state in (PipelineState.COMPLETED, PipelineState.FAILED):
            self.finished_at = datetime.now(timezone.utc)

    def complete(self, output: Dict[str, str]) -> None:
        self.output = output
        self.transition(PipelineState.COMPLETED)

    def fail(self, error: FieldMapError) -> None:
        self.output = None
        self.error = error
        self.transition(PipelineState.FAILED)

    @property
    def is_success(self) -> bool:
        return self.state == PipelineState.COMPLETED

    @property
    def error_category(self) -> Optional[str]:
        return self.error.category if self.error else None

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "integration_key": self.integration_key,
            "state": self.state.value,
            "output": self.output,
            "error": self.error.to_dict() if self.error else None,
            "duration_seconds": self.duration_seconds,
        }
