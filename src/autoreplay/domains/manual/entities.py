"""Manual Domain Entities.

An ActionManual is identified by its id and carries mutable health and
counters; its step list is fixed once saved.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .value_objects import MAX_HEALTH, ManualSource, ManualStep, is_replayable


@dataclass
class ActionManual:
    """A recorded, replayable step sequence for one site and task.

    Health is exposed on the 0..1 scale; storage keeps 0..100.

    Invariants:
        - The step list is never empty.
        - Steps are kept sorted by ``order``.
        - Health stays within 0..1.
    """
    id: str
    url_pattern: str
    task_pattern: str
    platform: Optional[str]
    steps: List[ManualStep]
    health: float
    source: ManualSource
    success_count: int = 0
    failure_count: int = 0
    last_used: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"Manual {self.id} has no steps")
        if not 0.0 <= self.health <= 1.0:
            raise ValueError(f"Manual health must be within 0..1, got {self.health}")
        self.steps = sorted(self.steps, key=lambda s: s.order)

    @property
    def is_replayable(self) -> bool:
        return is_replayable(self.health)

    @classmethod
    def from_row(cls, row: Any) -> ActionManual:
        """Build the domain view of a persisted ``ManualRow``."""
        return cls(
            id=row.id,
            url_pattern=row.url_pattern,
            task_pattern=row.task_pattern,
            platform=row.platform,
            steps=[ManualStep.from_dict(s) for s in row.steps],
            health=row.health_score / MAX_HEALTH,
            source=ManualSource(row.source),
            success_count=row.success_count,
            failure_count=row.failure_count,
            last_used=row.last_used,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url_pattern": self.url_pattern,
            "task_pattern": self.task_pattern,
            "platform": self.platform,
            "steps": [s.to_dict() for s in self.steps],
            "health": self.health,
            "source": self.source.value,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "last_used": self.last_used.isoformat() if self.last_used else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
