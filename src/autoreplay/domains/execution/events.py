"""Execution Domain Events.

Emitted by ExecutionEngine while deciding between replay and AI-assisted
execution.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ManualFound:
    """Emitted when lookup returns a manual for the job."""
    job_id: str
    manual_id: str
    health: float
    url_pattern: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "manual_found",
            "job_id": self.job_id,
            "manual_id": self.manual_id,
            "health": self.health,
            "url_pattern": self.url_pattern,
        }


@dataclass(frozen=True)
class ModeSelected:
    """Emitted once the initial execution mode is decided."""
    job_id: str
    mode: str
    reason: Optional[str] = None
    manual_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "mode_selected",
            "job_id": self.job_id,
            "mode": self.mode,
            "reason": self.reason,
            "manual_id": self.manual_id,
        }


@dataclass(frozen=True)
class ModeSwitched:
    """Emitted when a failed replay hands the job to AI-assisted execution."""
    job_id: str
    from_mode: str
    to_mode: str
    reason: str
    error: Optional[str] = None
    manual_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "mode_switched",
            "job_id": self.job_id,
            "from_mode": self.from_mode,
            "to_mode": self.to_mode,
            "reason": self.reason,
            "error": self.error,
            "manual_id": self.manual_id,
        }


@dataclass(frozen=True)
class ManualLearned:
    """Emitted when an AI-assisted run is saved as a new manual."""
    job_id: str
    manual_id: str
    step_count: int
    url_pattern: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "manual_learned",
            "job_id": self.job_id,
            "manual_id": self.manual_id,
            "step_count": self.step_count,
            "url_pattern": self.url_pattern,
        }
