"""Cookbook Domain Events.

Step lifecycle events emitted while replaying a manual. Delivery is best
effort; a failing sink never interrupts the replay.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class CookbookStepStarted:
    manual_id: str
    step_index: int
    action: str
    description: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "cookbook_step_started",
            "manual_id": self.manual_id,
            "step_index": self.step_index,
            "action": self.action,
            "description": self.description,
        }


@dataclass(frozen=True)
class CookbookStepCompleted:
    manual_id: str
    step_index: int
    action: str
    strategy: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "cookbook_step_completed",
            "manual_id": self.manual_id,
            "step_index": self.step_index,
            "action": self.action,
            "strategy": self.strategy,
        }


@dataclass(frozen=True)
class CookbookStepFailed:
    manual_id: str
    step_index: int
    action: str
    error: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "cookbook_step_failed",
            "manual_id": self.manual_id,
            "step_index": self.step_index,
            "action": self.action,
            "error": self.error,
        }
