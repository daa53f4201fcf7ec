"""Orchestration Domain Events."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ActionEscalated:
    """Emitted when an action moves to a more capable layer.

    Consumers:
    - Cost analytics (how often each tier is needed)
    - Manual learning (which fields the cheap layer cannot handle)
    """
    job_id: str
    field_label: str
    from_layer: str
    to_layer: str
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "action_escalated",
            "job_id": self.job_id,
            "field_label": self.field_label,
            "from_layer": self.from_layer,
            "to_layer": self.to_layer,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class PageProcessed:
    job_id: str
    page_index: int
    url: str
    actions_executed: int
    actions_verified: int
    actions_failed: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "page_processed",
            "job_id": self.job_id,
            "page_index": self.page_index,
            "url": self.url,
            "actions_executed": self.actions_executed,
            "actions_verified": self.actions_verified,
            "actions_failed": self.actions_failed,
        }


@dataclass(frozen=True)
class OrchestrationFinished:
    job_id: str
    success: bool
    pages_processed: int
    total_cost: float
    stop_reason: str
    errors: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "orchestration_finished",
            "job_id": self.job_id,
            "success": self.success,
            "pages_processed": self.pages_processed,
            "total_cost": self.total_cost,
            "stop_reason": self.stop_reason,
            "errors": list(self.errors),
        }
