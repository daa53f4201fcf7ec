"""Execution Domain Value Objects."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ExecutionMode(str, Enum):
    """How a job is (or ends up being) executed.

    Values:
        COOKBOOK: Deterministic replay of a stored manual
        AI_ASSISTED: Layered, AI-assisted execution
    """
    COOKBOOK = "cookbook"
    AI_ASSISTED = "ai-assisted"


class ModeReason(str, Enum):
    """Why the engine chose or switched to a mode."""
    NO_MANUAL_FOUND = "no_manual_found"
    HEALTH_TOO_LOW = "health_too_low"
    COOKBOOK_FAILED = "cookbook_failed"
    COOKBOOK_ERROR = "cookbook_error"


@dataclass(frozen=True)
class AutomationJob:
    """A unit of work: one task type against one target URL."""
    job_type: str
    target_url: str
    user_data: Optional[Dict[str, str]] = None
    job_id: str = field(default_factory=lambda: f"job_{uuid.uuid4().hex[:12]}")

    def __post_init__(self) -> None:
        if not self.job_type:
            raise ValueError("AutomationJob.job_type cannot be empty")
        if not self.target_url:
            raise ValueError("AutomationJob.target_url cannot be empty")


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one job execution.

    ``cookbook_steps`` counts replayed steps completed; ``ai_actions``
    counts actions executed on the AI-assisted path.
    """
    success: bool
    mode: ExecutionMode
    reason: Optional[ModeReason] = None
    manual_id: Optional[str] = None
    error: Optional[str] = None
    cookbook_steps: int = 0
    ai_actions: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "mode": self.mode.value,
            "reason": self.reason.value if self.reason else None,
            "manual_id": self.manual_id,
            "error": self.error,
            "cookbook_steps": self.cookbook_steps,
            "ai_actions": self.ai_actions,
        }
