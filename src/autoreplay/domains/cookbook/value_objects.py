"""Cookbook Domain Value Objects."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


class StepValidationError(ValueError):
    """A step cannot run because its inputs are invalid."""


@dataclass(frozen=True)
class StepResult:
    """Outcome of replaying one step."""
    success: bool
    strategy: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, strategy: Optional[str] = None) -> StepResult:
        return cls(success=True, strategy=strategy)

    @classmethod
    def failed(cls, error: str, strategy: Optional[str] = None) -> StepResult:
        return cls(success=False, strategy=strategy, error=error)


@dataclass(frozen=True)
class ExecuteAllResult:
    """Outcome of replaying a whole manual.

    ``failed_step_index`` is the position in the sorted step list, which
    always equals ``steps_completed`` on failure.
    """
    success: bool
    steps_completed: int
    failed_step_index: Optional[int] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.steps_completed < 0:
            raise ValueError(f"steps_completed must be non-negative, got {self.steps_completed}")
        if self.success and self.failed_step_index is not None:
            raise ValueError("A successful replay cannot have a failed step")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "steps_completed": self.steps_completed,
        }
        if self.failed_step_index is not None:
            data["failed_step_index"] = self.failed_step_index
        if self.error:
            data["error"] = self.error
        return data
