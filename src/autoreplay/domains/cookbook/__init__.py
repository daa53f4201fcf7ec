"""Cookbook Bounded Context.

Deterministic replay of a manual against a live page, halting at the
first failing step.
"""

from .events import CookbookStepCompleted, CookbookStepFailed, CookbookStepStarted
from .services import CookbookExecutor
from .value_objects import ExecuteAllResult, StepResult, StepValidationError

__all__ = [
    "CookbookExecutor",
    "CookbookStepCompleted",
    "CookbookStepFailed",
    "CookbookStepStarted",
    "ExecuteAllResult",
    "StepResult",
    "StepValidationError",
]
