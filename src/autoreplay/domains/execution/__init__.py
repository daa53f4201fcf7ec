"""Execution Bounded Context.

Chooses between cookbook replay and AI-assisted execution for a job and
closes the loop by saving successful AI-assisted runs as manuals.
"""

from .events import ManualFound, ManualLearned, ModeSelected, ModeSwitched
from .services import ExecutionEngine
from .value_objects import AutomationJob, ExecutionMode, ExecutionResult, ModeReason

__all__ = [
    "AutomationJob",
    "ExecutionEngine",
    "ExecutionMode",
    "ExecutionResult",
    "ManualFound",
    "ManualLearned",
    "ModeReason",
    "ModeSelected",
    "ModeSwitched",
]
