"""Layer capability contract and the per-run context shared by layers.

Every layer, from the structural DOM scanner to model-driven agents, is
driven through the same four calls plus a per-action cost. The
orchestrator composes layers as an ordered list; nothing inherits from a
base layer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence, Tuple, runtime_checkable

from .entities import PlannedAction
from .value_objects import (
    ActionOutcome,
    ErrorCategory,
    FieldMatch,
    FormField,
    LayerId,
    PageObservation,
    ReviewResult,
)


@dataclass
class LayerContext:
    """Mutable state for one orchestrated run.

    Attributes:
        page: Browser page the layers act on
        user_data: Flat field-name -> value map to fill in
        job_id: Identifier used in logs and events
        cost_budget: Total spend allowed for the run
        total_cost: Spend so far
        platform: Detected platform of the starting URL
    """
    page: Any
    user_data: Dict[str, str] = field(default_factory=dict)
    job_id: str = ""
    cost_budget: float = 1.0
    total_cost: float = 0.0
    platform: str = "other"

    @property
    def budget_remaining(self) -> float:
        return self.cost_budget - self.total_cost

    @property
    def budget_exhausted(self) -> bool:
        return self.budget_remaining <= 0

    def charge(self, cost: float) -> None:
        if cost > 0:
            self.total_cost += cost


@runtime_checkable
class Layer(Protocol):
    """Uniform capability interface for one execution tier."""

    layer_id: LayerId
    cost_per_action: float

    async def observe(self, ctx: LayerContext) -> PageObservation: ...

    async def process(
        self, fields: Sequence[FormField], ctx: LayerContext
    ) -> List[FieldMatch]: ...

    async def execute(
        self, actions: Sequence[PlannedAction], ctx: LayerContext
    ) -> List[ActionOutcome]: ...

    async def review(
        self,
        actions: Sequence[PlannedAction],
        results: Sequence[ActionOutcome],
        ctx: LayerContext,
    ) -> List[ReviewResult]: ...


_ERROR_MARKERS: Tuple[Tuple[ErrorCategory, Tuple[str, ...]], ...] = (
    (ErrorCategory.ELEMENT_NOT_FOUND, ("not found", "no element", "no such element")),
    (ErrorCategory.ELEMENT_NOT_VISIBLE, ("not visible", "hidden", "display: none")),
    (ErrorCategory.ELEMENT_NOT_INTERACTABLE, ("not interactable", "disabled", "readonly")),
    (ErrorCategory.TIMEOUT, ("timeout", "timed out")),
    (ErrorCategory.NAVIGATION_FAILED, ("navigation", "navigate")),
    (ErrorCategory.BUDGET_EXCEEDED, ("budget", "cost limit")),
    (ErrorCategory.BROWSER_DISCONNECTED, ("disconnect", "target closed", "crashed")),
)


def classify_error(error: Any) -> ErrorCategory:
    """Map an exception or message to an ErrorCategory by substring."""
    message = str(error).lower() if error is not None else ""
    for category, markers in _ERROR_MARKERS:
        if any(marker in message for marker in markers):
            return category
    return ErrorCategory.UNKNOWN
