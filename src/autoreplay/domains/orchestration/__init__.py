"""Orchestration Bounded Context.

Fills multi-page forms section by section through an ordered list of
layers, escalating an action to a more capable layer only when the
cheaper one fails to execute or verify it.
"""

from .entities import FormSection, PlannedAction
from .events import ActionEscalated, OrchestrationFinished, PageProcessed
from .grouping import SectionGrouper
from .layers import Layer, LayerContext, classify_error
from .matching import FieldMatcher
from .orchestrator import OrchestratorResult, PageResult, SectionOrchestrator
from .structural import StructuralLayer, values_match
from .trace import cookbook_actions_to_steps
from .value_objects import (
    DEFAULT_LAYER_ORDER,
    ActionOutcome,
    ActionType,
    BlockerInfo,
    BoundingBox,
    ButtonInfo,
    CookbookAction,
    CookbookDomAction,
    CookbookGuiAction,
    ErrorCategory,
    EscalationPolicy,
    FieldMatch,
    FieldType,
    FormField,
    LayerError,
    LayerId,
    MatchMethod,
    PageObservation,
    ReviewResult,
    is_falsy,
    option_equals,
)

__all__ = [
    "DEFAULT_LAYER_ORDER",
    "ActionEscalated",
    "ActionOutcome",
    "ActionType",
    "BlockerInfo",
    "BoundingBox",
    "ButtonInfo",
    "CookbookAction",
    "CookbookDomAction",
    "CookbookGuiAction",
    "ErrorCategory",
    "EscalationPolicy",
    "FieldMatch",
    "FieldMatcher",
    "FieldType",
    "FormField",
    "FormSection",
    "Layer",
    "LayerContext",
    "LayerError",
    "LayerId",
    "MatchMethod",
    "OrchestrationFinished",
    "OrchestratorResult",
    "PageObservation",
    "PageProcessed",
    "PageResult",
    "PlannedAction",
    "ReviewResult",
    "SectionGrouper",
    "SectionOrchestrator",
    "StructuralLayer",
    "classify_error",
    "cookbook_actions_to_steps",
    "is_falsy",
    "option_equals",
    "values_match",
]
