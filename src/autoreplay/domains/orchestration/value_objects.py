"""Orchestration Domain Value Objects.

Immutable types describing what a layer observed on a page, how fields
were matched to user data, and how each action attempt turned out.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


class LayerId(str, Enum):
    """Execution layers, cheapest first.

    Values:
        DOM: Structural DOM scan and direct element actions (no model cost)
        HYBRID: Model-guided element resolution (moderate cost)
        VISION: Screenshot-driven agent actions (highest cost, most capable)
    """
    DOM = "dom"
    HYBRID = "hybrid"
    VISION = "vision"


DEFAULT_LAYER_ORDER: Tuple[LayerId, ...] = (LayerId.DOM, LayerId.HYBRID, LayerId.VISION)


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    TEL = "tel"
    URL = "url"
    NUMBER = "number"
    PASSWORD = "password"
    SELECT = "select"
    SEARCHABLE_SELECT = "searchable_select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"
    FILE = "file"
    HIDDEN = "hidden"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> FieldType:
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


# Answers that mean "leave it unchecked" / "no" for checkboxes and yes/no radios
FALSY_VALUES = frozenset({"false", "no", "n", "0", "off", "unchecked", "none"})
TRUTHY_VALUES = frozenset({"true", "yes", "y", "1", "on", "checked"})


def _norm(value: Optional[str]) -> str:
    return " ".join((value or "").split()).lower()


def is_falsy(value: Optional[str]) -> bool:
    return _norm(value) in FALSY_VALUES


def option_equals(option: Optional[str], value: Optional[str]) -> bool:
    """Whether a radio option stands for ``value`` (case, spacing and yes/true tolerant)."""
    a, b = _norm(option), _norm(value)
    if not a or not b:
        return False
    if a == b:
        return True
    return (a in TRUTHY_VALUES and b in TRUTHY_VALUES) or (a in FALSY_VALUES and b in FALSY_VALUES)


class ActionType(str, Enum):
    FILL = "fill"
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    CLICK = "click"
    UPLOAD = "upload"

    @classmethod
    def for_field(cls, field_type: FieldType) -> ActionType:
        """Derive the action from a field's structural type."""
        if field_type in (FieldType.SELECT, FieldType.SEARCHABLE_SELECT):
            return cls.SELECT
        if field_type is FieldType.CHECKBOX:
            return cls.CHECK
        if field_type is FieldType.RADIO:
            return cls.CLICK
        if field_type is FieldType.FILE:
            return cls.UPLOAD
        return cls.FILL

    @classmethod
    def for_value(cls, field_type: FieldType, value: Optional[str]) -> ActionType:
        """Like ``for_field``, but a falsy answer unchecks a checkbox."""
        if field_type is FieldType.CHECKBOX and is_falsy(value):
            return cls.UNCHECK
        return cls.for_field(field_type)


class MatchMethod(str, Enum):
    AUTOMATION_ID = "automation_id"
    NAME_ATTR = "name_attr"
    LABEL_EXACT = "label_exact"
    SYNONYM = "synonym"
    LABEL_FUZZY = "label_fuzzy"
    PLACEHOLDER = "placeholder"
    MODEL_INFERENCE = "model_inference"
    DEFAULT = "default"


class ErrorCategory(str, Enum):
    ELEMENT_NOT_FOUND = "element_not_found"
    ELEMENT_NOT_VISIBLE = "element_not_visible"
    ELEMENT_NOT_INTERACTABLE = "element_not_interactable"
    VALUE_MISMATCH = "value_mismatch"
    TIMEOUT = "timeout"
    NAVIGATION_FAILED = "navigation_failed"
    BUDGET_EXCEEDED = "budget_exceeded"
    BROWSER_DISCONNECTED = "browser_disconnected"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional[BoundingBox]:
        if not data:
            return None
        return cls(
            x=float(data.get("x", 0)),
            y=float(data.get("y", 0)),
            width=float(data.get("width", 0)),
            height=float(data.get("height", 0)),
        )


@dataclass(frozen=True)
class FormField:
    """A detected form control."""
    id: str
    selector: str
    field_type: FieldType
    label: str
    required: bool = False
    visible: bool = True
    disabled: bool = False
    name: Optional[str] = None
    placeholder: Optional[str] = None
    aria_label: Optional[str] = None
    automation_id: Optional[str] = None
    xpath: Optional[str] = None
    current_value: Optional[str] = None
    options: Tuple[str, ...] = ()
    bbox: Optional[BoundingBox] = None
    parent_container: Optional[str] = None
    option_value: Optional[str] = None

    @property
    def is_filled(self) -> bool:
        return bool(self.current_value and self.current_value.strip())

    @property
    def fingerprint(self) -> str:
        """Identity of a field across re-observations of the same page."""
        raw = "|".join([self.selector, self.label, self.field_type.value])
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:12]

    def is_option_for(self, value: Optional[str]) -> bool:
        """A radio option is picked when its label or value attribute is the answer."""
        return option_equals(self.label, value) or option_equals(self.option_value, value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FormField:
        return cls(
            id=str(data.get("id") or data.get("selector", "")),
            selector=str(data.get("selector", "")),
            field_type=FieldType.parse(data.get("fieldType", data.get("field_type"))),
            label=str(data.get("label") or ""),
            required=bool(data.get("required", False)),
            visible=bool(data.get("visible", True)),
            disabled=bool(data.get("disabled", False)),
            name=data.get("name") or None,
            placeholder=data.get("placeholder") or None,
            aria_label=data.get("ariaLabel") or None,
            automation_id=data.get("automationId") or None,
            xpath=data.get("xpath") or None,
            current_value=data.get("currentValue") or None,
            options=tuple(data.get("options") or ()),
            bbox=BoundingBox.from_dict(data.get("boundingBox")),
            parent_container=data.get("parentContainer") or None,
            option_value=data.get("optionValue") or None,
        )


@dataclass(frozen=True)
class ButtonInfo:
    selector: str
    text: str
    disabled: bool = False
    button_type: Optional[str] = None
    automation_id: Optional[str] = None
    bbox: Optional[BoundingBox] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ButtonInfo:
        return cls(
            selector=str(data.get("selector", "")),
            text=str(data.get("text") or "").strip(),
            disabled=bool(data.get("disabled", False)),
            button_type=data.get("type") or None,
            automation_id=data.get("automationId") or None,
            bbox=BoundingBox.from_dict(data.get("boundingBox")),
        )


@dataclass(frozen=True)
class BlockerInfo:
    """Something that stops automated progress (CAPTCHA, login wall, ...)."""
    category: str
    description: str
    selector: Optional[str] = None


@dataclass(frozen=True)
class PageObservation:
    """What a layer saw on the current page."""
    url: str
    fields: Tuple[FormField, ...] = ()
    buttons: Tuple[ButtonInfo, ...] = ()
    blockers: Tuple[BlockerInfo, ...] = ()
    observed_by: Optional[LayerId] = None
    cost: float = 0.0

    @property
    def is_blocked(self) -> bool:
        return bool(self.blockers)


@dataclass(frozen=True)
class FieldMatch:
    """Binding of one field to a candidate value."""
    field: FormField
    value: str
    confidence: float
    method: MatchMethod
    user_data_key: Optional[str] = None
    matched_by: Optional[LayerId] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Match confidence must be within 0..1, got {self.confidence}")


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one layer executing one action."""
    success: bool
    layer: LayerId
    value_applied: Optional[str] = None
    error: Optional[str] = None
    cost: float = 0.0
    bbox: Optional[BoundingBox] = None

    @classmethod
    def failure(cls, layer: LayerId, error: str, cost: float = 0.0) -> ActionOutcome:
        return cls(success=False, layer=layer, error=error, cost=cost)


@dataclass(frozen=True)
class ReviewResult:
    """Verification of an executed action, done by the layer that executed it."""
    verified: bool
    reviewed_by: LayerId
    expected: Optional[str] = None
    actual: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class LayerError:
    """One failed attempt in an action's escalation history."""
    layer: LayerId
    category: ErrorCategory
    message: str
    attempt: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer": self.layer.value,
            "category": self.category.value,
            "message": self.message,
            "attempt": self.attempt,
        }


@dataclass(frozen=True)
class EscalationPolicy:
    """Static rules for assigning and escalating actions across layers.

    Invariants:
        - layer_order is non-empty and has no duplicates
        - mid_confidence <= high_confidence
    """
    layer_order: Tuple[LayerId, ...] = DEFAULT_LAYER_ORDER
    max_attempts_per_layer: int = 2
    high_confidence: float = 0.8
    mid_confidence: float = 0.6
    fast_escalation: FrozenSet[ErrorCategory] = frozenset({
        ErrorCategory.ELEMENT_NOT_FOUND,
        ErrorCategory.ELEMENT_NOT_VISIBLE,
    })

    def __post_init__(self) -> None:
        if not self.layer_order:
            raise ValueError("EscalationPolicy.layer_order cannot be empty")
        if len(set(self.layer_order)) != len(self.layer_order):
            raise ValueError("EscalationPolicy.layer_order has duplicate layers")
        if self.max_attempts_per_layer < 1:
            raise ValueError("max_attempts_per_layer must be at least 1")
        if self.mid_confidence > self.high_confidence:
            raise ValueError("mid_confidence cannot exceed high_confidence")

    @classmethod
    def from_config(cls, config: Any) -> EscalationPolicy:
        return cls(max_attempts_per_layer=config.max_attempts_per_layer)


@dataclass(frozen=True)
class CookbookDomAction:
    selector: str
    value_template: str
    action: ActionType


@dataclass(frozen=True)
class CookbookGuiAction:
    variant: str
    x: float
    y: float
    content: Optional[str] = None


@dataclass(frozen=True)
class CookbookAction:
    """An executed orchestrator action in a replayable form.

    Carries a DOM-selector form and, when the element had a known position,
    a coordinate-based fallback form.
    """
    field_snapshot: FormField
    dom_action: CookbookDomAction
    executed_by: LayerId
    health_score: float
    gui_action: Optional[CookbookGuiAction] = None
    user_data_key: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.health_score > 0
