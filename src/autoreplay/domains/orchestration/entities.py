"""Orchestration Domain Entities."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .value_objects import (
    ActionType,
    ButtonInfo,
    FieldMatch,
    FormField,
    LayerError,
    LayerId,
    MatchMethod,
)


@dataclass
class FormSection:
    """Fields that visually belong together, processed as one unit."""
    id: str
    name: str
    fields: List[FormField]
    buttons: List[ButtonInfo] = field(default_factory=list)
    y_min: float = 0.0
    y_max: float = 0.0

    @property
    def all_filled(self) -> bool:
        return bool(self.fields) and all(f.is_filled for f in self.fields)

    @classmethod
    def create(cls, index: int, name: str, fields: List[FormField]) -> FormSection:
        return cls(id=f"section-{index}", name=name, fields=list(fields))


@dataclass
class PlannedAction:
    """A match elevated to a concrete operation on an assigned layer.

    Invariants:
        - ``layer`` only ever moves forward through the layer order.
        - ``layer_history`` holds one entry per failed attempt, in order.
    """
    field: FormField
    action_type: ActionType
    value: str
    layer: LayerId
    confidence: float
    method: MatchMethod
    user_data_key: Optional[str] = None
    attempt_count: int = 0
    layer_history: List[LayerError] = field(default_factory=list)

    @classmethod
    def from_match(cls, match: FieldMatch, layer: LayerId) -> PlannedAction:
        return cls(
            field=match.field,
            action_type=ActionType.for_value(match.field.field_type, match.value),
            value=match.value,
            layer=layer,
            confidence=match.confidence,
            method=match.method,
            user_data_key=match.user_data_key,
        )

    def record_error(self, error: LayerError) -> None:
        self.layer_history.append(error)

    @property
    def last_error(self) -> Optional[LayerError]:
        return self.layer_history[-1] if self.layer_history else None
