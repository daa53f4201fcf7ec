"""Recording Domain Value Objects.

Interaction events arrive as loosely-typed payloads tagged by a
``variant`` string. ``parse_event`` maps every payload onto exactly one of
the frozen event types below; anything unrecognised becomes an
``IgnoredEvent`` instead of an error.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, FrozenSet, Mapping, Optional, Union


@dataclass(frozen=True)
class ClickEvent:
    """Pointer click at viewport coordinates (single, double or right)."""
    variant: str
    x: float
    y: float


@dataclass(frozen=True)
class TypeTextEvent:
    """Typed text. Coordinates are only present on legacy payloads."""
    variant: str
    content: str
    x: Optional[float] = None
    y: Optional[float] = None

    @property
    def has_point(self) -> bool:
        return self.x is not None and self.y is not None


@dataclass(frozen=True)
class ScrollEvent:
    variant: str
    x: float
    y: float
    delta_x: float = 0.0
    delta_y: float = 0.0


@dataclass(frozen=True)
class NavigateEvent:
    variant: str
    url: str


@dataclass(frozen=True)
class KeyPressEvent:
    """Single key press; ``key`` is the canonical key name (Enter, Tab, ...)."""
    variant: str
    key: str


@dataclass(frozen=True)
class WaitEvent:
    variant: str
    duration_ms: Optional[int] = None


@dataclass(frozen=True)
class IgnoredEvent:
    variant: str
    reason: str = "ignored"


InteractionEvent = Union[
    ClickEvent, TypeTextEvent, ScrollEvent, NavigateEvent,
    KeyPressEvent, WaitEvent, IgnoredEvent,
]


class EventVariants:
    """Known variant tags grouped by the event type they map to."""

    CLICK: ClassVar[FrozenSet[str]] = frozenset({
        "click", "mouse:click", "mouse:double_click", "mouse:right_click",
    })
    TYPE: ClassVar[FrozenSet[str]] = frozenset({"type", "keyboard:type"})
    SCROLL: ClassVar[FrozenSet[str]] = frozenset({"scroll", "mouse:scroll"})
    NAVIGATE: ClassVar[FrozenSet[str]] = frozenset({"load", "browser:nav"})
    KEYS: ClassVar[Dict[str, str]] = {
        "keyboard:enter": "Enter",
        "keyboard:tab": "Tab",
        "keyboard:backspace": "Backspace",
        "keyboard:escape": "Escape",
    }
    WAIT: ClassVar[FrozenSet[str]] = frozenset({"wait"})
    IGNORED: ClassVar[FrozenSet[str]] = frozenset({
        "mouse:drag", "browser:nav:back", "browser:nav:forward", "task:done",
    })
    IGNORED_PREFIXES: ClassVar[tuple] = ("browser:tab:",)


def _number(payload: Mapping[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_event(payload: Any) -> InteractionEvent:
    """Map a raw event payload onto the tagged event union."""
    if not isinstance(payload, Mapping):
        return IgnoredEvent(variant=str(payload), reason="malformed payload")
    variant = str(payload.get("variant", ""))

    if variant in EventVariants.IGNORED or variant.startswith(EventVariants.IGNORED_PREFIXES):
        return IgnoredEvent(variant=variant)

    x, y = _number(payload, "x"), _number(payload, "y")

    if variant in EventVariants.CLICK:
        if x is None or y is None:
            return IgnoredEvent(variant=variant, reason="missing coordinates")
        return ClickEvent(variant=variant, x=x, y=y)

    if variant in EventVariants.TYPE:
        content = payload.get("content")
        if not isinstance(content, str):
            return IgnoredEvent(variant=variant, reason="missing content")
        return TypeTextEvent(variant=variant, content=content, x=x, y=y)

    if variant in EventVariants.SCROLL:
        if x is None or y is None:
            return IgnoredEvent(variant=variant, reason="missing coordinates")
        return ScrollEvent(
            variant=variant, x=x, y=y,
            delta_x=_number(payload, "deltaX") or 0.0,
            delta_y=_number(payload, "deltaY") or 0.0,
        )

    if variant in EventVariants.NAVIGATE:
        url = payload.get("url")
        if not isinstance(url, str) or not url:
            return IgnoredEvent(variant=variant, reason="missing url")
        return NavigateEvent(variant=variant, url=url)

    if variant in EventVariants.KEYS:
        return KeyPressEvent(variant=variant, key=EventVariants.KEYS[variant])

    if variant in EventVariants.WAIT:
        duration = _number(payload, "ms")
        if duration is None and _number(payload, "seconds") is not None:
            duration = _number(payload, "seconds") * 1000
        return WaitEvent(
            variant=variant,
            duration_ms=int(duration) if duration is not None and duration >= 0 else None,
        )

    return IgnoredEvent(variant=variant, reason="unknown variant")
