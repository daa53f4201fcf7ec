"""Recording Bounded Context.

Turns a live stream of interaction events into an ordered, templatized
manual step list.
"""

from .services import ELEMENT_AT_POINT_SCRIPT, EventBus, TraceRecorder, templatize
from .value_objects import (
    ClickEvent,
    EventVariants,
    IgnoredEvent,
    InteractionEvent,
    KeyPressEvent,
    NavigateEvent,
    ScrollEvent,
    TypeTextEvent,
    WaitEvent,
    parse_event,
)

__all__ = [
    "ELEMENT_AT_POINT_SCRIPT",
    "ClickEvent",
    "EventBus",
    "EventVariants",
    "IgnoredEvent",
    "InteractionEvent",
    "KeyPressEvent",
    "NavigateEvent",
    "ScrollEvent",
    "TraceRecorder",
    "TypeTextEvent",
    "WaitEvent",
    "parse_event",
    "templatize",
]
