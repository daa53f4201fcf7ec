"""Shared Kernel - helpers shared across the replay bounded contexts."""

from autoreplay.domains.shared.kernel import (
    DEFAULT_PLATFORM,
    EventSink,
    ManualSourceLiteral,
    detect_platform,
    emit_event,
    find_template_tokens,
    resolve_template,
    templatize,
)

__all__ = [
    "DEFAULT_PLATFORM",
    "EventSink",
    "ManualSourceLiteral",
    "detect_platform",
    "emit_event",
    "find_template_tokens",
    "resolve_template",
    "templatize",
]
