"""Shared Kernel - small helpers used across the replay bounded contexts.

Contents:
- ``{{token}}`` template resolution and templatizing (manual, cookbook,
  recording, orchestration)
- platform detection from a job URL (manual, execution)
- the async event sink contract and its best-effort emitter
- pydantic-normalised string types for persisted rows
"""

from __future__ import annotations

import logging
import re
from typing import Annotated, Any, Awaitable, Callable, Dict, List, Literal, Mapping, Optional

from pydantic import BeforeValidator

logger = logging.getLogger(__name__)

TEMPLATE_PATTERN = re.compile(r"\{\{(\w+)\}\}")
TEMPLATE_KEY = re.compile(r"\w+")


def resolve_template(template: str, user_data: Mapping[str, str]) -> str:
    """Replace ``{{key}}`` tokens with values from ``user_data``.

    Tokens without a matching key are left in place so a missing value is
    visible in the resolved string instead of silently becoming empty.
    """
    def _sub(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in user_data:
            return str(user_data[key])
        return match.group(0)

    return TEMPLATE_PATTERN.sub(_sub, template)


def find_template_tokens(template: str) -> List[str]:
    """Return the token names used in a template, in order of appearance."""
    return TEMPLATE_PATTERN.findall(template)


def templatize(value: str, user_data: Mapping[str, str]) -> str:
    """Swap a literal value for ``{{key}}`` when it equals a user-data value.

    Only keys that can appear in a template token are considered; anything
    else keeps the literal value.
    """
    for key, candidate in user_data.items():
        if candidate == value and TEMPLATE_KEY.fullmatch(key):
            return "{{" + key + "}}"
    return value


# =============================================================================
# Platform detection
# =============================================================================

_PLATFORM_PATTERNS = (
    ("workday", re.compile(r"\.myworkdayjobs\.com|\.wd\d+\.myworkdaysite\.com", re.I)),
    ("greenhouse", re.compile(r"(^|\.|//)(job-)?boards\.greenhouse\.io", re.I)),
    ("lever", re.compile(r"jobs\.lever\.co", re.I)),
    ("icims", re.compile(r"\.icims\.com", re.I)),
    ("taleo", re.compile(r"\.taleo\.net", re.I)),
    ("smartrecruiters", re.compile(r"jobs\.smartrecruiters\.com", re.I)),
    ("linkedin", re.compile(r"linkedin\.com/jobs", re.I)),
)

DEFAULT_PLATFORM = "other"


def detect_platform(url: str) -> str:
    """Detect the hiring platform a URL belongs to, ``"other"`` if unknown."""
    for name, pattern in _PLATFORM_PATTERNS:
        if pattern.search(url):
            return name
    return DEFAULT_PLATFORM


# =============================================================================
# Event sink
# =============================================================================

# Async callback receiving (event_type, payload). Failures never reach callers.
EventSink = Optional[Callable[[str, Dict[str, Any]], Awaitable[None]]]


async def emit_event(sink: EventSink, event: Any) -> None:
    """Deliver a domain event to the sink, swallowing sink failures."""
    if sink is None:
        return
    payload = event.to_dict()
    try:
        await sink(payload["event_type"], payload)
    except Exception as e:
        logger.warning("Event sink failed for %s: %s", payload.get("event_type"), e)


# =============================================================================
# Pydantic types
# =============================================================================

_SOURCE_ALIASES = {
    "actionbook": "imported",
    "template": "templated",
    "recording": "recorded",
}


def _normalize_source(v: Any) -> Any:
    if isinstance(v, str):
        key = v.strip().lower()
        return _SOURCE_ALIASES.get(key, key)
    return getattr(v, "value", v)


ManualSourceLiteral = Annotated[
    Literal["recorded", "imported", "templated"],
    BeforeValidator(_normalize_source),
]
