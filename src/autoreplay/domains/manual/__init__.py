"""Manual Bounded Context.

Persists recorded action sequences ("manuals") keyed by URL pattern, task
and platform, and keeps a health score that decays on failed replays and
recovers on successful ones.
"""

from .entities import ActionManual
from .repository import (
    InMemoryManualRepository,
    JsonFileManualRepository,
    ManualNotFoundError,
    ManualRepository,
    ManualRow,
)
from .services import ManualStore
from .url_patterns import url_matches_pattern, url_to_pattern
from .value_objects import (
    FAILURE_PENALTY,
    INITIAL_HEALTH,
    REPLAY_HEALTH_THRESHOLD,
    SEVERE_FAILURE_PENALTY,
    SUCCESS_BONUS,
    ActionKind,
    HealthOutcome,
    ManualMetadata,
    ManualSource,
    ManualStep,
    compute_health,
    is_replayable,
)

__all__ = [
    "FAILURE_PENALTY",
    "INITIAL_HEALTH",
    "REPLAY_HEALTH_THRESHOLD",
    "SEVERE_FAILURE_PENALTY",
    "SUCCESS_BONUS",
    "ActionKind",
    "ActionManual",
    "HealthOutcome",
    "InMemoryManualRepository",
    "JsonFileManualRepository",
    "ManualMetadata",
    "ManualNotFoundError",
    "ManualRepository",
    "ManualRow",
    "ManualSource",
    "ManualStep",
    "ManualStore",
    "compute_health",
    "is_replayable",
    "url_matches_pattern",
    "url_to_pattern",
]
