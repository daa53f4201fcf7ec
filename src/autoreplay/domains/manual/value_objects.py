"""Manual Context Value Objects.

Health arithmetic lives here and only here: the replay threshold, the
success bonus and both failure penalties are defined once and reached
through ``compute_health`` / ``is_replayable``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional

from autoreplay.domains.locator import LocatorDescriptor


class ActionKind(str, Enum):
    """Atomic step kinds a manual can replay."""

    CLICK = "click"
    FILL = "fill"
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    HOVER = "hover"
    PRESS = "press"
    NAVIGATE = "navigate"
    WAIT = "wait"
    SCROLL = "scroll"

    @property
    def requires_value(self) -> bool:
        return self in (ActionKind.FILL, ActionKind.SELECT, ActionKind.PRESS)


class ManualSource(str, Enum):
    """Provenance of a manual."""

    RECORDED = "recorded"
    IMPORTED = "imported"
    TEMPLATED = "templated"

    @property
    def initial_health(self) -> int:
        return INITIAL_HEALTH[self]


class HealthOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


# Health scale is 0..100 in storage, 0..1 in the domain.
MAX_HEALTH = 100
MIN_HEALTH = 0
SUCCESS_BONUS = 2
FAILURE_PENALTY = 5
SEVERE_FAILURE_PENALTY = 15
SEVERE_FAILURE_AFTER = 5
REPLAY_HEALTH_THRESHOLD = 0.3

INITIAL_HEALTH: Dict[ManualSource, int] = {
    ManualSource.RECORDED: 100,
    ManualSource.IMPORTED: 80,
    ManualSource.TEMPLATED: 100,
}


def compute_health(
    current: float, prior_failure_count: int, outcome: HealthOutcome | str
) -> float:
    """Return the new 0..100 health after one execution outcome.

    A failure is penalised harder once the failure counter (including
    this failure) exceeds ``SEVERE_FAILURE_AFTER``.
    """
    outcome = HealthOutcome(outcome)
    if outcome is HealthOutcome.SUCCESS:
        return min(MAX_HEALTH, current + SUCCESS_BONUS)
    failures = prior_failure_count + 1
    penalty = SEVERE_FAILURE_PENALTY if failures > SEVERE_FAILURE_AFTER else FAILURE_PENALTY
    return max(MIN_HEALTH, current - penalty)


def is_replayable(health: float) -> bool:
    """True when a 0..1 health is strictly above the replay threshold."""
    return health > REPLAY_HEALTH_THRESHOLD


@dataclass(frozen=True)
class ManualStep:
    """One atomic replayable action.

    ``value`` may contain ``{{token}}`` placeholders; ``wait_after`` is a
    per-step settle delay in milliseconds overriding the executor default.
    """

    order: int
    action: ActionKind
    locator: LocatorDescriptor
    value: Optional[str] = None
    description: Optional[str] = None
    wait_after: Optional[int] = None
    health_score: float = 1.0

    def __post_init__(self) -> None:
        if self.order < 0:
            raise ValueError(f"Step order must be non-negative, got {self.order}")
        if not isinstance(self.action, ActionKind):
            object.__setattr__(self, "action", ActionKind(self.action))
        if not 0.0 <= self.health_score <= 1.0:
            raise ValueError(f"Step health must be within 0..1, got {self.health_score}")
        if self.wait_after is not None and self.wait_after < 0:
            raise ValueError(f"wait_after must be non-negative, got {self.wait_after}")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "order": self.order,
            "action": self.action.value,
            "locator": self.locator.to_dict(),
            "health_score": self.health_score,
        }
        if self.value is not None:
            data["value"] = self.value
        if self.description is not None:
            data["description"] = self.description
        if self.wait_after is not None:
            data["wait_after"] = self.wait_after
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ManualStep":
        wait_after = data.get("wait_after", data.get("waitAfter"))
        return cls(
            order=int(data["order"]),
            action=ActionKind(data["action"]),
            locator=LocatorDescriptor.from_dict(data.get("locator") or {}),
            value=data.get("value"),
            description=data.get("description"),
            wait_after=int(wait_after) if wait_after is not None else None,
            health_score=float(data.get("health_score", data.get("healthScore", 1.0))),
        )


@dataclass(frozen=True)
class ManualMetadata:
    """Where a saved manual applies."""

    url: str
    task_type: str
    platform: Optional[str] = None
    url_pattern: Optional[str] = None

    WILDCARD_PATTERN: ClassVar[str] = "*"

    def __post_init__(self) -> None:
        if not self.task_type or not self.task_type.strip():
            raise ValueError("ManualMetadata.task_type cannot be empty")
