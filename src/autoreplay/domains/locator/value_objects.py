"""Locator Context Value Objects."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional


class LocatorStrategy(str, Enum):
    """Element-finding strategies, declared in resolution priority order."""

    TEST_ID = "testId"
    ROLE = "role"
    ARIA_LABEL = "ariaLabel"
    NAME = "name"
    ID = "id"
    TEXT = "text"
    CSS = "css"
    XPATH = "xpath"


@dataclass(frozen=True)
class LocatorDescriptor:
    """Independent, optional strategies for finding one element.

    At least one strategy must be present. ``name`` doubles as the
    accessible name when ``role`` is set.
    """

    test_id: Optional[str] = None
    role: Optional[str] = None
    name: Optional[str] = None
    aria_label: Optional[str] = None
    id: Optional[str] = None
    text: Optional[str] = None
    css: Optional[str] = None
    xpath: Optional[str] = None

    # camelCase keys used by recorded payloads and persisted steps
    WIRE_NAMES: ClassVar[Dict[str, str]] = {
        "test_id": "testId",
        "aria_label": "ariaLabel",
    }

    def __post_init__(self) -> None:
        if not any(getattr(self, f.name) for f in fields(self)):
            raise ValueError("LocatorDescriptor requires at least one strategy")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LocatorDescriptor":
        """Build from a mapping, accepting snake_case or camelCase keys.

        Empty strings are treated as absent.
        """
        kwargs: Dict[str, str] = {}
        for f in fields(cls):
            wire = cls.WIRE_NAMES.get(f.name, f.name)
            value = data.get(wire, data.get(f.name))
            if isinstance(value, str) and value.strip():
                kwargs[f.name] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, str]:
        """Serialize present strategies using camelCase keys."""
        return {
            self.WIRE_NAMES.get(f.name, f.name): getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name)
        }

    def has(self, strategy: LocatorStrategy) -> bool:
        return bool(self.value_for(strategy))

    def value_for(self, strategy: LocatorStrategy) -> Optional[str]:
        attr = {
            LocatorStrategy.TEST_ID: "test_id",
            LocatorStrategy.ROLE: "role",
            LocatorStrategy.ARIA_LABEL: "aria_label",
            LocatorStrategy.NAME: "name",
            LocatorStrategy.ID: "id",
            LocatorStrategy.TEXT: "text",
            LocatorStrategy.CSS: "css",
            LocatorStrategy.XPATH: "xpath",
        }[strategy]
        return getattr(self, attr)

    @classmethod
    def body(cls) -> "LocatorDescriptor":
        """Synthetic page-level locator for steps without a target element."""
        return cls(css="body")


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of resolving a descriptor against a live page.

    Attributes:
        handle: The live locator, or None when nothing matched
        strategy: Strategy value that matched, ``"none"`` on a miss
        attempts: Number of strategies tried
    """

    handle: Any
    strategy: str
    attempts: int

    NONE: ClassVar[str] = "none"

    @property
    def found(self) -> bool:
        return self.handle is not None

    @classmethod
    def miss(cls, attempts: int) -> "ResolveResult":
        return cls(handle=None, strategy=cls.NONE, attempts=attempts)
