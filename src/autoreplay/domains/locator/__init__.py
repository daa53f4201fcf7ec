"""Locator Bounded Context.

Resolves abstract multi-strategy element descriptors to live element
handles through a fixed strategy priority with bounded stale retry.
"""

from autoreplay.domains.locator.services import (
    Locator,
    LocatorResolver,
    Page,
    is_stale_error,
)
from autoreplay.domains.locator.value_objects import (
    LocatorDescriptor,
    LocatorStrategy,
    ResolveResult,
)

__all__ = [
    "Locator",
    "LocatorDescriptor",
    "LocatorResolver",
    "LocatorStrategy",
    "Page",
    "ResolveResult",
    "is_stale_error",
]
