"""Pytest fixtures for domain tests.

These fixtures support testing the replay bounded contexts:
- Locator Context (fake browser page and locators)
- Manual Context (in-memory repository and store)
- Cookbook / Execution Contexts (sample steps and manuals)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from autoreplay.domains.locator import LocatorDescriptor
from autoreplay.domains.manual import (
    ActionKind,
    InMemoryManualRepository,
    ManualStep,
    ManualStore,
)

LOCATOR_ACTIONS = (
    "click",
    "fill",
    "select_option",
    "check",
    "uncheck",
    "hover",
    "press",
    "scroll_into_view_if_needed",
    "set_input_files",
)

LOCATOR_FACTORIES = ("get_by_test_id", "get_by_role", "get_by_label", "get_by_text", "locator")


def make_locator(
    count: int = 1,
    bbox: Optional[Dict[str, float]] = None,
    value: Any = "",
) -> MagicMock:
    """A Playwright-like locator whose async methods are AsyncMocks."""
    loc = MagicMock()
    loc.count = AsyncMock(return_value=count)
    for name in LOCATOR_ACTIONS:
        setattr(loc, name, AsyncMock(return_value=None))
    loc.bounding_box = AsyncMock(
        return_value=bbox if bbox is not None else {"x": 10, "y": 20, "width": 100, "height": 30}
    )
    loc.evaluate = AsyncMock(return_value=value)
    return loc


def make_page(url: str = "https://example.com/apply", locator: Optional[MagicMock] = None) -> MagicMock:
    """A page whose locator factories all return ``locator``."""
    page = MagicMock()
    page.url = url
    page.goto = AsyncMock(return_value=None)
    page.evaluate = AsyncMock(return_value=None)
    default = locator if locator is not None else make_locator()
    for name in LOCATOR_FACTORIES:
        getattr(page, name).return_value = default
    return page


# =============================================================================
# Browser Fixtures
# =============================================================================


@pytest.fixture
def locator_factory():
    return make_locator


@pytest.fixture
def page_factory():
    return make_page


@pytest.fixture
def fake_locator() -> MagicMock:
    return make_locator()


@pytest.fixture
def fake_page(fake_locator: MagicMock) -> MagicMock:
    return make_page(locator=fake_locator)


# =============================================================================
# Manual Fixtures
# =============================================================================


@pytest.fixture
def user_data() -> Dict[str, str]:
    return {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "phone": "555-010-2030",
    }


@pytest.fixture
def sample_steps() -> List[ManualStep]:
    """Two-step cookbook: type the email, then submit."""
    return [
        ManualStep(
            order=0,
            action=ActionKind.FILL,
            locator=LocatorDescriptor(test_id="email-input"),
            value="{{email}}",
            description="Enter email",
        ),
        ManualStep(
            order=1,
            action=ActionKind.CLICK,
            locator=LocatorDescriptor(role="button", name="Submit"),
            description="Submit form",
        ),
    ]


@pytest.fixture
def repository() -> InMemoryManualRepository:
    return InMemoryManualRepository()


@pytest.fixture
def manual_store(repository: InMemoryManualRepository) -> ManualStore:
    return ManualStore(repository=repository)
