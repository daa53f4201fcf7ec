"""Locator Context Services.

The resolver talks to the browser driver only through the ``Page`` and
``Locator`` protocols below, which mirror the async Playwright page API.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from autoreplay.domains.locator.value_objects import (
    LocatorDescriptor,
    LocatorStrategy,
    ResolveResult,
)

logger = logging.getLogger(__name__)

STALE_MARKERS = ("stale", "detached", "not attached")


@runtime_checkable
class Locator(Protocol):
    """A lazily-evaluated element query."""

    async def count(self) -> int: ...
    async def click(self, **kwargs: Any) -> None: ...
    async def fill(self, value: str, **kwargs: Any) -> None: ...
    async def select_option(self, value: Any, **kwargs: Any) -> Any: ...
    async def check(self, **kwargs: Any) -> None: ...
    async def uncheck(self, **kwargs: Any) -> None: ...
    async def hover(self, **kwargs: Any) -> None: ...
    async def press(self, key: str, **kwargs: Any) -> None: ...
    async def scroll_into_view_if_needed(self, **kwargs: Any) -> None: ...
    async def set_input_files(self, files: Any, **kwargs: Any) -> None: ...
    async def bounding_box(self, **kwargs: Any) -> Optional[Dict[str, float]]: ...
    async def evaluate(self, expression: str, arg: Any = None, **kwargs: Any) -> Any: ...

    @property
    def first(self) -> "Locator": ...


@runtime_checkable
class Page(Protocol):
    """The browser page surface consumed by the replay core."""

    @property
    def url(self) -> str: ...

    async def goto(self, url: str, **kwargs: Any) -> Any: ...
    async def evaluate(self, expression: str, arg: Any = None) -> Any: ...
    def get_by_test_id(self, test_id: str) -> Locator: ...
    def get_by_role(self, role: Any, **kwargs: Any) -> Locator: ...
    def get_by_label(self, text: str, **kwargs: Any) -> Locator: ...
    def get_by_text(self, text: str, **kwargs: Any) -> Locator: ...
    def locator(self, selector: str, **kwargs: Any) -> Locator: ...


def is_stale_error(error: BaseException) -> bool:
    """Return True when the driver error means the element went away mid-query."""
    message = str(error).lower()
    return any(marker in message for marker in STALE_MARKERS)


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


@dataclass
class LocatorResolver:
    """Resolve a LocatorDescriptor to a live element.

    Strategies are tried in ``STRATEGY_ORDER``; the first one whose query
    matches at least one element wins, narrowed to its first element when
    the query is ambiguous. A stale-element error retries the
    same strategy once after ``stale_retry_delay_ms``; any other error
    (including a query timeout) moves straight on to the next strategy.
    """

    timeout_ms: int = 3000
    stale_retry_delay_ms: int = 100
    max_stale_retries: int = 1

    STRATEGY_ORDER = (
        LocatorStrategy.TEST_ID,
        LocatorStrategy.ROLE,
        LocatorStrategy.ARIA_LABEL,
        LocatorStrategy.NAME,
        LocatorStrategy.ID,
        LocatorStrategy.TEXT,
        LocatorStrategy.CSS,
        LocatorStrategy.XPATH,
    )

    @classmethod
    def from_config(cls, config: Any) -> "LocatorResolver":
        return cls(
            timeout_ms=config.resolver_timeout_ms,
            stale_retry_delay_ms=config.stale_retry_delay_ms,
        )

    async def resolve(self, page: Page, descriptor: LocatorDescriptor) -> ResolveResult:
        attempts = 0
        for strategy in self.STRATEGY_ORDER:
            if not self._applies(strategy, descriptor):
                continue
            attempts += 1
            handle = await self._try_strategy(page, strategy, descriptor)
            if handle is not None:
                logger.debug("Resolved via %s after %d attempt(s)", strategy.value, attempts)
                return ResolveResult(handle=handle, strategy=strategy.value, attempts=attempts)
        logger.debug("No strategy matched for %s", descriptor.to_dict())
        return ResolveResult.miss(attempts)

    @staticmethod
    def _applies(strategy: LocatorStrategy, descriptor: LocatorDescriptor) -> bool:
        if not descriptor.has(strategy):
            return False
        # name is the role's accessible name when a role is present
        if strategy is LocatorStrategy.NAME and descriptor.role:
            return False
        return True

    async def _try_strategy(
        self, page: Page, strategy: LocatorStrategy, descriptor: LocatorDescriptor
    ) -> Optional[Locator]:
        stale_retries = 0
        while True:
            try:
                handle = self.build_locator(page, strategy, descriptor)
                count = await asyncio.wait_for(handle.count(), timeout=self.timeout_ms / 1000)
                if count > 1:
                    # actions on a driver locator require a single element
                    return handle.first
                return handle if count == 1 else None
            except asyncio.TimeoutError:
                logger.debug("Strategy %s timed out after %dms", strategy.value, self.timeout_ms)
                return None
            except Exception as e:
                if is_stale_error(e) and stale_retries < self.max_stale_retries:
                    stale_retries += 1
                    await asyncio.sleep(self.stale_retry_delay_ms / 1000)
                    continue
                logger.debug("Strategy %s failed: %s", strategy.value, e)
                return None

    @staticmethod
    def build_locator(
        page: Page, strategy: LocatorStrategy, descriptor: LocatorDescriptor
    ) -> Locator:
        """Create the driver query for one strategy."""
        value = descriptor.value_for(strategy) or ""
        if strategy is LocatorStrategy.TEST_ID:
            return page.get_by_test_id(value)
        if strategy is LocatorStrategy.ROLE:
            if descriptor.name:
                return page.get_by_role(value, name=descriptor.name)
            return page.get_by_role(value)
        if strategy is LocatorStrategy.ARIA_LABEL:
            return page.get_by_label(value)
        if strategy is LocatorStrategy.NAME:
            return page.locator(f'[name="{_quote(value)}"]')
        if strategy is LocatorStrategy.ID:
            return page.locator(f'[id="{_quote(value)}"]')
        if strategy is LocatorStrategy.TEXT:
            return page.get_by_text(value, exact=True)
        if strategy is LocatorStrategy.CSS:
            return page.locator(value)
        if value.startswith("xpath="):
            return page.locator(value)
        return page.locator(f"xpath={value}")
