"""Cookbook Domain Services.

CookbookExecutor replays a manual step by step against a live page and
stops at the first failing step. Failures come back as results, never as
exceptions, so the caller can decide how to fall back.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from autoreplay.domains.locator import LocatorResolver, Page
from autoreplay.domains.manual import ActionKind, ActionManual, ManualStep
from autoreplay.domains.shared import EventSink, emit_event, resolve_template

from .events import CookbookStepCompleted, CookbookStepFailed, CookbookStepStarted
from .value_objects import ExecuteAllResult, StepResult, StepValidationError

logger = logging.getLogger(__name__)


@dataclass
class CookbookExecutor:
    """Deterministic manual replay.

    Attributes:
        resolver: Locator resolver used for every element-targeting step
        event_sink: Optional async sink for step lifecycle events
        default_wait_after_ms: Settle delay after a successful step
        default_wait_ms: Duration of a ``wait`` step without a value
    """
    resolver: LocatorResolver = field(default_factory=LocatorResolver)
    event_sink: EventSink = None
    default_wait_after_ms: int = 0
    default_wait_ms: int = 1000

    @classmethod
    def from_config(cls, config: Any, event_sink: EventSink = None) -> CookbookExecutor:
        return cls(
            resolver=LocatorResolver.from_config(config),
            event_sink=event_sink,
            default_wait_after_ms=config.default_wait_after_ms,
            default_wait_ms=config.default_wait_ms,
        )

    async def execute_all(
        self,
        page: Page,
        manual: ActionManual,
        user_data: Optional[Mapping[str, str]] = None,
    ) -> ExecuteAllResult:
        data = user_data or {}
        steps = sorted(manual.steps, key=lambda s: s.order)

        for index, step in enumerate(steps):
            await emit_event(self.event_sink, CookbookStepStarted(
                manual_id=manual.id, step_index=index,
                action=step.action.value, description=step.description,
            ))

            result = await self.execute_step(page, step, data)

            if not result.success:
                error = result.error or f"Step {step.order} failed"
                await emit_event(self.event_sink, CookbookStepFailed(
                    manual_id=manual.id, step_index=index,
                    action=step.action.value, error=error,
                ))
                logger.info(
                    "Manual %s halted at step %d/%d: %s",
                    manual.id, index + 1, len(steps), error,
                )
                return ExecuteAllResult(
                    success=False,
                    steps_completed=index,
                    failed_step_index=index,
                    error=error,
                )

            await emit_event(self.event_sink, CookbookStepCompleted(
                manual_id=manual.id, step_index=index,
                action=step.action.value, strategy=result.strategy,
            ))

        return ExecuteAllResult(success=True, steps_completed=len(steps))

    async def execute_step(
        self,
        page: Page,
        step: ManualStep,
        user_data: Optional[Mapping[str, str]] = None,
    ) -> StepResult:
        data = user_data or {}
        try:
            if step.action is ActionKind.NAVIGATE:
                return await self._navigate(page, step, data)
            if step.action is ActionKind.WAIT:
                await asyncio.sleep(self._wait_duration(step) / 1000)
                return StepResult.ok()
            return await self._act_on_element(page, step, data)
        except StepValidationError as e:
            return StepResult.failed(f"Step {step.order} ({self._describe(step)}): {e}")

    # ── Step kinds ────────────────────────────────────────────────────

    async def _navigate(
        self, page: Page, step: ManualStep, data: Mapping[str, str]
    ) -> StepResult:
        url = resolve_template(step.value, data) if step.value else ""
        if not url:
            raise StepValidationError("navigate requires a value (URL)")
        try:
            await page.goto(url)
        except Exception as e:
            return StepResult.failed(f"Navigation failed on step {step.order}: {e}")
        await self._settle(step)
        return StepResult.ok()

    async def _act_on_element(
        self, page: Page, step: ManualStep, data: Mapping[str, str]
    ) -> StepResult:
        value = resolve_template(step.value, data) if step.value is not None else None
        if step.action.requires_value and not value:
            raise StepValidationError(f"{step.action.value} requires a value")

        resolved = await self.resolver.resolve(page, step.locator)
        if not resolved.found:
            return StepResult.failed(
                f"No element found for step {step.order}: {self._describe(step)}"
            )

        handle = resolved.handle
        try:
            await self._perform(handle, step.action, value)
        except Exception as e:
            return StepResult.failed(
                f'Action "{step.action.value}" failed on step {step.order} '
                f"({self._describe(step)}): {e}",
                strategy=resolved.strategy,
            )

        logger.debug("Step %d %s via %s", step.order, step.action.value, resolved.strategy)
        await self._settle(step)
        return StepResult.ok(resolved.strategy)

    @staticmethod
    async def _perform(handle: Any, action: ActionKind, value: Optional[str]) -> None:
        if action is ActionKind.CLICK:
            await handle.click()
        elif action is ActionKind.FILL:
            await handle.fill(value)
        elif action is ActionKind.SELECT:
            await handle.select_option(value)
        elif action is ActionKind.CHECK:
            await handle.check()
        elif action is ActionKind.UNCHECK:
            await handle.uncheck()
        elif action is ActionKind.HOVER:
            await handle.hover()
        elif action is ActionKind.PRESS:
            await handle.press(value)
        elif action is ActionKind.SCROLL:
            await handle.scroll_into_view_if_needed()
        else:
            raise StepValidationError(f"Unsupported action: {action.value}")

    def _wait_duration(self, step: ManualStep) -> int:
        if step.value is None or not str(step.value).strip():
            return self.default_wait_ms
        try:
            duration = int(str(step.value).strip())
        except ValueError:
            raise StepValidationError(
                f"wait requires a non-negative duration in ms, got {step.value!r}"
            ) from None
        if duration < 0:
            raise StepValidationError(
                f"wait requires a non-negative duration in ms, got {duration}"
            )
        return duration

    async def _settle(self, step: ManualStep) -> None:
        delay = step.wait_after if step.wait_after is not None else self.default_wait_after_ms
        if delay > 0:
            await asyncio.sleep(delay / 1000)

    @staticmethod
    def _describe(step: ManualStep) -> str:
        return step.description or step.action.value
