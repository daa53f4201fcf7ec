"""Execution Domain Services.

ExecutionEngine decides, per job, between replaying a stored manual and
handing the job to AI-assisted execution, and feeds every replay outcome
back into the manual's health.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from autoreplay.domains.cookbook import CookbookExecutor
from autoreplay.domains.locator import LocatorDescriptor, Page
from autoreplay.domains.manual import (
    ActionKind,
    ActionManual,
    ManualMetadata,
    ManualStep,
    ManualStore,
    is_replayable,
)
from autoreplay.domains.orchestration import (
    LayerContext,
    SectionOrchestrator,
    cookbook_actions_to_steps,
)
from autoreplay.domains.shared import EventSink, detect_platform, emit_event

from .events import ManualFound, ManualLearned, ModeSelected, ModeSwitched
from .value_objects import AutomationJob, ExecutionMode, ExecutionResult, ModeReason

logger = logging.getLogger(__name__)


@dataclass
class ExecutionEngine:
    """Replay-first job execution with AI-assisted fallback.

    The replay gate and the health arithmetic are owned by the manual
    context; the engine only reports outcomes.
    """
    manual_store: ManualStore
    cookbook_executor: CookbookExecutor
    event_sink: EventSink = None
    cost_budget: float = 1.0

    @classmethod
    def from_config(
        cls,
        config: Any,
        manual_store: ManualStore,
        cookbook_executor: CookbookExecutor,
        event_sink: EventSink = None,
    ) -> ExecutionEngine:
        return cls(
            manual_store=manual_store,
            cookbook_executor=cookbook_executor,
            event_sink=event_sink,
            cost_budget=config.cost_budget,
        )

    async def execute(self, job: AutomationJob, page: Page) -> ExecutionResult:
        platform = detect_platform(job.target_url)
        manual = await self.manual_store.lookup(job.target_url, job.job_type, platform)

        if manual is None:
            logger.info("No manual for %s (%s); using AI-assisted mode", job.target_url, job.job_type)
            return await self._select_ai(job, ModeReason.NO_MANUAL_FOUND)

        await emit_event(self.event_sink, ManualFound(
            job_id=job.job_id,
            manual_id=manual.id,
            health=manual.health,
            url_pattern=manual.url_pattern,
        ))
        if not is_replayable(manual.health):
            logger.info("Manual %s health %.2f too low; using AI-assisted mode", manual.id, manual.health)
            return await self._select_ai(job, ModeReason.HEALTH_TOO_LOW, manual.id)

        await emit_event(self.event_sink, ModeSelected(
            job_id=job.job_id, mode=ExecutionMode.COOKBOOK.value, manual_id=manual.id,
        ))
        return await self._replay(job, page, manual)

    async def execute_with_fallback(
        self, job: AutomationJob, page: Page, orchestrator: SectionOrchestrator
    ) -> ExecutionResult:
        """Run ``execute`` and, when it lands in AI-assisted mode, fill the
        form with ``orchestrator`` and save the run as a new manual."""
        first = await self.execute(job, page)
        if first.mode is ExecutionMode.COOKBOOK:
            return first

        platform = detect_platform(job.target_url)
        try:
            await page.goto(job.target_url)
        except Exception as e:
            return ExecutionResult(
                success=False,
                mode=ExecutionMode.AI_ASSISTED,
                reason=first.reason,
                manual_id=first.manual_id,
                error=f"Navigation failed: {e}",
                cookbook_steps=first.cookbook_steps,
            )

        ctx = LayerContext(
            page=page,
            user_data=dict(job.user_data or {}),
            job_id=job.job_id,
            cost_budget=self.cost_budget,
            platform=platform,
        )
        run = await orchestrator.run(ctx)

        manual_id = first.manual_id
        if run.success:
            learned = await self._learn(job, platform, run.cookbook_actions)
            if learned is not None:
                manual_id = learned.id

        return ExecutionResult(
            success=run.success,
            mode=ExecutionMode.AI_ASSISTED,
            reason=first.reason,
            manual_id=manual_id,
            error=None if run.success else ("; ".join(run.errors) or first.error),
            cookbook_steps=first.cookbook_steps,
            ai_actions=run.actions_executed,
        )

    # ── Internals ─────────────────────────────────────────────────────

    async def _replay(
        self, job: AutomationJob, page: Page, manual: ActionManual
    ) -> ExecutionResult:
        try:
            result = await self.cookbook_executor.execute_all(page, manual, job.user_data or {})
        except Exception as e:
            logger.warning("Replay of manual %s raised: %s", manual.id, e)
            return await self._fall_back(job, manual.id, ModeReason.COOKBOOK_ERROR, str(e), 0)

        if result.success:
            await self.manual_store.record_success(manual.id)
            logger.info("Manual %s replayed (%d steps)", manual.id, result.steps_completed)
            return ExecutionResult(
                success=True,
                mode=ExecutionMode.COOKBOOK,
                manual_id=manual.id,
                cookbook_steps=result.steps_completed,
            )
        return await self._fall_back(
            job, manual.id, ModeReason.COOKBOOK_FAILED, result.error, result.steps_completed
        )

    async def _fall_back(
        self,
        job: AutomationJob,
        manual_id: str,
        reason: ModeReason,
        error: Optional[str],
        steps_completed: int,
    ) -> ExecutionResult:
        await self.manual_store.record_failure(manual_id)
        await emit_event(self.event_sink, ModeSwitched(
            job_id=job.job_id,
            from_mode=ExecutionMode.COOKBOOK.value,
            to_mode=ExecutionMode.AI_ASSISTED.value,
            reason=reason.value,
            error=error,
            manual_id=manual_id,
        ))
        return ExecutionResult(
            success=False,
            mode=ExecutionMode.AI_ASSISTED,
            reason=reason,
            manual_id=manual_id,
            error=error,
            cookbook_steps=steps_completed,
        )

    async def _select_ai(
        self, job: AutomationJob, reason: ModeReason, manual_id: Optional[str] = None
    ) -> ExecutionResult:
        await emit_event(self.event_sink, ModeSelected(
            job_id=job.job_id,
            mode=ExecutionMode.AI_ASSISTED.value,
            reason=reason.value,
            manual_id=manual_id,
        ))
        return ExecutionResult(
            success=False, mode=ExecutionMode.AI_ASSISTED, reason=reason, manual_id=manual_id,
        )

    async def _learn(
        self, job: AutomationJob, platform: str, actions: Any
    ) -> Optional[ActionManual]:
        steps = cookbook_actions_to_steps(actions)
        if not steps:
            logger.info("Run for %s produced no replayable steps", job.job_id)
            return None
        steps = [
            ManualStep(
                order=0,
                action=ActionKind.NAVIGATE,
                locator=LocatorDescriptor.body(),
                value=job.target_url,
                description=f"navigate {job.target_url}",
            ),
            *(
                ManualStep(
                    order=s.order + 1, action=s.action, locator=s.locator, value=s.value,
                    description=s.description, wait_after=s.wait_after,
                    health_score=s.health_score,
                )
                for s in steps
            ),
        ]
        manual = await self.manual_store.save_from_trace(
            steps,
            ManualMetadata(url=job.target_url, task_type=job.job_type, platform=platform),
        )
        await emit_event(self.event_sink, ManualLearned(
            job_id=job.job_id,
            manual_id=manual.id,
            step_count=len(manual.steps),
            url_pattern=manual.url_pattern,
        ))
        return manual
