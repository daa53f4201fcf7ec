"""SectionOrchestrator - multi-page form filling with layer escalation.

Each page is observed by the cheapest layer, split into sections, matched
against the user data cheapest-layer first, and filled one action at a
time. An action starts on the layer its match confidence earns and only
ever moves forward through the layer order when execution or review fails.
Every executed action is kept as a CookbookAction so the run can seed a
replayable manual afterwards.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from autoreplay.domains.shared import EventSink, emit_event, templatize

from .entities import FormSection, PlannedAction
from .events import ActionEscalated, OrchestrationFinished, PageProcessed
from .grouping import SectionGrouper
from .layers import Layer, LayerContext, classify_error
from .value_objects import (
    ActionOutcome,
    ActionType,
    BoundingBox,
    ButtonInfo,
    CookbookAction,
    CookbookDomAction,
    CookbookGuiAction,
    ErrorCategory,
    EscalationPolicy,
    FieldMatch,
    FieldType,
    FormField,
    LayerError,
    LayerId,
    MatchMethod,
    PageObservation,
    ReviewResult,
)

logger = logging.getLogger(__name__)

MAX_CONDITIONAL_ROUNDS = 3

SUBMIT_TEXT = re.compile(
    r"^(submit|submit\s+application|apply|confirm|review\s*(and|&)?\s*submit)$", re.I
)
NEXT_TEXT = re.compile(r"^(next|continue|save.*continue)$", re.I)

# Recorded for a layer click when the scan saw no matching button
NEXT_TEXT_SELECTOR = 'button:text-matches("^(next|continue)$", "i") >> nth=0'
SUBMIT_TEXT_SELECTOR = 'button:text-matches("^(submit|submit application)$", "i") >> nth=0'

# Tried in order when no layer could click the navigation button itself
NEXT_BUTTON_SELECTORS = (
    'button[data-automation-id="bottom-navigation-next-button"]:not([disabled])',
    'button[data-automation-id="pageFooterNextButton"]:not([disabled])',
    'button:text-matches("^(next|continue)$", "i"):not([disabled])',
    'button:text-matches("^save\\s*(and|&)\\s*continue$", "i"):not([disabled])',
    'input[type="submit"][value="Next" i]',
    'input[type="submit"][value="Continue" i]',
    '[role="button"]:text-matches("^(next|continue)$", "i")',
)
SUBMIT_BUTTON_SELECTORS = (
    'button[data-automation-id="bottom-navigation-next-button"]:text-matches("submit", "i")',
    'button:text-matches("^(submit|submit application)$", "i"):not([disabled])',
    'button:text-matches("^review\\s*(and|&)?\\s*submit$", "i"):not([disabled])',
    'button:text-matches("^(apply|confirm)$", "i"):not([disabled])',
    'button[type="submit"]:not([disabled])',
    'input[type="submit"]:not([disabled])',
)


@dataclass
class OrchestratorResult:
    """Outcome of one orchestrated run.

    ``stop_reason`` is one of ``submitted``, ``end_of_flow``, ``blocked``,
    ``stuck``, ``budget_exhausted``, ``max_pages`` or ``error``.
    """
    success: bool = False
    pages_processed: int = 0
    actions_executed: int = 0
    actions_verified: int = 0
    actions_failed: int = 0
    total_cost: float = 0.0
    stop_reason: str = ""
    errors: List[str] = field(default_factory=list)
    blockers: List[str] = field(default_factory=list)
    cookbook_actions: List[CookbookAction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "pages_processed": self.pages_processed,
            "actions_executed": self.actions_executed,
            "actions_verified": self.actions_verified,
            "actions_failed": self.actions_failed,
            "total_cost": self.total_cost,
            "stop_reason": self.stop_reason,
            "errors": list(self.errors),
            "blockers": list(self.blockers),
            "cookbook_actions": len(self.cookbook_actions),
        }


@dataclass
class PageResult:
    """Per-page counters returned by ``process_page``."""
    url: str = ""
    actions_executed: int = 0
    actions_verified: int = 0
    actions_failed: int = 0
    blockers: List[str] = field(default_factory=list)
    budget_exhausted: bool = False
    is_last_page: bool = False
    errors: List[str] = field(default_factory=list)

    def count(self, outcome: ActionOutcome) -> None:
        self.actions_executed += 1
        if outcome.success:
            self.actions_verified += 1
        else:
            self.actions_failed += 1
            if outcome.error:
                self.errors.append(outcome.error)


class SectionOrchestrator:
    """Drive a multi-page form through an ordered list of layers.

    Layers are arranged by ``policy.layer_order``; the first configured one
    is the cheap observer used for every (re-)observation.
    """

    def __init__(
        self,
        layers: Sequence[Layer],
        policy: Optional[EscalationPolicy] = None,
        grouper: Optional[SectionGrouper] = None,
        max_pages: int = 15,
        max_stuck_count: int = 3,
        settle_ms: int = 500,
        event_sink: EventSink = None,
    ) -> None:
        self.policy = policy or EscalationPolicy()
        if not layers:
            raise ValueError("SectionOrchestrator needs at least one layer")
        by_id: Dict[LayerId, Layer] = {}
        for layer in layers:
            if layer.layer_id not in self.policy.layer_order:
                raise ValueError(f"Layer {layer.layer_id} is not in the escalation order")
            by_id[layer.layer_id] = layer
        self._by_id = by_id
        self.layers: List[Layer] = [by_id[i] for i in self.policy.layer_order if i in by_id]
        self.grouper = grouper or SectionGrouper()
        self.max_pages = max_pages
        self.max_stuck_count = max_stuck_count
        self.settle_ms = settle_ms
        self.event_sink = event_sink
        self.cookbook_actions: List[CookbookAction] = []
        self._latest: Optional[PageObservation] = None

    @classmethod
    def from_config(
        cls, config: Any, layers: Sequence[Layer], event_sink: EventSink = None
    ) -> SectionOrchestrator:
        return cls(
            layers,
            policy=EscalationPolicy.from_config(config),
            max_pages=config.max_pages,
            max_stuck_count=config.max_stuck_count,
            event_sink=event_sink,
        )

    @property
    def observer(self) -> Layer:
        return self.layers[0]

    @property
    def most_capable(self) -> Layer:
        return self.layers[-1]

    # ── Run loop ──────────────────────────────────────────────────────

    async def run(self, ctx: LayerContext) -> OrchestratorResult:
        self.cookbook_actions = []
        self._latest = None
        result = OrchestratorResult()
        last_url: Optional[str] = None
        stuck_count = 0

        for page_index in range(self.max_pages):
            if ctx.budget_exhausted:
                result.errors.append(
                    f"Budget exhausted: spent {ctx.total_cost:.4f} of {ctx.cost_budget:.4f}"
                )
                result.stop_reason = "budget_exhausted"
                break

            url = ctx.page.url
            if url == last_url:
                stuck_count += 1
                if stuck_count >= self.max_stuck_count:
                    result.errors.append(f"Stuck on page {url} after {stuck_count} attempts")
                    result.stop_reason = "stuck"
                    break
            else:
                stuck_count = 0
            last_url = url

            try:
                page = await self.process_page(ctx)
            except Exception as e:
                logger.warning("Page %d failed for job %s: %s", page_index + 1, ctx.job_id, e)
                result.errors.append(f"Page {page_index + 1} failed: {e}")
                result.stop_reason = "error"
                break

            result.pages_processed += 1
            result.actions_executed += page.actions_executed
            result.actions_verified += page.actions_verified
            result.actions_failed += page.actions_failed
            result.errors.extend(page.errors)
            await emit_event(self.event_sink, PageProcessed(
                job_id=ctx.job_id,
                page_index=page_index,
                url=page.url,
                actions_executed=page.actions_executed,
                actions_verified=page.actions_verified,
                actions_failed=page.actions_failed,
            ))

            if page.blockers:
                result.blockers = list(page.blockers)
                result.errors.append(f"Blocked: {', '.join(page.blockers)}")
                result.stop_reason = "blocked"
                break
            if page.budget_exhausted:
                result.errors.append("Budget exhausted mid-page")
                result.stop_reason = "budget_exhausted"
                break

            if page.is_last_page:
                submitted = await self.navigate_next(ctx, submit=True)
                result.stop_reason = "submitted" if submitted else "end_of_flow"
                result.success = submitted and result.actions_failed == 0
                if not submitted:
                    result.errors.append("Submit button could not be clicked")
                break

            if not await self.navigate_next(ctx):
                logger.info("No navigation on page %d; assuming end of flow", page_index + 1)
                result.stop_reason = "end_of_flow"
                result.success = result.actions_verified > 0 and result.actions_failed == 0
                break
        else:
            result.errors.append(f"Page budget of {self.max_pages} pages exhausted")
            result.stop_reason = "max_pages"

        result.total_cost = ctx.total_cost
        result.cookbook_actions = list(self.cookbook_actions)
        if result.stop_reason in ("stuck", "budget_exhausted", "max_pages", "blocked", "error"):
            logger.warning("Run %s stopped (%s): %s", ctx.job_id, result.stop_reason, result.errors[-1:])
        await emit_event(self.event_sink, OrchestrationFinished(
            job_id=ctx.job_id,
            success=result.success,
            pages_processed=result.pages_processed,
            total_cost=result.total_cost,
            stop_reason=result.stop_reason,
            errors=list(result.errors),
        ))
        return result

    # ── Page processing ───────────────────────────────────────────────

    async def process_page(self, ctx: LayerContext) -> PageResult:
        observation = await self._observe(ctx)
        page = PageResult(url=observation.url)
        if observation.is_blocked:
            page.blockers = [b.category for b in observation.blockers]
            logger.info("Page %s blocked by %s", observation.url, page.blockers)
            return page

        seen: Set[str] = {f.fingerprint for f in observation.fields if f.visible}
        latest = observation
        sections = self.grouper.group(observation.fields, observation.buttons)
        logger.info("Page %s: %d sections", observation.url, len(sections))

        for section in sections:
            if section.all_filled:
                logger.debug("Skipping filled section %s", section.name)
                continue
            latest = await self._process_section(section, ctx, page, latest)
            if page.budget_exhausted:
                return page

            for round_index in range(MAX_CONDITIONAL_ROUNDS):
                revealed = [
                    f for f in latest.fields
                    if f.visible and not f.disabled and f.fingerprint not in seen
                ]
                if not revealed:
                    break
                seen.update(f.fingerprint for f in revealed)
                logger.debug(
                    "%d conditional field(s) after %s (round %d)",
                    len(revealed), section.name, round_index + 1,
                )
                conditional = FormSection.create(
                    len(sections) + round_index, f"{section.name} (conditional)", revealed
                )
                latest = await self._process_section(conditional, ctx, page, latest)
                if page.budget_exhausted:
                    return page

        self._latest = latest
        page.is_last_page = self.detect_last_page(latest)
        return page

    async def _process_section(
        self,
        section: FormSection,
        ctx: LayerContext,
        page: PageResult,
        latest: PageObservation,
    ) -> PageObservation:
        matches = await self.match_section(section, ctx)
        for action in self.plan_actions(matches):
            if ctx.budget_exhausted:
                page.budget_exhausted = True
                break
            outcome = await self.execute_with_escalation(action, ctx)
            page.count(outcome)
            self.record_action(action, outcome, ctx.user_data)
            latest = await self._observe(ctx)
        return latest

    async def _observe(self, ctx: LayerContext) -> PageObservation:
        observation = await self.observer.observe(ctx)
        ctx.charge(observation.cost)
        return observation

    async def match_section(
        self, section: FormSection, ctx: LayerContext
    ) -> List[FieldMatch]:
        """Match the cheap way first; the next layer only sees what is left.

        Matches from a cheaper layer are never replaced. A failing enrichment
        layer leaves the cheaper matches in place.
        """
        matched: Dict[str, FieldMatch] = {}
        remaining: List[FormField] = list(section.fields)
        for index, layer in enumerate(self.layers[:2]):
            if not remaining:
                break
            try:
                found = await layer.process(remaining, ctx)
            except Exception as e:
                if index == 0:
                    raise
                logger.warning("Matching via %s failed, keeping cheaper matches: %s", layer.layer_id.value, e)
                break
            for match in found:
                matched.setdefault(match.field.id, match)
            remaining = [f for f in remaining if f.id not in matched]
        return [matched[f.id] for f in section.fields if f.id in matched]

    def plan_actions(self, matches: Sequence[FieldMatch]) -> List[PlannedAction]:
        order = self.policy.layer_order
        cheapest = self.layers[0].layer_id
        mid = order[1] if len(order) > 1 and order[1] in self._by_id else cheapest
        expensive = order[2] if len(order) > 2 and order[2] in self._by_id else mid

        planned: List[PlannedAction] = []
        for match in matches:
            if match.confidence >= self.policy.high_confidence:
                layer = cheapest
            elif match.confidence >= self.policy.mid_confidence:
                layer = mid
            else:
                layer = expensive
            planned.append(PlannedAction.from_match(match, layer))
        return planned

    # ── Escalation ────────────────────────────────────────────────────

    async def execute_with_escalation(
        self, action: PlannedAction, ctx: LayerContext
    ) -> ActionOutcome:
        order = list(self.policy.layer_order)
        start = order.index(action.layer) if action.layer in order else 0

        for layer_id in order[start:]:
            layer = self._by_id.get(layer_id)
            if layer is None:
                continue
            if layer_id != action.layer:
                last = action.last_error
                logger.info(
                    "Escalating %r from %s to %s", action.field.label,
                    action.layer.value, layer_id.value,
                )
                await emit_event(self.event_sink, ActionEscalated(
                    job_id=ctx.job_id,
                    field_label=action.field.label,
                    from_layer=action.layer.value,
                    to_layer=layer_id.value,
                    reason=last.message if last else None,
                ))
                action.layer = layer_id

            for _ in range(self.policy.max_attempts_per_layer):
                action.attempt_count += 1
                outcome = await self._execute(layer, action, ctx)
                ctx.charge(outcome.cost)
                review = await self._review(layer, action, outcome, ctx)
                if outcome.success and review.verified:
                    return outcome

                if outcome.success:
                    message = review.reason or "Review did not verify the value"
                    category = classify_error(message)
                    if category is ErrorCategory.UNKNOWN:
                        category = ErrorCategory.VALUE_MISMATCH
                else:
                    message = outcome.error or "Execution failed"
                    category = classify_error(message)
                action.record_error(LayerError(
                    layer=layer_id, category=category, message=message,
                    attempt=action.attempt_count,
                ))
                logger.debug(
                    "Attempt %d on %s failed for %r: %s",
                    action.attempt_count, layer_id.value, action.field.label, message,
                )
                if category in self.policy.fast_escalation:
                    break

        return ActionOutcome.failure(
            action.layer, f'All layers failed for field "{action.field.label}"'
        )

    async def _execute(
        self, layer: Layer, action: PlannedAction, ctx: LayerContext
    ) -> ActionOutcome:
        try:
            results = await layer.execute([action], ctx)
        except Exception as e:
            if classify_error(e) is ErrorCategory.BROWSER_DISCONNECTED:
                raise
            return ActionOutcome.failure(layer.layer_id, str(e), cost=layer.cost_per_action)
        if not results:
            return ActionOutcome.failure(layer.layer_id, "Layer returned no result")
        return results[0]

    async def _review(
        self, layer: Layer, action: PlannedAction, outcome: ActionOutcome, ctx: LayerContext
    ) -> ReviewResult:
        try:
            reviews = await layer.review([action], [outcome], ctx)
        except Exception as e:
            logger.warning("Review on %s raised: %s", layer.layer_id.value, e)
            return ReviewResult(
                verified=False, reviewed_by=layer.layer_id, expected=action.value,
                reason=f"Review failed: {e}",
            )
        if not reviews:
            return ReviewResult(
                verified=False, reviewed_by=layer.layer_id, expected=action.value,
                reason="Layer returned no review",
            )
        return reviews[0]

    def record_action(
        self,
        action: PlannedAction,
        outcome: ActionOutcome,
        user_data: Optional[Mapping[str, str]] = None,
    ) -> CookbookAction:
        """Keep an executed action in both replayable forms.

        The value becomes ``{{key}}`` when the match named its user-data key
        or the value is one of ``user_data``'s values; otherwise the literal
        value is kept.
        """
        if action.user_data_key:
            value_template = "{{%s}}" % action.user_data_key
        else:
            value_template = templatize(action.value, user_data or {})
        bbox = outcome.bbox or action.field.bbox
        gui_action = None
        if bbox is not None:
            x, y = bbox.center
            if action.action_type is ActionType.FILL:
                gui_action = CookbookGuiAction(variant="type", x=x, y=y, content=action.value)
            else:
                gui_action = CookbookGuiAction(variant="click", x=x, y=y)
        recorded = CookbookAction(
            field_snapshot=action.field,
            dom_action=CookbookDomAction(
                selector=action.field.selector,
                value_template=value_template,
                action=action.action_type,
            ),
            executed_by=outcome.layer,
            health_score=1.0 if outcome.success else 0.0,
            gui_action=gui_action,
            user_data_key=action.user_data_key,
        )
        self.cookbook_actions.append(recorded)
        return recorded

    # ── Navigation ────────────────────────────────────────────────────

    async def navigate_next(self, ctx: LayerContext, submit: bool = False) -> bool:
        """Click Next (or Submit on the last page).

        The most capable layer gets the first try; the fixed selector list
        is the fallback. Either way the click is recorded. Returns False when
        nothing could be clicked.
        """
        label = "Submit button" if submit else "Next/Continue button"
        if await self._click_via_layer(ctx, label, submit):
            await self._settle()
            return True

        selectors = SUBMIT_BUTTON_SELECTORS if submit else NEXT_BUTTON_SELECTORS
        for selector in selectors:
            target = f"{selector} >> nth=0"
            try:
                handle = ctx.page.locator(target)
                if await handle.count() == 0:
                    continue
                await handle.click()
            except Exception as e:
                if classify_error(e) is ErrorCategory.BROWSER_DISCONNECTED:
                    raise
                logger.debug("Navigation selector %s failed: %s", selector, e)
                continue
            logger.info("Clicked %s via %s", label, selector)
            self._record_navigation(target, label, self.observer.layer_id)
            await self._settle()
            return True
        return False

    def _navigation_button(self, submit: bool) -> Optional[ButtonInfo]:
        """The observed button Next/Submit most likely refers to."""
        if self._latest is None:
            return None
        pattern = SUBMIT_TEXT if submit else NEXT_TEXT
        for button in self._latest.buttons:
            if not button.disabled and button.text and pattern.match(button.text.strip()):
                return button
        return None

    async def _click_via_layer(self, ctx: LayerContext, label: str, submit: bool = False) -> bool:
        layer = self.most_capable
        if layer.layer_id == self.observer.layer_id:
            # the cheap layer has no free-form click; use the selector list
            return False
        button = self._navigation_button(submit)
        action = PlannedAction(
            field=FormField(
                id="navigation",
                selector=button.selector if button else "",
                field_type=FieldType.UNKNOWN,
                label=label,
                bbox=button.bbox if button else None,
            ),
            action_type=ActionType.CLICK,
            value=label,
            layer=layer.layer_id,
            confidence=1.0,
            method=MatchMethod.DEFAULT,
        )
        outcome = await self._execute(layer, action, ctx)
        ctx.charge(outcome.cost)
        if not outcome.success:
            logger.debug("%s could not click %s: %s", layer.layer_id.value, label, outcome.error)
            return False
        selector = action.field.selector or (SUBMIT_TEXT_SELECTOR if submit else NEXT_TEXT_SELECTOR)
        self._record_navigation(selector, label, layer.layer_id, outcome.bbox or action.field.bbox)
        return True

    def _record_navigation(
        self, selector: str, label: str, layer: LayerId, bbox: Optional[BoundingBox] = None
    ) -> None:
        gui_action = None
        if bbox is not None:
            x, y = bbox.center
            gui_action = CookbookGuiAction(variant="click", x=x, y=y)
        self.cookbook_actions.append(CookbookAction(
            field_snapshot=FormField(
                id="navigation", selector=selector, field_type=FieldType.UNKNOWN,
                label=label, bbox=bbox,
            ),
            dom_action=CookbookDomAction(selector=selector, value_template="", action=ActionType.CLICK),
            executed_by=layer,
            health_score=1.0,
            gui_action=gui_action,
        ))

    async def _settle(self) -> None:
        if self.settle_ms > 0:
            await asyncio.sleep(self.settle_ms / 1000)

    @staticmethod
    def detect_last_page(observation: PageObservation) -> bool:
        """A page is last when it offers Submit and no Next."""
        texts = [b.text.strip() for b in observation.buttons if not b.disabled and b.text]
        has_submit = any(SUBMIT_TEXT.match(t) for t in texts)
        has_next = any(NEXT_TEXT.match(t) for t in texts)
        return has_submit and not has_next
