"""StructuralLayer - the zero-cost DOM layer.

Observes the page with a single in-page scan, matches fields with
FieldMatcher, acts through driver locators and verifies by reading the
field back.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .entities import PlannedAction
from .layers import LayerContext
from .matching import FieldMatcher
from .value_objects import (
    ActionOutcome,
    ActionType,
    BlockerInfo,
    BoundingBox,
    ButtonInfo,
    FieldMatch,
    FieldType,
    FormField,
    LayerId,
    PageObservation,
    ReviewResult,
)

logger = logging.getLogger(__name__)

PAGE_SCAN_SCRIPT = """
() => {
  const esc = (v) => (window.CSS && CSS.escape) ? CSS.escape(v) : v;
  const unique = (sel) => {
    try { return document.querySelectorAll(sel).length === 1; } catch (e) { return false; }
  };
  const selectorFor = (el) => {
    const aid = el.getAttribute('data-automation-id');
    if (aid && unique('[data-automation-id="' + esc(aid) + '"]')) {
      return '[data-automation-id="' + esc(aid) + '"]';
    }
    if (el.id && unique('#' + esc(el.id))) return '#' + esc(el.id);
    const name = el.getAttribute('name');
    if (name) {
      let sel = el.tagName.toLowerCase() + '[name="' + esc(name) + '"]';
      if (unique(sel)) return sel;
      if ((el.type === 'radio' || el.type === 'checkbox') && el.value) {
        sel += '[value="' + esc(el.value) + '"]';
        if (unique(sel)) return sel;
      }
    }
    const parts = [];
    let node = el;
    while (node && node.nodeType === 1 && node !== document.body) {
      const parent = node.parentElement;
      let part = node.tagName.toLowerCase();
      if (parent) {
        const same = Array.from(parent.children).filter(c => c.tagName === node.tagName);
        if (same.length > 1) part += ':nth-of-type(' + (same.indexOf(node) + 1) + ')';
      }
      parts.unshift(part);
      node = parent;
    }
    return 'body > ' + parts.join(' > ');
  };
  const box = (el) => {
    const r = el.getBoundingClientRect();
    return {x: r.left + window.scrollX, y: r.top + window.scrollY, width: r.width, height: r.height};
  };
  const isVisible = (el) => {
    const r = el.getBoundingClientRect();
    const s = window.getComputedStyle(el);
    return r.width > 0 && r.height > 0 && s.visibility !== 'hidden' && s.display !== 'none';
  };
  const labelFor = (el) => {
    if (el.labels && el.labels.length) return el.labels[0].textContent.trim();
    const labelledBy = el.getAttribute('aria-labelledby');
    if (labelledBy) {
      const ref = document.getElementById(labelledBy.split(' ')[0]);
      if (ref) return ref.textContent.trim();
    }
    return el.getAttribute('aria-label') || el.getAttribute('placeholder') || '';
  };
  const typeOf = (el) => {
    const tag = el.tagName.toLowerCase();
    if (tag === 'select') return 'select';
    if (tag === 'textarea') return 'textarea';
    const role = el.getAttribute('role');
    if (role === 'combobox' || role === 'listbox') return 'searchable_select';
    if (el.isContentEditable) return 'text';
    return (el.getAttribute('type') || 'text').toLowerCase();
  };
  const valueOf = (el) => {
    if (el.type === 'checkbox' || el.type === 'radio') return el.checked ? 'true' : '';
    if (el.isContentEditable) return (el.textContent || '').trim();
    return el.value || '';
  };
  const fields = [];
  const controls = document.querySelectorAll(
    'input:not([type="hidden"]):not([type="submit"]):not([type="button"]), textarea, select, ' +
    '[role="combobox"], [contenteditable="true"]'
  );
  for (const el of controls) {
    const container = el.closest('fieldset, section, [data-automation-id$="Section"], form');
    fields.push({
      id: selectorFor(el),
      selector: selectorFor(el),
      fieldType: typeOf(el),
      label: labelFor(el),
      name: el.getAttribute('name') || '',
      placeholder: el.getAttribute('placeholder') || '',
      ariaLabel: el.getAttribute('aria-label') || '',
      automationId: el.getAttribute('data-automation-id') || '',
      required: el.required || el.getAttribute('aria-required') === 'true',
      visible: isVisible(el),
      disabled: !!el.disabled,
      currentValue: valueOf(el),
      options: el.tagName === 'SELECT' ? Array.from(el.options).map(o => o.text.trim()) : [],
      boundingBox: box(el),
      parentContainer: container ? selectorFor(container) : '',
      optionValue: (el.type === 'radio' || el.type === 'checkbox') ? (el.value || '') : '',
    });
  }
  const buttons = [];
  for (const el of document.querySelectorAll('button, input[type="submit"], [role="button"]')) {
    if (!isVisible(el)) continue;
    buttons.push({
      selector: selectorFor(el),
      text: (el.innerText || el.value || el.getAttribute('aria-label') || '').trim(),
      type: el.getAttribute('type') || '',
      automationId: el.getAttribute('data-automation-id') || '',
      disabled: !!el.disabled || el.getAttribute('aria-disabled') === 'true',
      boundingBox: box(el),
    });
  }
  const blockers = [];
  for (const sel of ['iframe[src*="recaptcha"]', 'iframe[src*="hcaptcha"]', '.g-recaptcha', '#captcha', '[data-sitekey]']) {
    if (document.querySelector(sel)) {
      blockers.push({category: 'captcha', selector: sel, description: 'CAPTCHA detected: ' + sel});
      break;
    }
  }
  const href = window.location.href.toLowerCase();
  if (/\\/(login|signin|sso)\\b/.test(href)) {
    blockers.push({category: 'login', description: 'Login page detected: ' + href});
  } else if (document.querySelector('input[type="password"]:not([autocomplete="new-password"])')) {
    blockers.push({category: 'login', selector: 'input[type="password"]', description: 'Login form detected'});
  }
  const text = (document.body && document.body.innerText || '').toLowerCase();
  if (text.includes('checking your browser') || text.includes('please verify you are a human')) {
    blockers.push({category: 'bot_check', description: 'Bot check page detected'});
  }
  return {url: window.location.href, fields, buttons, blockers};
}
"""

READ_VALUE_SCRIPT = """
(el) => {
  if (el.type === 'checkbox' || el.type === 'radio') return el.checked ? 'true' : '';
  if (el.tagName === 'SELECT') {
    const o = el.options[el.selectedIndex];
    return o ? (o.text || o.value || '').trim() : '';
  }
  if (el.isContentEditable) return (el.textContent || '').trim();
  return el.value || '';
}
"""


def _normalize(value: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (value or "")).strip().lower()


def values_match(expected: str, actual: str) -> bool:
    """Loose comparison tolerant of formatting (phone masks, option labels).

    The actual value may decorate the expected one ("Canada (CA)") but never
    fall short of it, so a partially typed value does not verify.
    """
    exp, act = _normalize(expected), _normalize(actual)
    if not act:
        return False
    if exp == act or exp in act:
        return True
    exp_digits, act_digits = re.sub(r"\D", "", exp), re.sub(r"\D", "", act)
    return len(exp_digits) >= 4 and exp_digits == act_digits


async def _single(handle: Any) -> Optional[Any]:
    """Narrow a driver locator to one element, None when nothing matches."""
    count = await handle.count()
    if count == 0:
        return None
    return handle.first if count > 1 else handle


@dataclass
class StructuralLayer:
    """Cheapest layer: in-page scan plus direct locator actions."""

    layer_id: LayerId = LayerId.DOM
    cost_per_action: float = 0.0

    async def observe(self, ctx: LayerContext) -> PageObservation:
        raw = await ctx.page.evaluate(PAGE_SCAN_SCRIPT) or {}
        logger.debug(
            "Scanned %s: %d fields, %d buttons, %d blockers",
            raw.get("url"), len(raw.get("fields", [])),
            len(raw.get("buttons", [])), len(raw.get("blockers", [])),
        )
        return PageObservation(
            url=str(raw.get("url") or ctx.page.url),
            fields=tuple(FormField.from_dict(f) for f in raw.get("fields", [])),
            buttons=tuple(ButtonInfo.from_dict(b) for b in raw.get("buttons", [])),
            blockers=tuple(
                BlockerInfo(
                    category=str(b.get("category", "unknown")),
                    description=str(b.get("description", "")),
                    selector=b.get("selector"),
                )
                for b in raw.get("blockers", [])
            ),
            observed_by=self.layer_id,
            cost=0.0,
        )

    async def process(
        self, fields: Sequence[FormField], ctx: LayerContext
    ) -> List[FieldMatch]:
        return FieldMatcher(ctx.user_data, layer=self.layer_id).match(fields)

    async def execute(
        self, actions: Sequence[PlannedAction], ctx: LayerContext
    ) -> List[ActionOutcome]:
        results: List[ActionOutcome] = []
        for action in actions:
            results.append(await self._execute_one(action, ctx))
        return results

    async def review(
        self,
        actions: Sequence[PlannedAction],
        results: Sequence[ActionOutcome],
        ctx: LayerContext,
    ) -> List[ReviewResult]:
        reviews: List[ReviewResult] = []
        for action, result in zip(actions, results):
            if not result.success:
                reviews.append(ReviewResult(
                    verified=False, reviewed_by=self.layer_id, expected=action.value,
                    reason=result.error or "Execution failed",
                ))
                continue
            reviews.append(await self._review_one(action, ctx))
        return reviews

    async def _execute_one(self, action: PlannedAction, ctx: LayerContext) -> ActionOutcome:
        selector = action.field.selector
        if not selector:
            return ActionOutcome.failure(self.layer_id, f"No element selector for {action.field.label!r}")
        try:
            handle = await _single(ctx.page.locator(selector))
            if handle is None:
                return ActionOutcome.failure(self.layer_id, f"Element not found: {selector}")
            bbox = BoundingBox.from_dict(await handle.bounding_box())
            if action.action_type is ActionType.FILL:
                await handle.fill(action.value)
            elif action.action_type is ActionType.SELECT:
                await handle.select_option(action.value)
            elif action.action_type is ActionType.CHECK:
                await handle.check()
            elif action.action_type is ActionType.UNCHECK:
                await handle.uncheck()
            elif action.action_type is ActionType.UPLOAD:
                await handle.set_input_files(action.value)
            else:
                await handle.click()
        except Exception as e:
            return ActionOutcome.failure(self.layer_id, str(e))
        return ActionOutcome(
            success=True, layer=self.layer_id, value_applied=action.value,
            cost=self.cost_per_action, bbox=bbox,
        )

    async def _review_one(self, action: PlannedAction, ctx: LayerContext) -> ReviewResult:
        try:
            handle = await _single(ctx.page.locator(action.field.selector))
            if handle is None:
                raise LookupError(f"Element not found: {action.field.selector}")
            actual = await handle.evaluate(READ_VALUE_SCRIPT)
        except Exception as e:
            return ReviewResult(
                verified=False, reviewed_by=self.layer_id, expected=action.value,
                reason=f"Could not read back value: {e}",
            )
        actual = str(actual or "")
        if action.action_type is ActionType.CHECK:
            verified = actual == "true"
        elif action.action_type is ActionType.UNCHECK:
            verified = actual == ""
        elif action.action_type is ActionType.CLICK:
            checked = actual == "true"
            if action.field.field_type is FieldType.RADIO:
                actual = action.field.label if checked else ""
                verified = checked and action.field.is_option_for(action.value)
            else:
                verified = checked
        elif action.action_type is ActionType.UPLOAD:
            verified = bool(actual)
        else:
            verified = values_match(action.value, actual)
        return ReviewResult(
            verified=verified,
            reviewed_by=self.layer_id,
            expected=action.value,
            actual=actual,
            reason=None if verified else f"Expected {action.value!r}, found {actual!r}",
        )
