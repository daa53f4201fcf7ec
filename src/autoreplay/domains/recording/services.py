"""Recording Domain Services.

TraceRecorder turns a live stream of interaction events into an ordered,
templatized list of ManualSteps.

Events are pushed onto a per-recorder ``asyncio.Queue`` by a non-blocking
handler and recorded by a single consumer task, so each event finishes
recording (and takes its ``order``) before the next one is looked at.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from autoreplay.domains.locator import LocatorDescriptor, Page
from autoreplay.domains.manual import ActionKind, ManualStep
from autoreplay.domains.shared import templatize

from .value_objects import (
    ClickEvent,
    IgnoredEvent,
    InteractionEvent,
    KeyPressEvent,
    NavigateEvent,
    ScrollEvent,
    TypeTextEvent,
    WaitEvent,
    parse_event,
)

logger = logging.getLogger(__name__)

DEFAULT_EVENT_NAME = "actionDone"

# Extracts every locator strategy from the element under a viewport point.
ELEMENT_AT_POINT_SCRIPT = """
({x, y}) => {
  const el = document.elementFromPoint(x, y);
  if (!el) return null;
  const attr = (n) => el.getAttribute(n) || '';
  const text = (el.textContent || '').trim();
  const cssPath = (node) => {
    if (node.id) return '#' + CSS.escape(node.id);
    const parts = [];
    while (node && node.nodeType === 1 && parts.length < 5) {
      let part = node.tagName.toLowerCase();
      const parent = node.parentElement;
      if (parent) {
        const same = Array.from(parent.children).filter(c => c.tagName === node.tagName);
        if (same.length > 1) part += ':nth-of-type(' + (same.indexOf(node) + 1) + ')';
      }
      parts.unshift(part);
      node = parent;
    }
    return parts.join(' > ');
  };
  const xpath = (node) => {
    const parts = [];
    while (node && node.nodeType === 1) {
      let i = 1;
      for (let s = node.previousElementSibling; s; s = s.previousElementSibling) {
        if (s.tagName === node.tagName) i++;
      }
      parts.unshift(node.tagName.toLowerCase() + '[' + i + ']');
      node = node.parentElement;
    }
    return '/' + parts.join('/');
  };
  return {
    testId: attr('data-testid') || attr('data-automation-id'),
    role: attr('role'),
    name: attr('name'),
    ariaLabel: attr('aria-label'),
    id: el.id || '',
    text: text.length <= 100 ? text : '',
    css: cssPath(el),
    xpath: xpath(el),
  };
}
"""


@runtime_checkable
class EventBus(Protocol):
    """Serial event source the recorder subscribes to."""

    def on(self, event: str, handler: Callable[..., Any]) -> Any: ...
    def off(self, event: str, handler: Callable[..., Any]) -> Any: ...


class TraceRecorder:
    """Records agent interaction events as ManualSteps.

    Example:
        recorder = TraceRecorder(page, agent.events, user_data={"email": "a@b.c"})
        recorder.start()
        ...  # agent acts on the page
        await recorder.flush()
        recorder.stop()
        steps = recorder.get_trace()
    """

    def __init__(
        self,
        page: Page,
        events: EventBus,
        user_data: Optional[Mapping[str, str]] = None,
        event_name: str = DEFAULT_EVENT_NAME,
    ) -> None:
        self.page = page
        self.events = events
        self.user_data: Dict[str, str] = dict(user_data or {})
        self.event_name = event_name
        self._steps: List[ManualStep] = []
        self._last_click: Optional[LocatorDescriptor] = None
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._recording = False
        self._handler = self._on_event

    # ── Lifecycle ──────────────────────────────────────────────────────

    def start(self) -> None:
        """Subscribe to the event bus. No-op while already recording.

        The queue and its consumer live until ``close()``, so a restart keeps
        feeding the same consumer and events stay in arrival order.
        """
        if self._recording:
            return
        if self._consumer is None:
            self._queue = asyncio.Queue()
            self._consumer = asyncio.get_running_loop().create_task(
                self._consume(self._queue)
            )
        self.events.on(self.event_name, self._handler)
        self._recording = True

    def stop(self) -> None:
        """Unsubscribe. Already-queued events are still recorded; steps are kept."""
        if not self._recording:
            return
        self.events.off(self.event_name, self._handler)
        self._recording = False

    async def flush(self) -> None:
        """Wait until every event queued so far has been recorded."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Stop, drain the queue and wait for the consumer to exit."""
        self.stop()
        queue, consumer = self._queue, self._consumer
        self._queue, self._consumer = None, None
        if queue is None or consumer is None:
            return
        queue.put_nowait(None)
        await consumer

    def reset(self) -> None:
        """Discard recorded steps and the last-click memo."""
        self._steps = []
        self._last_click = None

    @property
    def is_recording(self) -> bool:
        return self._recording

    def get_trace(self) -> List[ManualStep]:
        return list(self._steps)

    # ── Event handling ─────────────────────────────────────────────────

    def _on_event(self, payload: Any = None, *args: Any) -> None:
        queue = self._queue
        if queue is None:
            return
        try:
            queue.put_nowait(payload)
        except Exception as e:
            logger.warning("Dropped interaction event: %s", e)

    async def _consume(self, queue: asyncio.Queue) -> None:
        while True:
            payload = await queue.get()
            try:
                if payload is None:
                    return
                await self.record(parse_event(payload))
            except Exception as e:
                logger.warning("Failed to record interaction event: %s", e)
            finally:
                queue.task_done()

    async def record(self, event: InteractionEvent) -> Optional[ManualStep]:
        """Record one parsed event; returns the appended step, if any."""
        if isinstance(event, IgnoredEvent):
            logger.debug("Ignoring %s event (%s)", event.variant, event.reason)
            return None

        if isinstance(event, NavigateEvent):
            return self._append(ActionKind.NAVIGATE, LocatorDescriptor.body(), event.url)

        if isinstance(event, WaitEvent):
            value = str(event.duration_ms) if event.duration_ms is not None else None
            return self._append(ActionKind.WAIT, LocatorDescriptor.body(), value)

        if isinstance(event, KeyPressEvent):
            locator = self._last_click or LocatorDescriptor.body()
            return self._append(ActionKind.PRESS, locator, event.key)

        if isinstance(event, ClickEvent):
            locator = await self._locator_at(event.x, event.y)
            if locator is None:
                return None
            self._last_click = locator
            return self._append(ActionKind.CLICK, locator)

        if isinstance(event, ScrollEvent):
            locator = await self._locator_at(event.x, event.y)
            if locator is None:
                return None
            return self._append(ActionKind.SCROLL, locator)

        if isinstance(event, TypeTextEvent):
            if event.has_point:
                locator = await self._locator_at(event.x, event.y)
            else:
                locator = self._last_click
            if locator is None:
                logger.debug("Dropping typed text with no target element")
                return None
            return self._append(
                ActionKind.FILL, locator, templatize(event.content, self.user_data)
            )

        return None

    def _append(
        self, action: ActionKind, locator: LocatorDescriptor, value: Optional[str] = None
    ) -> ManualStep:
        step = ManualStep(
            order=len(self._steps),
            action=action,
            locator=locator,
            value=value,
            health_score=1.0,
        )
        self._steps.append(step)
        return step

    async def _locator_at(self, x: float, y: float) -> Optional[LocatorDescriptor]:
        try:
            info = await self.page.evaluate(ELEMENT_AT_POINT_SCRIPT, {"x": x, "y": y})
        except Exception as e:
            logger.warning("Element lookup at (%s, %s) failed: %s", x, y, e)
            return None
        if not info:
            return None
        try:
            return LocatorDescriptor.from_dict(info)
        except ValueError:
            return None
