"""Turn an orchestrated run into replayable manual steps."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from autoreplay.domains.locator import LocatorDescriptor
from autoreplay.domains.manual import ActionKind, ManualStep

from .value_objects import ActionType, CookbookAction

_STEP_KINDS: Dict[ActionType, ActionKind] = {
    ActionType.FILL: ActionKind.FILL,
    ActionType.SELECT: ActionKind.SELECT,
    ActionType.CHECK: ActionKind.CHECK,
    ActionType.UNCHECK: ActionKind.UNCHECK,
    ActionType.CLICK: ActionKind.CLICK,
}


def _locator_for(action: CookbookAction) -> Optional[LocatorDescriptor]:
    snapshot = action.field_snapshot
    data = {
        "css": action.dom_action.selector or snapshot.selector,
        "xpath": snapshot.xpath,
        "name": snapshot.name,
        "aria_label": snapshot.aria_label,
    }
    if not any(data.values()):
        return None
    return LocatorDescriptor.from_dict(data)


def cookbook_actions_to_steps(actions: Sequence[CookbookAction]) -> List[ManualStep]:
    """Convert verified cookbook actions into ordered manual steps.

    Failed actions are dropped, as are uploads (a file path does not carry
    over between users) and actions without any usable locator.
    """
    steps: List[ManualStep] = []
    for action in actions:
        if not action.succeeded:
            continue
        kind = _STEP_KINDS.get(action.dom_action.action)
        if kind is None:
            continue
        locator = _locator_for(action)
        if locator is None:
            continue
        steps.append(ManualStep(
            order=len(steps),
            action=kind,
            locator=locator,
            value=action.dom_action.value_template if kind.requires_value else None,
            description=f"{kind.value} {action.field_snapshot.label}".strip(),
            health_score=min(1.0, max(0.0, action.health_score)),
        ))
    return steps
