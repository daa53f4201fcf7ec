"""Groups observed fields into sections by vertical position and container."""
from __future__ import annotations

from typing import List, Optional, Sequence

from .entities import FormSection
from .value_objects import ButtonInfo, FormField

Y_GAP_THRESHOLD = 80.0
DEFAULT_FIELD_HEIGHT = 20.0

_SECTION_HINTS = (
    ("Personal Information", ("name", "first", "last")),
    ("Contact Information", ("email", "phone", "address")),
    ("Work Experience", ("company", "title", "experience", "employer")),
    ("Education", ("school", "degree", "education", "university")),
)


def _top(f: FormField) -> float:
    return f.bbox.y if f.bbox else 0.0


def _bottom(f: FormField) -> float:
    return f.bbox.bottom if f.bbox else DEFAULT_FIELD_HEIGHT


class SectionGrouper:
    """Split a page's fields into sections.

    A new section starts when the vertical gap to the previous field exceeds
    ``gap_threshold`` or when both fields report different parent containers.
    """

    def __init__(self, gap_threshold: float = Y_GAP_THRESHOLD) -> None:
        self.gap_threshold = gap_threshold

    def group(
        self, fields: Sequence[FormField], buttons: Sequence[ButtonInfo] = ()
    ) -> List[FormSection]:
        if not fields:
            return []
        ordered = sorted(fields, key=_top)

        groups: List[List[FormField]] = [[ordered[0]]]
        for prev, current in zip(ordered, ordered[1:]):
            gap = _top(current) - _top(prev)
            container_changed = (
                current.parent_container is not None
                and prev.parent_container is not None
                and current.parent_container != prev.parent_container
            )
            if gap > self.gap_threshold or container_changed:
                groups.append([current])
            else:
                groups[-1].append(current)

        return [
            self._build(index, members, buttons)
            for index, members in enumerate(groups)
        ]

    def _build(
        self, index: int, members: List[FormField], buttons: Sequence[ButtonInfo]
    ) -> FormSection:
        section = FormSection.create(
            index, self.infer_name(members) or f"Section {index + 1}", members
        )
        section.y_min = min(_top(f) for f in members)
        section.y_max = max(_bottom(f) for f in members)
        section.buttons = [
            b for b in buttons
            if b.bbox is not None and section.y_min - 20 <= b.bbox.y <= section.y_max + 40
        ]
        return section

    @staticmethod
    def infer_name(members: Sequence[FormField]) -> Optional[str]:
        """Name a section after the first member label that hints at one."""
        for f in members:
            label = f.label.lower()
            for name, hints in _SECTION_HINTS:
                if any(h in label for h in hints):
                    return name
        return None
