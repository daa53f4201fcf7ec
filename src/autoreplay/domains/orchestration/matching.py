"""Deterministic field-to-user-data matching used by the structural layer."""
from __future__ import annotations

import re
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .value_objects import FieldMatch, FieldType, FormField, LayerId, MatchMethod

# Compact attribute/label spellings -> canonical user-data key
NAME_TO_KEY: Dict[str, str] = {
    "firstname": "first_name",
    "givenname": "first_name",
    "lastname": "last_name",
    "familyname": "last_name",
    "surname": "last_name",
    "email": "email",
    "emailaddress": "email",
    "phone": "phone",
    "phonenumber": "phone",
    "mobile": "phone",
    "addressline1": "street",
    "street": "street",
    "city": "city",
    "state": "state",
    "province": "state",
    "postalcode": "zip",
    "zip": "zip",
    "zipcode": "zip",
    "country": "country",
    "linkedin": "linkedin_url",
    "linkedinprofile": "linkedin_url",
}

_UNMATCHABLE = (FieldType.HIDDEN, FieldType.PASSWORD)


def normalize_label(label: str) -> str:
    """Lowercase a label and strip required/optional markers."""
    label = label.replace("*", "")
    label = re.sub(r"\brequired\b", "", label, flags=re.I)
    label = re.sub(r"\(optional\)", "", label, flags=re.I)
    return re.sub(r"\s+", " ", label).strip().lower()


def compact(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


class FieldMatcher:
    """Bind fields to user-data values with a fixed cascade of heuristics.

    Each field takes the first heuristic that yields a non-empty value:
    automation id (0.95), name attribute (0.95), exact label (0.9),
    label synonym (0.85), partial label (0.7), placeholder (0.6).
    """

    def __init__(self, user_data: Mapping[str, str], layer: LayerId = LayerId.DOM) -> None:
        self.user_data = {k: v for k, v in user_data.items() if v is not None and str(v) != ""}
        self.layer = layer
        self._by_compact = {compact(k): k for k in self.user_data}
        self._by_label = {k.replace("_", " ").lower(): k for k in self.user_data}
        self._passes: Tuple[Tuple[MatchMethod, float, Callable[[FormField], Optional[str]]], ...] = (
            (MatchMethod.AUTOMATION_ID, 0.95, lambda f: self._attr_key(f.automation_id)),
            (MatchMethod.NAME_ATTR, 0.95, lambda f: self._attr_key(f.name)),
            (MatchMethod.LABEL_EXACT, 0.9, self._label_exact),
            (MatchMethod.SYNONYM, 0.85, self._label_synonym),
            (MatchMethod.LABEL_FUZZY, 0.7, self._label_fuzzy),
            (MatchMethod.PLACEHOLDER, 0.6, self._placeholder),
        )

    @staticmethod
    def is_matchable(f: FormField) -> bool:
        return f.visible and not f.disabled and not f.is_filled and f.field_type not in _UNMATCHABLE

    def match(self, fields: Sequence[FormField]) -> List[FieldMatch]:
        matches: List[FieldMatch] = []
        for f in fields:
            if not self.is_matchable(f):
                continue
            found = self.match_field(f)
            if found is None:
                continue
            # every option of a radio group resolves to the group's key;
            # only the option that is the answer gets clicked
            if f.field_type is FieldType.RADIO and not f.is_option_for(found.value):
                continue
            matches.append(found)
        return matches

    def match_field(self, f: FormField) -> Optional[FieldMatch]:
        for method, confidence, finder in self._passes:
            key = finder(f)
            if key is not None and key in self.user_data:
                return FieldMatch(
                    field=f,
                    value=str(self.user_data[key]),
                    confidence=confidence,
                    method=method,
                    user_data_key=key,
                    matched_by=self.layer,
                )
        return None

    # ── Heuristics ────────────────────────────────────────────────────

    def _attr_key(self, attr: Optional[str]) -> Optional[str]:
        if not attr:
            return None
        token = compact(attr)
        return self._by_compact.get(token) or self._canonical(NAME_TO_KEY.get(token))

    def _label_exact(self, f: FormField) -> Optional[str]:
        return self._by_label.get(normalize_label(f.label)) if f.label else None

    def _label_synonym(self, f: FormField) -> Optional[str]:
        return self._canonical(NAME_TO_KEY.get(compact(normalize_label(f.label)))) if f.label else None

    def _label_fuzzy(self, f: FormField) -> Optional[str]:
        label = normalize_label(f.label) if f.label else ""
        if len(label) < 3:
            return None
        for text, key in self._by_label.items():
            if len(text) >= 3 and (text in label or label in text):
                return key
        return None

    def _placeholder(self, f: FormField) -> Optional[str]:
        placeholder = (f.placeholder or "").lower()
        if not placeholder:
            return None
        for text, key in self._by_label.items():
            if len(text) >= 3 and text in placeholder:
                return key
        return None

    def _canonical(self, key: Optional[str]) -> Optional[str]:
        if key is None:
            return None
        return key if key in self.user_data else self._by_compact.get(compact(key))
