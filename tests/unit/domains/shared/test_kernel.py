"""Tests for the shared kernel."""
from unittest.mock import AsyncMock

import pytest
from pydantic import TypeAdapter, ValidationError

from autoreplay.domains.shared import (
    DEFAULT_PLATFORM,
    ManualSourceLiteral,
    detect_platform,
    emit_event,
    find_template_tokens,
    resolve_template,
    templatize,
)


class _Event:
    def to_dict(self):
        return {"event_type": "thing_happened", "value": 1}


# ── Templates ────────────────────────────────────────────────────────


class TestResolveTemplate:
    def test_replaces_known_tokens(self):
        assert resolve_template("Hi {{first_name}}!", {"first_name": "Ada"}) == "Hi Ada!"

    def test_unknown_token_left_verbatim(self):
        assert resolve_template("{{missing}}", {"email": "a@b.c"}) == "{{missing}}"

    def test_multiple_tokens(self):
        data = {"first_name": "Ada", "last_name": "Lovelace"}
        assert resolve_template("{{first_name}} {{last_name}}", data) == "Ada Lovelace"

    def test_plain_value_unchanged(self):
        assert resolve_template("literal", {"literal": "x"}) == "literal"

    def test_find_tokens_in_order(self):
        assert find_template_tokens("{{b}} and {{a}}") == ["b", "a"]

    def test_find_tokens_none(self):
        assert find_template_tokens("no tokens") == []


class TestTemplatize:
    def test_value_becomes_token(self):
        assert templatize("Ada L", {"email": "a@b.c", "full_name": "Ada L"}) == "{{full_name}}"

    def test_unknown_value_kept_literal(self):
        assert templatize("Ada L", {"full_name": "Grace H"}) == "Ada L"

    def test_keys_unusable_as_tokens_skipped(self):
        assert templatize("Ada L", {"Full Name": "Ada L"}) == "Ada L"

    def test_token_resolves_back(self):
        data = {"full_name": "Ada L"}
        assert resolve_template(templatize("Ada L", data), data) == "Ada L"


# ── Platform detection ───────────────────────────────────────────────


class TestDetectPlatform:
    @pytest.mark.parametrize("url,expected", [
        ("https://acme.wd5.myworkdayjobs.com/en-US/careers", "workday"),
        ("https://boards.greenhouse.io/acme/jobs/123", "greenhouse"),
        ("https://job-boards.greenhouse.io/acme/jobs/123", "greenhouse"),
        ("https://jobs.lever.co/acme/abc", "lever"),
        ("https://careers-acme.icims.com/jobs/1/job", "icims"),
        ("https://acme.taleo.net/careersection/2/jobdetail.ftl", "taleo"),
        ("https://jobs.smartrecruiters.com/Acme/123", "smartrecruiters"),
        ("https://www.linkedin.com/jobs/view/123", "linkedin"),
    ])
    def test_known_platforms(self, url, expected):
        assert detect_platform(url) == expected

    def test_unknown_platform(self):
        assert detect_platform("https://example.com/careers") == DEFAULT_PLATFORM == "other"


# ── Event sink ───────────────────────────────────────────────────────


class TestEmitEvent:
    @pytest.mark.asyncio
    async def test_no_sink_is_noop(self):
        await emit_event(None, _Event())

    @pytest.mark.asyncio
    async def test_sink_receives_type_and_payload(self):
        sink = AsyncMock()
        await emit_event(sink, _Event())
        sink.assert_awaited_once_with(
            "thing_happened", {"event_type": "thing_happened", "value": 1}
        )

    @pytest.mark.asyncio
    async def test_sink_failure_is_swallowed(self):
        sink = AsyncMock(side_effect=RuntimeError("sink down"))
        await emit_event(sink, _Event())
        sink.assert_awaited_once()


# ── Pydantic types ───────────────────────────────────────────────────


class TestManualSourceLiteral:
    adapter = TypeAdapter(ManualSourceLiteral)

    @pytest.mark.parametrize("raw,expected", [
        ("recorded", "recorded"),
        ("actionbook", "imported"),
        ("template", "templated"),
        ("Recording", "recorded"),
        (" IMPORTED ", "imported"),
    ])
    def test_normalises_aliases(self, raw, expected):
        assert self.adapter.validate_python(raw) == expected

    def test_rejects_unknown_source(self):
        with pytest.raises(ValidationError):
            self.adapter.validate_python("scraped")
