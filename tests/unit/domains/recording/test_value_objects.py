"""Tests for recording event parsing."""
import pytest

from autoreplay.domains.recording import (
    ClickEvent,
    IgnoredEvent,
    KeyPressEvent,
    NavigateEvent,
    ScrollEvent,
    TypeTextEvent,
    WaitEvent,
    parse_event,
)


class TestParseEvent:
    @pytest.mark.parametrize("variant", [
        "click", "mouse:click", "mouse:double_click", "mouse:right_click",
    ])
    def test_click_family(self, variant):
        event = parse_event({"variant": variant, "x": 10, "y": 20.5})
        assert event == ClickEvent(variant=variant, x=10.0, y=20.5)

    def test_click_without_coordinates_ignored(self):
        event = parse_event({"variant": "mouse:click"})
        assert isinstance(event, IgnoredEvent)
        assert event.reason == "missing coordinates"

    def test_typed_text(self):
        event = parse_event({"variant": "keyboard:type", "content": "hello"})
        assert event == TypeTextEvent(variant="keyboard:type", content="hello")
        assert not event.has_point

    def test_legacy_typed_text_with_point(self):
        event = parse_event({"variant": "type", "content": "x", "x": 1, "y": 2})
        assert event.has_point

    def test_scroll(self):
        event = parse_event({"variant": "mouse:scroll", "x": 5, "y": 6, "deltaY": 300})
        assert event == ScrollEvent(variant="mouse:scroll", x=5.0, y=6.0, delta_x=0.0, delta_y=300.0)

    def test_navigation(self):
        event = parse_event({"variant": "browser:nav", "url": "https://example.com"})
        assert event == NavigateEvent(variant="browser:nav", url="https://example.com")

    @pytest.mark.parametrize("variant,key", [
        ("keyboard:enter", "Enter"),
        ("keyboard:tab", "Tab"),
        ("keyboard:backspace", "Backspace"),
        ("keyboard:escape", "Escape"),
    ])
    def test_key_presses(self, variant, key):
        assert parse_event({"variant": variant}) == KeyPressEvent(variant=variant, key=key)

    def test_wait_in_seconds(self):
        assert parse_event({"variant": "wait", "seconds": 2}) == WaitEvent(variant="wait", duration_ms=2000)

    def test_wait_without_duration(self):
        assert parse_event({"variant": "wait"}).duration_ms is None

    @pytest.mark.parametrize("variant", [
        "mouse:drag", "browser:nav:back", "browser:nav:forward", "task:done", "browser:tab:new",
    ])
    def test_explicitly_ignored(self, variant):
        event = parse_event({"variant": variant, "x": 1, "y": 1})
        assert isinstance(event, IgnoredEvent)
        assert event.reason == "ignored"

    def test_unknown_variant_ignored(self):
        event = parse_event({"variant": "gamepad:rumble"})
        assert isinstance(event, IgnoredEvent)
        assert event.reason == "unknown variant"

    def test_malformed_payload_ignored(self):
        assert isinstance(parse_event("click"), IgnoredEvent)

    def test_boolean_coordinates_rejected(self):
        assert isinstance(parse_event({"variant": "click", "x": True, "y": 1}), IgnoredEvent)
