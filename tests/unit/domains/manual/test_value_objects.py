"""Tests for manual value objects and health arithmetic."""
import pytest

from autoreplay.domains.locator import LocatorDescriptor
from autoreplay.domains.manual import (
    INITIAL_HEALTH,
    ActionKind,
    HealthOutcome,
    ManualMetadata,
    ManualSource,
    ManualStep,
    compute_health,
    is_replayable,
)


# ── compute_health ───────────────────────────────────────────────────


class TestComputeHealth:
    def test_success_adds_bonus(self):
        assert compute_health(80, 0, HealthOutcome.SUCCESS) == 82

    def test_success_clamped_at_max(self):
        assert compute_health(99, 0, "success") == 100

    def test_failure_subtracts_penalty(self):
        assert compute_health(80, 0, HealthOutcome.FAILURE) == 75

    def test_severe_penalty_after_five_failures(self):
        assert compute_health(80, 4, "failure") == 75
        assert compute_health(80, 5, "failure") == 65

    def test_failure_clamped_at_zero(self):
        assert compute_health(3, 10, "failure") == 0

    def test_unknown_outcome_rejected(self):
        with pytest.raises(ValueError):
            compute_health(50, 0, "maybe")

    def test_decay_and_recovery_sequence(self):
        health, failures = 100, 0
        for _ in range(5):
            health = compute_health(health, failures, "failure")
            failures += 1
        assert health == 75

        health = compute_health(health, failures, "failure")
        failures += 1
        assert health == 60

        for _ in range(10):
            health = compute_health(health, failures, "success")
        assert health == 80


class TestIsReplayable:
    def test_threshold_is_inclusive_gate(self):
        assert not is_replayable(0.3)

    def test_above_threshold(self):
        assert is_replayable(0.31)

    def test_zero(self):
        assert not is_replayable(0.0)


class TestManualSource:
    def test_initial_health(self):
        assert ManualSource.RECORDED.initial_health == 100
        assert ManualSource.IMPORTED.initial_health == 80
        assert INITIAL_HEALTH[ManualSource.TEMPLATED] == 100


# ── ManualStep ───────────────────────────────────────────────────────


class TestManualStep:
    def test_action_string_coerced(self):
        step = ManualStep(order=0, action="click", locator=LocatorDescriptor(css="#go"))
        assert step.action is ActionKind.CLICK

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            ManualStep(order=0, action="teleport", locator=LocatorDescriptor(css="#go"))

    def test_negative_order_rejected(self):
        with pytest.raises(ValueError, match="order"):
            ManualStep(order=-1, action=ActionKind.CLICK, locator=LocatorDescriptor(css="#go"))

    def test_health_out_of_range_rejected(self):
        with pytest.raises(ValueError, match="health"):
            ManualStep(
                order=0, action=ActionKind.CLICK,
                locator=LocatorDescriptor(css="#go"), health_score=1.5,
            )

    def test_requires_value_kinds(self):
        assert ActionKind.FILL.requires_value
        assert ActionKind.SELECT.requires_value
        assert ActionKind.PRESS.requires_value
        assert not ActionKind.CLICK.requires_value
        assert not ActionKind.NAVIGATE.requires_value

    def test_to_dict_omits_unset_fields(self):
        step = ManualStep(order=2, action=ActionKind.CLICK, locator=LocatorDescriptor(test_id="go"))
        assert step.to_dict() == {
            "order": 2,
            "action": "click",
            "locator": {"testId": "go"},
            "health_score": 1.0,
        }

    def test_from_dict_accepts_camel_case(self):
        step = ManualStep.from_dict({
            "order": 1,
            "action": "fill",
            "locator": {"ariaLabel": "Email"},
            "value": "{{email}}",
            "waitAfter": 250,
            "healthScore": 0.5,
        })
        assert step.wait_after == 250
        assert step.health_score == 0.5
        assert step.locator.aria_label == "Email"

    def test_from_dict_restores_to_dict(self):
        step = ManualStep(
            order=3, action=ActionKind.SELECT, locator=LocatorDescriptor(name="country"),
            value="{{country}}", description="Pick country", wait_after=100,
        )
        assert ManualStep.from_dict(step.to_dict()) == step


class TestManualMetadata:
    def test_task_type_required(self):
        with pytest.raises(ValueError):
            ManualMetadata(url="https://example.com", task_type=" ")

    def test_defaults(self):
        meta = ManualMetadata(url="https://example.com", task_type="apply")
        assert meta.platform is None
        assert meta.url_pattern is None
