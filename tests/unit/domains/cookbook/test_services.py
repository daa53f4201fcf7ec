"""Tests for CookbookExecutor."""
from unittest.mock import AsyncMock, patch

import pytest

from autoreplay.config import EngineConfig
from autoreplay.domains.cookbook import (
    CookbookExecutor,
    ExecuteAllResult,
    StepResult,
    StepValidationError,
)
from autoreplay.domains.locator import LocatorDescriptor, LocatorResolver
from autoreplay.domains.manual import ActionKind, ActionManual, ManualSource, ManualStep


# ── Helpers ──────────────────────────────────────────────────────────


def _step(order, action, value=None, description=None, **locator):
    return ManualStep(
        order=order,
        action=action,
        locator=LocatorDescriptor(**(locator or {"css": f"#step-{order}"})),
        value=value,
        description=description,
    )


def _manual(steps):
    return ActionManual(
        id="manual-1", url_pattern="*", task_pattern="apply", platform="other",
        steps=steps, health=1.0, source=ManualSource.RECORDED,
    )


def _executor(**kwargs):
    kwargs.setdefault("resolver", LocatorResolver(stale_retry_delay_ms=0))
    return CookbookExecutor(**kwargs)


# ── execute_step ─────────────────────────────────────────────────────


class TestExecuteStep:
    @pytest.mark.asyncio
    async def test_fill_resolves_template(self, fake_page, fake_locator, user_data):
        step = _step(0, ActionKind.FILL, value="{{email}}", test_id="email")

        result = await _executor().execute_step(fake_page, step, user_data)

        assert result.success
        assert result.strategy == "testId"
        fake_locator.fill.assert_awaited_once_with("ada@example.com")

    @pytest.mark.asyncio
    async def test_unmatched_token_passes_through(self, fake_page, fake_locator):
        step = _step(0, ActionKind.FILL, value="{{nickname}}")

        result = await _executor().execute_step(fake_page, step, {"email": "x"})

        assert result.success
        fake_locator.fill.assert_awaited_once_with("{{nickname}}")

    @pytest.mark.parametrize("action,method", [
        (ActionKind.CLICK, "click"),
        (ActionKind.CHECK, "check"),
        (ActionKind.UNCHECK, "uncheck"),
        (ActionKind.HOVER, "hover"),
        (ActionKind.SCROLL, "scroll_into_view_if_needed"),
    ])
    @pytest.mark.asyncio
    async def test_locator_only_actions(self, fake_page, fake_locator, action, method):
        result = await _executor().execute_step(fake_page, _step(0, action))

        assert result.success
        getattr(fake_locator, method).assert_awaited_once()

    @pytest.mark.asyncio
    async def test_select_and_press(self, fake_page, fake_locator):
        executor = _executor()
        await executor.execute_step(fake_page, _step(0, ActionKind.SELECT, value="Canada"))
        await executor.execute_step(fake_page, _step(1, ActionKind.PRESS, value="Enter"))

        fake_locator.select_option.assert_awaited_once_with("Canada")
        fake_locator.press.assert_awaited_once_with("Enter")

    @pytest.mark.parametrize("action", [ActionKind.FILL, ActionKind.SELECT, ActionKind.PRESS])
    @pytest.mark.asyncio
    async def test_value_required(self, fake_page, action):
        step = _step(4, action, description="Needs input")

        result = await _executor().execute_step(fake_page, step, {})

        assert not result.success
        assert f"{action.value} requires a value" in result.error
        assert "Step 4 (Needs input)" in result.error
        fake_page.locator.assert_not_called()

    @pytest.mark.asyncio
    async def test_value_resolving_to_empty_is_rejected(self, fake_page):
        step = _step(0, ActionKind.FILL, value="{{email}}")

        result = await _executor().execute_step(fake_page, step, {"email": ""})

        assert not result.success
        assert "fill requires a value" in result.error

    @pytest.mark.asyncio
    async def test_element_not_found(self, page_factory, locator_factory):
        page = page_factory(locator=locator_factory(count=0))
        step = _step(7, ActionKind.CLICK, description="Apply button")

        result = await _executor().execute_step(page, step)

        assert not result.success
        assert result.error == "No element found for step 7: Apply button"

    @pytest.mark.asyncio
    async def test_driver_error_reported_with_step(self, fake_page, fake_locator):
        fake_locator.click.side_effect = RuntimeError("element intercepts pointer events")
        step = _step(2, ActionKind.CLICK, description="Next")

        result = await _executor().execute_step(fake_page, step)

        assert not result.success
        assert result.error.startswith('Action "click" failed on step 2 (Next)')
        assert "intercepts pointer events" in result.error
        assert result.strategy == "css"

    @pytest.mark.asyncio
    async def test_navigate(self, fake_page, user_data):
        step = ManualStep(
            order=0, action=ActionKind.NAVIGATE, locator=LocatorDescriptor.body(),
            value="https://example.com/{{first_name}}",
        )

        result = await _executor().execute_step(fake_page, step, user_data)

        assert result.success
        fake_page.goto.assert_awaited_once_with("https://example.com/Ada")
        fake_page.locator.assert_not_called()

    @pytest.mark.asyncio
    async def test_navigate_failure_is_distinguishable(self, fake_page):
        fake_page.goto.side_effect = RuntimeError("net::ERR_NAME_NOT_RESOLVED")
        step = ManualStep(
            order=3, action=ActionKind.NAVIGATE, locator=LocatorDescriptor.body(),
            value="https://nowhere.invalid",
        )

        result = await _executor().execute_step(fake_page, step)

        assert not result.success
        assert result.error.startswith("Navigation failed on step 3")

    @pytest.mark.asyncio
    async def test_navigate_requires_url(self, fake_page):
        step = ManualStep(order=0, action=ActionKind.NAVIGATE, locator=LocatorDescriptor.body())

        result = await _executor().execute_step(fake_page, step)

        assert not result.success
        assert "navigate requires a value" in result.error


# ── Waits ────────────────────────────────────────────────────────────


class TestWaitAndSettle:
    @pytest.mark.asyncio
    async def test_wait_uses_literal_value(self, fake_page):
        with patch("autoreplay.domains.cookbook.services.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await _executor().execute_step(fake_page, _step(0, ActionKind.WAIT, value="250"))

        assert result.success
        sleep.assert_awaited_once_with(0.25)

    @pytest.mark.asyncio
    async def test_wait_defaults(self, fake_page):
        with patch("autoreplay.domains.cookbook.services.asyncio.sleep", new=AsyncMock()) as sleep:
            await _executor(default_wait_ms=1500).execute_step(fake_page, _step(0, ActionKind.WAIT))

        sleep.assert_awaited_once_with(1.5)

    @pytest.mark.parametrize("value", ["-5", "soon"])
    @pytest.mark.asyncio
    async def test_invalid_wait_rejected(self, fake_page, value):
        result = await _executor().execute_step(fake_page, _step(0, ActionKind.WAIT, value=value))

        assert not result.success
        assert "non-negative duration" in result.error

    @pytest.mark.asyncio
    async def test_step_wait_after_overrides_default(self, fake_page):
        step = ManualStep(
            order=0, action=ActionKind.CLICK, locator=LocatorDescriptor(css="#x"), wait_after=40,
        )
        with patch("autoreplay.domains.cookbook.services.asyncio.sleep", new=AsyncMock()) as sleep:
            await _executor(default_wait_after_ms=500).execute_step(fake_page, step)

        sleep.assert_awaited_once_with(0.04)

    @pytest.mark.asyncio
    async def test_default_settle(self, fake_page):
        with patch("autoreplay.domains.cookbook.services.asyncio.sleep", new=AsyncMock()) as sleep:
            await _executor(default_wait_after_ms=500).execute_step(
                fake_page, _step(0, ActionKind.CLICK)
            )

        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_no_settle_after_failure(self, page_factory, locator_factory):
        page = page_factory(locator=locator_factory(count=0))
        with patch("autoreplay.domains.cookbook.services.asyncio.sleep", new=AsyncMock()) as sleep:
            await _executor(default_wait_after_ms=500).execute_step(page, _step(0, ActionKind.CLICK))

        sleep.assert_not_awaited()


# ── execute_all ──────────────────────────────────────────────────────


class TestExecuteAll:
    @pytest.mark.asyncio
    async def test_runs_steps_in_order(self, fake_page, fake_locator, user_data):
        steps = [
            _step(5, ActionKind.CLICK, css="#second"),
            _step(1, ActionKind.FILL, value="{{email}}", css="#first"),
        ]

        result = await _executor().execute_all(fake_page, _manual(steps), user_data)

        assert result == ExecuteAllResult(success=True, steps_completed=2)
        selectors = [c.args[0] for c in fake_page.locator.call_args_list]
        assert selectors == ["#first", "#second"]

    @pytest.mark.asyncio
    async def test_halts_at_first_failure(self, page_factory, locator_factory):
        ok = locator_factory()
        missing = locator_factory(count=0)
        page = page_factory()
        page.locator.side_effect = lambda selector, **_: missing if selector == "#broken" else ok
        steps = [
            _step(0, ActionKind.CLICK, css="#a"),
            _step(1, ActionKind.CLICK, css="#broken", description="Broken"),
            _step(2, ActionKind.CLICK, css="#c"),
        ]

        result = await _executor().execute_all(page, _manual(steps))

        assert not result.success
        assert result.steps_completed == 1
        assert result.failed_step_index == 1
        assert "Broken" in result.error
        assert ok.click.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_user_data_defaults(self, fake_page, sample_steps, fake_locator):
        result = await _executor().execute_all(fake_page, _manual(sample_steps), None)

        assert result.success
        fake_locator.fill.assert_awaited_once_with("{{email}}")

    @pytest.mark.asyncio
    async def test_lifecycle_events(self, fake_page, sample_steps, user_data):
        sink = AsyncMock()

        await _executor(event_sink=sink).execute_all(fake_page, _manual(sample_steps), user_data)

        types = [c.args[0] for c in sink.await_args_list]
        assert types == [
            "cookbook_step_started", "cookbook_step_completed",
            "cookbook_step_started", "cookbook_step_completed",
        ]

    @pytest.mark.asyncio
    async def test_failed_event(self, page_factory, locator_factory):
        sink = AsyncMock()
        page = page_factory(locator=locator_factory(count=0))

        await _executor(event_sink=sink).execute_all(page, _manual([_step(0, ActionKind.CLICK)]))

        assert [c.args[0] for c in sink.await_args_list] == [
            "cookbook_step_started", "cookbook_step_failed",
        ]

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_stop_replay(self, fake_page, sample_steps, user_data):
        sink = AsyncMock(side_effect=RuntimeError("sink down"))

        result = await _executor(event_sink=sink).execute_all(
            fake_page, _manual(sample_steps), user_data
        )

        assert result.success
        assert result.steps_completed == 2


class TestValueObjects:
    def test_step_result_helpers(self):
        assert StepResult.ok("css") == StepResult(success=True, strategy="css")
        assert StepResult.failed("boom").error == "boom"

    def test_execute_all_result_validation(self):
        with pytest.raises(ValueError):
            ExecuteAllResult(success=True, steps_completed=1, failed_step_index=0)
        with pytest.raises(ValueError):
            ExecuteAllResult(success=False, steps_completed=-1)

    def test_execute_all_result_to_dict(self):
        result = ExecuteAllResult(success=False, steps_completed=1, failed_step_index=1, error="x")
        assert result.to_dict() == {
            "success": False, "steps_completed": 1, "failed_step_index": 1, "error": "x",
        }

    def test_validation_error_is_value_error(self):
        assert issubclass(StepValidationError, ValueError)

    def test_from_config(self):
        executor = CookbookExecutor.from_config(
            EngineConfig(default_wait_after_ms=20, default_wait_ms=300, resolver_timeout_ms=900)
        )
        assert executor.default_wait_after_ms == 20
        assert executor.default_wait_ms == 300
        assert executor.resolver.timeout_ms == 900
