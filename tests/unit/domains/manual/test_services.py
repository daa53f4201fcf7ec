"""Tests for ManualStore."""
import asyncio

import pytest

from autoreplay.domains.locator import LocatorDescriptor
from autoreplay.domains.manual import (
    ActionKind,
    ActionManual,
    ManualMetadata,
    ManualSource,
    ManualStep,
    ManualStore,
)

WORKDAY_URL = "https://acme.myworkdayjobs.com/en-US/careers/job/NYC/apply"


def _meta(url=WORKDAY_URL, task="apply", platform="workday", **kwargs):
    return ManualMetadata(url=url, task_type=task, platform=platform, **kwargs)


# ── Saving ───────────────────────────────────────────────────────────


class TestManualStoreSave:
    @pytest.mark.asyncio
    async def test_save_from_trace(self, manual_store, sample_steps):
        manual = await manual_store.save_from_trace(sample_steps, _meta())

        assert isinstance(manual, ActionManual)
        assert manual.source is ManualSource.RECORDED
        assert manual.health == 1.0
        assert manual.url_pattern == "*.myworkdayjobs.com/*/careers/job/NYC/apply"
        assert manual.platform == "workday"
        assert [s.order for s in manual.steps] == [0, 1]

    @pytest.mark.asyncio
    async def test_save_from_action_book_starts_at_80(self, manual_store, sample_steps):
        manual = await manual_store.save_from_action_book(sample_steps, _meta())
        assert manual.source is ManualSource.IMPORTED
        assert manual.health == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_action_book_prefers_explicit_pattern(self, manual_store, sample_steps):
        manual = await manual_store.save_from_action_book(
            sample_steps, _meta(url_pattern="*.myworkdayjobs.com/*")
        )
        assert manual.url_pattern == "*.myworkdayjobs.com/*"

    @pytest.mark.asyncio
    async def test_action_book_without_url_matches_everything(self, manual_store, sample_steps):
        manual = await manual_store.save_from_action_book(sample_steps, _meta(url=""))
        assert manual.url_pattern == "*"
        found = await manual_store.lookup("https://anything.example/x", "apply", "workday")
        assert found.id == manual.id

    @pytest.mark.asyncio
    async def test_save_from_template(self, manual_store, sample_steps):
        manual = await manual_store.save_from_template(sample_steps, _meta())
        assert manual.source is ManualSource.TEMPLATED
        assert manual.health == 1.0

    @pytest.mark.asyncio
    async def test_steps_sorted_on_save(self, manual_store, sample_steps):
        manual = await manual_store.save_from_trace(list(reversed(sample_steps)), _meta())
        assert [s.order for s in manual.steps] == [0, 1]

    @pytest.mark.asyncio
    async def test_platform_defaults_to_other(self, manual_store, sample_steps):
        manual = await manual_store.save_from_trace(sample_steps, _meta(platform=None))
        assert manual.platform == "other"

    @pytest.mark.asyncio
    async def test_empty_steps_rejected(self, manual_store):
        with pytest.raises(ValueError, match="without steps"):
            await manual_store.save_from_trace([], _meta())


# ── Lookup ───────────────────────────────────────────────────────────


class TestManualStoreLookup:
    @pytest.mark.asyncio
    async def test_lookup_matches_pattern(self, manual_store, sample_steps):
        saved = await manual_store.save_from_trace(sample_steps, _meta())

        found = await manual_store.lookup(
            "https://globex.myworkdayjobs.com/de-DE/careers/job/NYC/apply", "apply", "workday"
        )

        assert found is not None
        assert found.id == saved.id

    @pytest.mark.asyncio
    async def test_lookup_miss_returns_none(self, manual_store, sample_steps):
        await manual_store.save_from_trace(sample_steps, _meta())
        assert await manual_store.lookup("https://example.com/apply", "apply") is None

    @pytest.mark.asyncio
    async def test_lookup_requires_exact_task(self, manual_store, sample_steps):
        await manual_store.save_from_trace(sample_steps, _meta())
        assert await manual_store.lookup(WORKDAY_URL, "signup") is None

    @pytest.mark.asyncio
    async def test_lookup_platform_filter(self, manual_store, sample_steps):
        await manual_store.save_from_trace(sample_steps, _meta())
        assert await manual_store.lookup(WORKDAY_URL, "apply", "lever") is None
        assert await manual_store.lookup(WORKDAY_URL, "apply") is not None

    @pytest.mark.asyncio
    async def test_healthiest_matching_candidate_wins(self, manual_store, repository, sample_steps):
        broad = await manual_store.save_from_action_book(
            sample_steps, _meta(url_pattern="*.myworkdayjobs.com/*/careers/job/*/apply")
        )
        exact = await manual_store.save_from_trace(sample_steps, _meta())
        await repository.update(broad.id, {"health_score": 95})
        await repository.update(exact.id, {"health_score": 90})

        found = await manual_store.lookup(WORKDAY_URL, "apply", "workday")

        assert found.id == broad.id

    @pytest.mark.asyncio
    async def test_zero_health_never_returned(self, manual_store, repository, sample_steps):
        saved = await manual_store.save_from_trace(sample_steps, _meta())
        await repository.update(saved.id, {"health_score": 0})
        assert await manual_store.lookup(WORKDAY_URL, "apply") is None

    @pytest.mark.asyncio
    async def test_candidates_capped(self, repository, sample_steps):
        store = ManualStore(repository=repository, lookup_limit=1)
        await store.save_from_action_book(sample_steps, _meta(url_pattern="example.com/other"))
        target = await store.save_from_action_book(sample_steps, _meta())
        await repository.update(target.id, {"health_score": 10})

        assert await store.lookup(WORKDAY_URL, "apply") is None

    @pytest.mark.asyncio
    async def test_get(self, manual_store, sample_steps):
        saved = await manual_store.save_from_trace(sample_steps, _meta())
        assert (await manual_store.get(saved.id)).id == saved.id
        assert await manual_store.get("missing") is None


# ── Health ───────────────────────────────────────────────────────────


class TestManualStoreHealth:
    @pytest.mark.asyncio
    async def test_record_success(self, manual_store, repository, sample_steps):
        saved = await manual_store.save_from_action_book(sample_steps, _meta())

        await manual_store.record_success(saved.id)

        row = await repository.get(saved.id)
        assert row.health_score == 82
        assert row.success_count == 1
        assert row.last_used is not None

    @pytest.mark.asyncio
    async def test_record_failure(self, manual_store, repository, sample_steps):
        saved = await manual_store.save_from_trace(sample_steps, _meta())

        await manual_store.record_failure(saved.id)

        row = await repository.get(saved.id)
        assert row.health_score == 95
        assert row.failure_count == 1

    @pytest.mark.asyncio
    async def test_sixth_failure_is_severe(self, manual_store, repository, sample_steps):
        saved = await manual_store.save_from_trace(sample_steps, _meta())
        for _ in range(6):
            await manual_store.record_failure(saved.id)

        row = await repository.get(saved.id)
        assert row.health_score == 60
        assert row.failure_count == 6

    @pytest.mark.asyncio
    async def test_unknown_id_is_noop(self, manual_store, repository):
        await manual_store.record_success("missing")
        await manual_store.record_failure("missing")
        assert repository.count() == 0

    @pytest.mark.asyncio
    async def test_locks_released_for_every_id(self, manual_store, sample_steps):
        saved = await manual_store.save_from_trace(sample_steps, _meta())

        await manual_store.record_success(saved.id)
        for i in range(20):
            await manual_store.record_failure(f"missing-{i}")

        assert manual_store._locks == {}
        assert manual_store._lock_users == {}

    @pytest.mark.asyncio
    async def test_concurrent_outcomes_not_lost(self, manual_store, repository, sample_steps):
        saved = await manual_store.save_from_trace(sample_steps, _meta())
        await repository.update(saved.id, {"health_score": 50})

        await asyncio.gather(*(
            [manual_store.record_success(saved.id) for _ in range(5)]
            + [manual_store.record_failure(saved.id) for _ in range(3)]
        ))

        row = await repository.get(saved.id)
        assert row.success_count == 5
        assert row.failure_count == 3
        assert row.health_score == 50 + 5 * 2 - 3 * 5
        assert manual_store._locks == {}

    def test_pure_helpers_exposed(self):
        assert ManualStore.compute_health(100, 0, "failure") == 95
        assert ManualStore.url_matches_pattern(WORKDAY_URL, ManualStore.url_to_pattern(WORKDAY_URL))


class TestActionManual:
    def test_empty_steps_rejected(self):
        with pytest.raises(ValueError):
            ActionManual(
                id="m", url_pattern="*", task_pattern="apply", platform=None,
                steps=[], health=1.0, source=ManualSource.RECORDED,
            )

    def test_health_bounds(self):
        step = ManualStep(order=0, action=ActionKind.CLICK, locator=LocatorDescriptor(css="#x"))
        with pytest.raises(ValueError):
            ActionManual(
                id="m", url_pattern="*", task_pattern="apply", platform=None,
                steps=[step], health=1.2, source=ManualSource.RECORDED,
            )

    def test_is_replayable(self):
        step = ManualStep(order=0, action=ActionKind.CLICK, locator=LocatorDescriptor(css="#x"))
        manual = ActionManual(
            id="m", url_pattern="*", task_pattern="apply", platform=None,
            steps=[step], health=0.3, source=ManualSource.IMPORTED,
        )
        assert not manual.is_replayable
