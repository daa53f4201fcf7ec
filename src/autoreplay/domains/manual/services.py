"""Manual Domain Services.

ManualStore persists recorded manuals, finds the best one for a URL and
task, and moves health up or down as replays succeed or fail.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Sequence

from autoreplay.domains.shared import DEFAULT_PLATFORM

from .entities import ActionManual
from .repository import ManualRepository, ManualRow
from .url_patterns import url_matches_pattern, url_to_pattern
from .value_objects import (
    HealthOutcome,
    ManualMetadata,
    ManualSource,
    ManualStep,
    compute_health,
)

logger = logging.getLogger(__name__)


@dataclass
class ManualStore:
    """Health-scored manual cache over a ManualRepository.

    Health mutations for one manual id are serialised with an in-process
    lock; the repository remains responsible for cross-process atomicity.
    """
    repository: ManualRepository
    lookup_limit: int = 10
    _locks: Dict[str, asyncio.Lock] = field(default_factory=dict, repr=False)
    _lock_users: Dict[str, int] = field(default_factory=dict, repr=False)

    url_to_pattern = staticmethod(url_to_pattern)
    url_matches_pattern = staticmethod(url_matches_pattern)
    compute_health = staticmethod(compute_health)

    async def lookup(
        self, url: str, task_type: str, platform: Optional[str] = None
    ) -> Optional[ActionManual]:
        """Return the healthiest manual whose URL pattern matches ``url``.

        Candidates are ranked by health before pattern matching, so the
        first matching candidate wins even if a later one is more specific.
        """
        rows = await self.repository.select(task_type, platform, self.lookup_limit)
        for row in rows:
            if url_matches_pattern(url, row.url_pattern):
                logger.debug(
                    "Manual %s matched %s (pattern %s, health %.0f)",
                    row.id, url, row.url_pattern, row.health_score,
                )
                return ActionManual.from_row(row)
        return None

    async def get(self, manual_id: str) -> Optional[ActionManual]:
        row = await self.repository.get(manual_id)
        return ActionManual.from_row(row) if row is not None else None

    async def save_from_trace(
        self, steps: Sequence[ManualStep], metadata: ManualMetadata
    ) -> ActionManual:
        """Persist a live-recorded step sequence."""
        return await self._save(
            steps, metadata, ManualSource.RECORDED, url_to_pattern(metadata.url)
        )

    async def save_from_action_book(
        self, steps: Sequence[ManualStep], metadata: ManualMetadata
    ) -> ActionManual:
        """Persist an imported step sequence at reduced initial health."""
        pattern = (
            metadata.url_pattern
            or (url_to_pattern(metadata.url) if metadata.url else None)
            or ManualMetadata.WILDCARD_PATTERN
        )
        return await self._save(steps, metadata, ManualSource.IMPORTED, pattern)

    async def save_from_template(
        self, steps: Sequence[ManualStep], metadata: ManualMetadata
    ) -> ActionManual:
        """Persist a hand-authored template sequence."""
        pattern = metadata.url_pattern or url_to_pattern(metadata.url)
        return await self._save(steps, metadata, ManualSource.TEMPLATED, pattern)

    async def record_success(self, manual_id: str) -> None:
        async with self._locked(manual_id):
            row = await self.repository.get(manual_id)
            if row is None:
                return
            now = datetime.now()
            await self.repository.update(manual_id, {
                "health_score": compute_health(
                    row.health_score, row.failure_count, HealthOutcome.SUCCESS
                ),
                "success_count": row.success_count + 1,
                "last_used": now,
            })

    async def record_failure(self, manual_id: str) -> None:
        async with self._locked(manual_id):
            row = await self.repository.get(manual_id)
            if row is None:
                return
            health = compute_health(row.health_score, row.failure_count, HealthOutcome.FAILURE)
            await self.repository.update(manual_id, {
                "health_score": health,
                "failure_count": row.failure_count + 1,
            })
            logger.info(
                "Manual %s failed (%d failures), health %.0f -> %.0f",
                manual_id, row.failure_count + 1, row.health_score, health,
            )

    @asynccontextmanager
    async def _locked(self, manual_id: str) -> AsyncIterator[None]:
        """Hold the per-id lock; the lock is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(manual_id, asyncio.Lock())
        self._lock_users[manual_id] = self._lock_users.get(manual_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[manual_id] -= 1
            if not self._lock_users[manual_id]:
                del self._lock_users[manual_id]
                del self._locks[manual_id]

    async def _save(
        self,
        steps: Sequence[ManualStep],
        metadata: ManualMetadata,
        source: ManualSource,
        url_pattern: str,
    ) -> ActionManual:
        if not steps:
            raise ValueError("Cannot save a manual without steps")
        now = datetime.now()
        row = ManualRow(
            id=str(uuid.uuid4()),
            url_pattern=url_pattern,
            task_pattern=metadata.task_type,
            platform=metadata.platform or DEFAULT_PLATFORM,
            steps=[s.to_dict() for s in sorted(steps, key=lambda s: s.order)],
            health_score=source.initial_health,
            source=source.value,
            created_at=now,
            updated_at=now,
        )
        saved = await self.repository.insert(row)
        logger.info(
            "Saved %s manual %s for %s (%d steps)",
            source.value, saved.id, url_pattern, len(steps),
        )
        return ActionManual.from_row(saved)
