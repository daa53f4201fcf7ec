"""Repository Protocol and implementations for the Manual Context.

The store only needs four row operations: a filtered select ordered by
health, get-by-id, insert-returning-row and a partial update. Rows are
validated through the ``ManualRow`` pydantic model on every read and write.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from autoreplay.domains.shared import ManualSourceLiteral

logger = logging.getLogger(__name__)


class ManualNotFoundError(KeyError):
    """Raised when a manual id is required but absent."""


class ManualRow(BaseModel):
    """Persisted manual schema."""

    model_config = ConfigDict(extra="ignore")

    id: str
    url_pattern: str
    task_pattern: str
    platform: Optional[str] = None
    steps: List[Dict[str, Any]] = Field(min_length=1)
    health_score: float = Field(ge=0, le=100)
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    source: ManualSourceLiteral
    last_used: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


@runtime_checkable
class ManualRepository(Protocol):
    """Row store consumed by ManualStore."""

    async def select(
        self, task_pattern: str, platform: Optional[str] = None, limit: int = 10
    ) -> List[ManualRow]:
        """Rows with this exact task pattern and health > 0, healthiest first.

        When ``platform`` is given only rows with that exact platform qualify.
        """
        ...

    async def get(self, manual_id: str) -> Optional[ManualRow]:
        ...

    async def insert(self, row: ManualRow) -> ManualRow:
        ...

    async def update(self, manual_id: str, changes: Dict[str, Any]) -> Optional[ManualRow]:
        """Apply a partial update; returns None for unknown ids."""
        ...


def _filter_rows(
    rows: List[ManualRow], task_pattern: str, platform: Optional[str], limit: int
) -> List[ManualRow]:
    matching = [
        r for r in rows
        if r.task_pattern == task_pattern
        and r.health_score > 0
        and (platform is None or r.platform == platform)
    ]
    matching.sort(key=lambda r: r.health_score, reverse=True)
    return matching[:limit]


def _apply_changes(row: ManualRow, changes: Dict[str, Any]) -> ManualRow:
    data = row.model_dump()
    data["updated_at"] = datetime.now()
    data.update(changes)
    return ManualRow.model_validate(data)


class InMemoryManualRepository:
    """Dict-backed repository for tests and single-process use."""

    def __init__(self) -> None:
        self._rows: Dict[str, ManualRow] = {}

    async def select(
        self, task_pattern: str, platform: Optional[str] = None, limit: int = 10
    ) -> List[ManualRow]:
        return _filter_rows(list(self._rows.values()), task_pattern, platform, limit)

    async def get(self, manual_id: str) -> Optional[ManualRow]:
        return self._rows.get(manual_id)

    async def require(self, manual_id: str) -> ManualRow:
        row = await self.get(manual_id)
        if row is None:
            raise ManualNotFoundError(manual_id)
        return row

    async def insert(self, row: ManualRow) -> ManualRow:
        self._rows[row.id] = row
        return row

    async def update(self, manual_id: str, changes: Dict[str, Any]) -> Optional[ManualRow]:
        row = self._rows.get(manual_id)
        if row is None:
            return None
        updated = _apply_changes(row, changes)
        self._rows[manual_id] = updated
        return updated

    def count(self) -> int:
        return len(self._rows)

    def clear(self) -> None:
        self._rows.clear()


class JsonFileManualRepository:
    """JSON-file repository: one document per manual under ``storage_dir``.

    Writes go through a temp file and an atomic rename. All rows are
    cached in memory after the first load.

    Example:
        repo = JsonFileManualRepository(Path("~/.autoreplay/manuals").expanduser())
        store = ManualStore(repo)
    """

    def __init__(self, storage_dir: Optional[Path] = None):
        self.storage_dir = storage_dir or Path.home() / ".autoreplay" / "manuals"
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._cache: Optional[Dict[str, ManualRow]] = None

    def _get_file_path(self, manual_id: str) -> Path:
        safe_id = "".join(c if c.isalnum() or c in "-_" else "_" for c in manual_id)
        return self.storage_dir / f"{safe_id}.json"

    def _load_all(self) -> Dict[str, ManualRow]:
        if self._cache is not None:
            return self._cache
        rows: Dict[str, ManualRow] = {}
        for file_path in sorted(self.storage_dir.glob("*.json")):
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    row = ManualRow.model_validate(json.load(f))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable manual %s: %s", file_path.name, e)
                continue
            rows[row.id] = row
        self._cache = rows
        return rows

    def _write(self, row: ManualRow) -> None:
        file_path = self._get_file_path(row.id)
        temp_path = file_path.with_suffix(".json.tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(row.model_dump_json(indent=2))
        temp_path.replace(file_path)
        self._load_all()[row.id] = row

    async def select(
        self, task_pattern: str, platform: Optional[str] = None, limit: int = 10
    ) -> List[ManualRow]:
        return _filter_rows(list(self._load_all().values()), task_pattern, platform, limit)

    async def get(self, manual_id: str) -> Optional[ManualRow]:
        return self._load_all().get(manual_id)

    async def require(self, manual_id: str) -> ManualRow:
        row = await self.get(manual_id)
        if row is None:
            raise ManualNotFoundError(manual_id)
        return row

    async def insert(self, row: ManualRow) -> ManualRow:
        self._write(row)
        return row

    async def update(self, manual_id: str, changes: Dict[str, Any]) -> Optional[ManualRow]:
        row = self._load_all().get(manual_id)
        if row is None:
            return None
        updated = _apply_changes(row, changes)
        self._write(updated)
        return updated

    def invalidate_cache(self) -> None:
        """Drop cached rows so the next read goes back to disk."""
        self._cache = None
