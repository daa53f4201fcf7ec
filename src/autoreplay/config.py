"""Configuration helpers for the replay engine and section orchestrator."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

_ENV_PREFIX = "AUTOREPLAY_"
_ENV_LOADED = False

# field name -> environment suffix
_ENV_NAMES = {
    "resolver_timeout_ms": "RESOLVER_TIMEOUT_MS",
    "stale_retry_delay_ms": "STALE_RETRY_DELAY_MS",
    "default_wait_after_ms": "WAIT_AFTER_MS",
    "default_wait_ms": "DEFAULT_WAIT_MS",
    "max_pages": "MAX_PAGES",
    "max_stuck_count": "MAX_STUCK",
    "max_attempts_per_layer": "MAX_ATTEMPTS_PER_LAYER",
    "cost_budget": "COST_BUDGET",
    "lookup_limit": "LOOKUP_LIMIT",
    "manual_dir": "MANUAL_DIR",
}


@dataclass(frozen=True)
class EngineConfig:
    """Runtime settings shared by the replay and orchestration services."""

    resolver_timeout_ms: int = 3000
    stale_retry_delay_ms: int = 100
    default_wait_after_ms: int = 0
    default_wait_ms: int = 1000
    max_pages: int = 15
    max_stuck_count: int = 3
    max_attempts_per_layer: int = 2
    cost_budget: float = 1.0
    lookup_limit: int = 10
    manual_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        for name in (
            "resolver_timeout_ms",
            "stale_retry_delay_ms",
            "default_wait_after_ms",
            "default_wait_ms",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        if self.max_pages < 1:
            raise ValueError(f"max_pages must be at least 1, got {self.max_pages}")
        if self.max_attempts_per_layer < 1:
            raise ValueError(
                f"max_attempts_per_layer must be at least 1, got {self.max_attempts_per_layer}"
            )
        if self.lookup_limit < 1:
            raise ValueError(f"lookup_limit must be at least 1, got {self.lookup_limit}")

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Return a copy with the provided (non-None) overrides applied."""

        applied = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(applied) - {f.name for f in fields(self)}
        if unknown:
            raise TypeError(f"Unknown config fields: {', '.join(sorted(unknown))}")
        return replace(self, **applied) if applied else self


def load_engine_config(**overrides: Any) -> EngineConfig:
    """Load configuration from ``AUTOREPLAY_*`` environment variables and overrides."""

    _ensure_env_loaded()
    defaults = EngineConfig()
    values = {}
    for f in fields(EngineConfig):
        raw = os.getenv(_ENV_PREFIX + _ENV_NAMES[f.name])
        if raw is None or not raw.strip():
            continue
        values[f.name] = _coerce(f.name, raw.strip(), getattr(defaults, f.name))
    return EngineConfig(**values).with_overrides(**overrides)


def _coerce(name: str, raw: str, default: Any) -> Any:
    if name == "manual_dir":
        return Path(raw).expanduser()
    try:
        if isinstance(default, float):
            return float(raw)
        return int(raw)
    except ValueError:
        raise ValueError(
            f"{_ENV_PREFIX}{_ENV_NAMES[name]} must be numeric, got {raw!r}"
        ) from None


def _ensure_env_loaded() -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    _ENV_LOADED = True
    dotenv_path = Path.cwd() / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path=dotenv_path)
    else:
        load_dotenv()
