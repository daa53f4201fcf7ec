"""Dependency Injection Container for the autoreplay domains.

This container wires together the bounded contexts:
- Manual Context: manual persistence and health scoring
- Locator Context: multi-strategy element resolution
- Cookbook Context: deterministic manual replay
- Execution Context: replay-or-fallback decision per job
- Orchestration Context: layered multi-page form filling

Usage:
    from autoreplay.container import get_container

    container = get_container()
    engine = container.execution_engine
    orchestrator = container.build_orchestrator([StructuralLayer()])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence

from autoreplay.domains.shared import EventSink

if TYPE_CHECKING:
    from autoreplay.config import EngineConfig
    from autoreplay.domains.cookbook import CookbookExecutor
    from autoreplay.domains.execution import ExecutionEngine
    from autoreplay.domains.locator import LocatorResolver
    from autoreplay.domains.manual import ManualRepository, ManualStore
    from autoreplay.domains.orchestration import Layer, SectionOrchestrator

logger = logging.getLogger(__name__)

# Singleton container instance
_container: Optional["ServiceContainer"] = None


@dataclass
class ServiceContainer:
    """Lazily builds and caches the engine services.

    Attributes:
        event_sink: Optional async sink handed to every event-emitting service

    The manual repository is file-backed when ``config.manual_dir`` is set
    and in-memory otherwise.
    """

    event_sink: EventSink = None

    _config: Optional["EngineConfig"] = field(default=None, repr=False)
    _repository: Optional["ManualRepository"] = field(default=None, repr=False)
    _manual_store: Optional["ManualStore"] = field(default=None, repr=False)
    _resolver: Optional["LocatorResolver"] = field(default=None, repr=False)
    _cookbook_executor: Optional["CookbookExecutor"] = field(default=None, repr=False)
    _execution_engine: Optional["ExecutionEngine"] = field(default=None, repr=False)

    @property
    def config(self) -> "EngineConfig":
        """Get the engine configuration (environment on first use)."""
        if self._config is None:
            from autoreplay.config import load_engine_config
            self._config = load_engine_config()
        return self._config

    @property
    def repository(self) -> "ManualRepository":
        if self._repository is None:
            from autoreplay.domains.manual import (
                InMemoryManualRepository,
                JsonFileManualRepository,
            )
            if self.config.manual_dir is not None:
                self._repository = JsonFileManualRepository(self.config.manual_dir)
                logger.debug("Using manual directory %s", self.config.manual_dir)
            else:
                self._repository = InMemoryManualRepository()
        return self._repository

    @property
    def manual_store(self) -> "ManualStore":
        if self._manual_store is None:
            from autoreplay.domains.manual import ManualStore
            self._manual_store = ManualStore(
                repository=self.repository, lookup_limit=self.config.lookup_limit
            )
        return self._manual_store

    @property
    def resolver(self) -> "LocatorResolver":
        if self._resolver is None:
            from autoreplay.domains.locator import LocatorResolver
            self._resolver = LocatorResolver.from_config(self.config)
        return self._resolver

    @property
    def cookbook_executor(self) -> "CookbookExecutor":
        if self._cookbook_executor is None:
            from autoreplay.domains.cookbook import CookbookExecutor
            self._cookbook_executor = CookbookExecutor(
                resolver=self.resolver,
                event_sink=self.event_sink,
                default_wait_after_ms=self.config.default_wait_after_ms,
                default_wait_ms=self.config.default_wait_ms,
            )
        return self._cookbook_executor

    @property
    def execution_engine(self) -> "ExecutionEngine":
        if self._execution_engine is None:
            from autoreplay.domains.execution import ExecutionEngine
            self._execution_engine = ExecutionEngine.from_config(
                self.config,
                manual_store=self.manual_store,
                cookbook_executor=self.cookbook_executor,
                event_sink=self.event_sink,
            )
        return self._execution_engine

    def build_orchestrator(self, layers: Sequence["Layer"]) -> "SectionOrchestrator":
        """Create a fresh orchestrator; one per job since it keeps the run's trace."""
        from autoreplay.domains.orchestration import SectionOrchestrator
        return SectionOrchestrator.from_config(self.config, layers, event_sink=self.event_sink)


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def reset_container() -> None:
    """Reset the container (for testing).

    Clears the singleton instance so a fresh container is created
    on next get_container() call.
    """
    global _container
    _container = None
