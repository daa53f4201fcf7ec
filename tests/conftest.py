"""Pytest configuration for the autoreplay test suite."""

from __future__ import annotations

import os

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: tests that sleep on real timers (settle delays, stale retries)",
    )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ``AUTOREPLAY_*`` variables from the host out of every test."""
    for name in list(os.environ):
        if name.startswith("AUTOREPLAY_"):
            monkeypatch.delenv(name, raising=False)
