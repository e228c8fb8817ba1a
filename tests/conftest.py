"""
Shared pytest fixtures and configuration for schedspine tests.

This module provides:
- Auto-marking of tests by location (unit / integration)
- structlog reset between tests, so a test that configures logging (the
  CLI does) cannot filter out events another test captures
- A clean ``SCHEDSPINE_*`` environment
"""

import os
from pathlib import Path

import pytest
import structlog


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path) or "concurrency" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Drop SCHEDSPINE_* variables and run from an empty directory (no stray .env)."""
    for name in list(os.environ):
        if name.startswith("SCHEDSPINE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
