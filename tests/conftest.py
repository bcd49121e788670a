"""Shared pytest fixtures for safeaction tests."""

from pathlib import Path

import pytest

from safeaction.settings import clear_settings_cache

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixture_actions_dir() -> Path:
    """Actions directory of the basic fixture project."""
    return FIXTURES_DIR / "basic" / "server" / "actions"


@pytest.fixture(autouse=True)
def _fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()
