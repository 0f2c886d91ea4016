"""Shared test fixtures.

Every test runs with a clean ``LEMMA_*`` environment and an empty settings
cache, from inside its own temporary directory so no stray ``.env`` file
is picked up.
"""

from __future__ import annotations

import io
import os
import shutil
import sys
from collections.abc import Iterator

import pytest
from loguru import logger

from lemma.storage.log import setup_logging
from lemma.storage.settings import LemmaSettings, _get_settings_cached


def _clear_lemma_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("LEMMA_"):
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start each test with no LEMMA_* overrides and a fresh settings cache."""
    _clear_lemma_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()


@pytest.fixture
def log_output() -> Iterator[io.StringIO]:
    """Route engine logs (DEBUG and up) into a buffer, restoring loguru afterwards."""
    buffer = io.StringIO()
    setup_logging(LemmaSettings(_env_file=None, log_level="DEBUG"), sink=buffer)
    yield buffer
    logger.remove()
    logger.add(sys.stderr)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip tests marked ``git`` when the git executable is not installed."""
    if shutil.which("git") is not None:
        return
    skip_git = pytest.mark.skip(reason="git executable not found")
    for item in items:
        if item.get_closest_marker("git") is not None:
            item.add_marker(skip_git)
