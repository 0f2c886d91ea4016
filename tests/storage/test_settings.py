"""Tests for LemmaSettings and logging setup."""

from __future__ import annotations

import io
import json
import sys
from collections.abc import Iterator

import pytest
from loguru import logger

from lemma.storage.log import NO_WORKSPACE, setup_logging, workspace_context
from lemma.storage.models.enums import GitAttachPolicy
from lemma.storage.settings import LemmaSettings, _get_settings_cached, get_settings


def test_defaults() -> None:
    settings = LemmaSettings(_env_file=None)

    assert settings.log_level == "INFO"
    assert settings.log_file is None
    assert settings.log_json is False
    assert settings.data_root == "./data"
    assert settings.data_prefix is None
    assert settings.show_hidden_files is False
    assert settings.move_overwrite is True
    assert settings.lock_reads is True
    assert settings.lock_timeout is None
    assert settings.git_binary == "git"
    assert settings.git_timeout == 120.0
    assert settings.git_attach_policy is GitAttachPolicy.REFUSE
    assert settings.git_default_branch == "main"


def test_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("LEMMA_DATA_ROOT", str(tmp_path))
    monkeypatch.setenv("LEMMA_DATA_PREFIX", "tenant")
    monkeypatch.setenv("LEMMA_GIT_ATTACH_POLICY", "merge")
    monkeypatch.setenv("LEMMA_LOCK_TIMEOUT", "2.5")
    monkeypatch.setenv("lemma_show_hidden_files", "true")

    settings = get_settings()

    assert settings.data_root == str(tmp_path)
    assert settings.data_prefix == "tenant"
    assert settings.git_attach_policy is GitAttachPolicy.MERGE
    assert settings.lock_timeout == 2.5
    assert settings.show_hidden_files is True


def test_env_file(tmp_path) -> None:
    (tmp_path / ".env").write_text("LEMMA_GIT_TIMEOUT=7\nLEMMA_GIT_DEFAULT_BRANCH=trunk\n")

    settings = get_settings()

    assert settings.git_timeout == 7.0
    assert settings.git_default_branch == "trunk"


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    monkeypatch.setenv("LEMMA_LOG_LEVEL", "DEBUG")
    assert get_settings() is first

    _get_settings_cached.cache_clear()
    assert get_settings().log_level == "DEBUG"


def test_invalid_attach_policy(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEMMA_GIT_ATTACH_POLICY", "clobber")
    with pytest.raises(ValueError):
        LemmaSettings(_env_file=None)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture
def restore_loguru() -> Iterator[None]:
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_setup_logging_follows_level(restore_loguru) -> None:
    buffer = io.StringIO()
    setup_logging(LemmaSettings(_env_file=None, log_level="warning"), sink=buffer)

    logger.info("quiet message")
    logger.warning("loud message")

    output = buffer.getvalue()
    assert "loud message" in output
    assert "quiet message" not in output


def test_workspace_context_tags_records(log_output: io.StringIO) -> None:
    with workspace_context(1, 7):
        logger.info("inside")
    logger.info("outside")

    lines = log_output.getvalue().splitlines()
    assert any("[1/7]" in line and "inside" in line for line in lines)
    assert any(f"[{NO_WORKSPACE}]" in line and "outside" in line for line in lines)


def test_json_logging(restore_loguru) -> None:
    buffer = io.StringIO()
    setup_logging(LemmaSettings(_env_file=None, log_json=True), sink=buffer)

    with workspace_context(2, 3):
        logger.info("structured")

    records = [json.loads(line) for line in buffer.getvalue().splitlines()]
    record = next(r["record"] for r in records if r["record"]["message"] == "structured")
    assert record["extra"]["workspace"] == "2/3"
    assert record["level"]["name"] == "INFO"


def test_log_file(tmp_path, restore_loguru) -> None:
    log_file = tmp_path / "logs" / "lemma.log"
    setup_logging(LemmaSettings(_env_file=None, log_file=str(log_file)), sink=io.StringIO())

    logger.info("written to disk")
    logger.remove()

    assert "written to disk" in log_file.read_text(encoding="utf-8")
