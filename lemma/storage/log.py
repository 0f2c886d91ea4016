"""Logging setup for the storage engine.

Engine modules log through ``loguru.logger`` directly.  ``setup_logging``
installs the sinks described by ``LemmaSettings`` (stderr always, plus an
optional rotated file, either as text or one JSON object per line).

Records emitted inside ``workspace_context`` carry the workspace they concern
in ``extra["workspace"]``, rendered as ``[user/workspace]``::

    2024-05-01 12:00:00.000 | DEBUG    | [1/7] lemma.storage.files:92 - File saved: notes.md (12 bytes)
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

from loguru import logger

from lemma.storage.settings import LemmaSettings, get_settings

NO_WORKSPACE = "-"

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>[{extra[workspace]}]</magenta> "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(settings: LemmaSettings | None = None, *, sink: TextIO | None = None) -> None:
    """Replace loguru's sinks with the ones configured in *settings*.

    *sink* overrides stderr as the console stream (the CLI runner and tests
    pass their own).  Call once at process startup.
    """
    settings = settings or get_settings()
    level = settings.log_level.upper()

    logger.remove()
    logger.configure(extra={"workspace": NO_WORKSPACE})
    logger.add(sink or sys.stderr, level=level, format=_FORMAT, serialize=settings.log_json)
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=level,
            format=_FORMAT,
            serialize=settings.log_json,
            rotation=settings.log_rotation,
            encoding="utf-8",
        )

    logger.debug("Logging initialised (level={}, file={})", level, settings.log_file)


@contextmanager
def workspace_context(user_id: int | str, workspace_id: int | str) -> Iterator[None]:
    """Tag every record logged in this block (and this thread) with the workspace."""
    with logger.contextualize(workspace=f"{user_id}/{workspace_id}"):
        yield
