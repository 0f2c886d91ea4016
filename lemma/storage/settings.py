"""Engine configuration loaded from LEMMA_* environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from lemma.storage.models.enums import GitAttachPolicy


class LemmaSettings(BaseSettings):
    """Lemma storage engine settings.

    All fields are read from environment variables with the ``LEMMA_`` prefix.
    For example, ``LEMMA_DATA_ROOT=/srv/lemma`` maps to ``data_root``.

    Per-workspace git settings (remote, token, commit identity) are **not**
    managed here -- they live in the workspace metadata and reach the engine
    as a ``GitConfig``.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEMMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    log_file: str | None = None
    """Also write logs to this file, rotated at ``log_rotation``."""

    log_rotation: str = "10 MB"
    log_json: bool = False
    """Emit one JSON object per line instead of formatted text."""

    # -- Data storage ----------------------------------------------------------
    data_root: str = "./data"
    """Root directory holding every workspace."""

    data_prefix: str | None = None
    """Optional namespace inserted below ``data_root``.

    When set, workspaces live at ``{data_root}/{data_prefix}/{user}/{workspace}``.
    """

    # -- File operations -------------------------------------------------------
    show_hidden_files: bool = False
    """Default for tree listings when the caller does not say."""

    move_overwrite: bool = True
    """Whether a move may replace an existing destination."""

    lock_reads: bool = True
    """Take the workspace lock for reads too, so they never see a git checkout mid-way."""

    lock_timeout: float | None = None
    """Seconds to wait for a workspace lock before ``WorkspaceBusyError``.  None waits forever."""

    # -- Git -------------------------------------------------------------------
    git_binary: str = "git"
    git_timeout: float = 120.0
    """Per-command timeout for git subprocesses.  Expiry is a ``GitNetworkError``."""

    git_attach_policy: GitAttachPolicy = GitAttachPolicy.REFUSE
    """What to do when git is enabled on a workspace that already has files."""

    git_default_branch: str = "main"


def get_settings() -> LemmaSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> LemmaSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return LemmaSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
