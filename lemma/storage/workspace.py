"""Workspace directory lifecycle.

Real paths on the host::

    {data_root}/{prefix}/{user_id}/{workspace_id}/

When prefix is None, the path collapses to::

    {data_root}/{user_id}/{workspace_id}/

Callers never see these paths; they address files by workspace-relative
path only.  The directory is created when the workspace record is created
and removed when the workspace (or its owner) is deleted.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from loguru import logger

from lemma.storage.errors import PathValidationError, StorageIOError

WorkspaceKey = tuple[str, str]


def _segment(value: int | str, kind: str) -> str:
    """Validate that an identifier is usable as a single directory name."""
    text = str(value)
    if not text or text in {".", ".."} or "/" in text or "\\" in text or "\x00" in text:
        raise PathValidationError(text, f"invalid {kind} id")
    return text


def workspace_key(user_id: int | str, workspace_id: int | str) -> WorkspaceKey:
    """Normalised ``(user_id, workspace_id)`` key used for locks and client maps."""
    return _segment(user_id, "user"), _segment(workspace_id, "workspace")


def resolve_base_dir(data_root: str | Path, prefix: str | None = None) -> Path:
    """Build the storage base: ``{data_root}/{prefix}`` or just ``{data_root}``."""
    base = Path(data_root)
    if prefix:
        base = base / prefix
    return base


class WorkspaceLifecycle:
    """Creates and destroys workspace root directories under ``base_dir``."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base

    def workspace_root(self, user_id: int | str, workspace_id: int | str) -> Path:
        """Real host path for a workspace: ``{base}/{user_id}/{workspace_id}``."""
        user, workspace = workspace_key(user_id, workspace_id)
        return self._base / user / workspace

    def workspace_exists(self, user_id: int | str, workspace_id: int | str) -> bool:
        return self.workspace_root(user_id, workspace_id).is_dir()

    def initialize_user_workspace(self, user_id: int | str, workspace_id: int | str) -> Path:
        """Create the workspace directory and its ancestors (idempotent)."""
        root = self.workspace_root(user_id, workspace_id)
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Failed to create workspace directory: {exc.strerror or exc}"
            raise StorageIOError(msg) from exc
        logger.debug("Workspace initialised: user={} workspace={}", user_id, workspace_id)
        return root

    def delete_user_workspace(self, user_id: int | str, workspace_id: int | str) -> None:
        """Remove the workspace directory tree.  No-op if it doesn't exist."""
        root = self.workspace_root(user_id, workspace_id)
        try:
            _rmtree(root)
        except OSError as exc:
            msg = f"Failed to delete workspace directory: {exc.strerror or exc}"
            raise StorageIOError(msg) from exc
        logger.info("Workspace deleted: user={} workspace={}", user_id, workspace_id)


def _rmtree(path: Path) -> None:
    """Remove directory tree.  No-op if path doesn't exist."""
    if path.is_symlink():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)
