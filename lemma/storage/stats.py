"""File count and size statistics, per workspace and system-wide.

Nothing is cached: each call walks the tree.  ``.git`` directories are
skipped, directories themselves are not counted, and symlinks are never
followed.
"""

from __future__ import annotations

import os
from pathlib import Path

from lemma.storage.errors import NotFoundError, StorageIOError
from lemma.storage.models.files import FileCountStats
from lemma.storage.tree import GIT_DIR_NAME
from lemma.storage.workspace import WorkspaceLifecycle


class StatsCollector:
    def __init__(self, lifecycle: WorkspaceLifecycle) -> None:
        self._lifecycle = lifecycle

    def get_file_stats(self, user_id: int | str, workspace_id: int | str) -> FileCountStats:
        """Count files and bytes in one workspace.  Raises ``NotFoundError`` if it doesn't exist."""
        root = self._lifecycle.workspace_root(user_id, workspace_id)
        if not root.is_dir():
            raise NotFoundError(f"{user_id}/{workspace_id}", "workspace directory does not exist")
        return count_files(root)

    def get_total_file_stats(self) -> FileCountStats:
        """Sum per-workspace stats over every ``{user}/{workspace}`` directory.

        Entries outside that two-level layout are not counted.
        """
        total = FileCountStats()
        base = self._lifecycle.base_dir
        if not base.is_dir():
            return total
        for user_dir in _subdirs(base):
            for workspace_dir in _subdirs(user_dir):
                total += count_files(workspace_dir)
        return total


def count_files(directory: Path) -> FileCountStats:
    """Walk *directory* and sum regular file count and size."""
    total_files = 0
    total_size = 0

    def _on_error(exc: OSError) -> None:
        msg = f"Error counting files: {exc.strerror or exc}"
        raise StorageIOError(msg) from exc

    for dirpath, dirnames, filenames in os.walk(directory, onerror=_on_error, followlinks=False):
        if GIT_DIR_NAME in dirnames:
            dirnames.remove(GIT_DIR_NAME)
        for name in filenames:
            try:
                st = os.lstat(os.path.join(dirpath, name))
            except FileNotFoundError:
                # Removed between listing and stat.
                continue
            except OSError as exc:
                msg = f"Failed to get file info for {name}: {exc.strerror or exc}"
                raise StorageIOError(msg) from exc
            total_files += 1
            total_size += st.st_size

    return FileCountStats(total_files=total_files, total_size=total_size)


def _subdirs(directory: Path) -> list[Path]:
    try:
        with os.scandir(directory) as entries:
            return [Path(e.path) for e in entries if e.is_dir(follow_symlinks=False) and e.name != GIT_DIR_NAME]
    except OSError as exc:
        msg = f"Error counting files: {exc.strerror or exc}"
        raise StorageIOError(msg) from exc
