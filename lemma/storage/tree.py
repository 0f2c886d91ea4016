"""Workspace file tree listing and name search.

Listing order is part of the API contract: at every level directories come
first, then files, each sorted case-insensitively by name.

``.git`` is never listed or searched.  Symlinks are not followed into
directories, and a symlink whose target lies outside the workspace is
skipped entirely.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from pathlib import Path

from lemma.storage.errors import NotFoundError, PathValidationError, StorageIOError
from lemma.storage.models.files import FileNode
from lemma.storage.sandbox import is_within

GIT_DIR_NAME = ".git"


def _sort_key(entry: os.DirEntry[str]) -> tuple[str, str]:
    return entry.name.lower(), entry.name


class FileTreeIndexer:
    """Read-only view over the directory tree under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def list(self, *, show_hidden: bool = False) -> list[FileNode]:
        """Return the full tree as nested ``FileNode``s."""
        if not self._root.is_dir():
            raise NotFoundError("", "workspace directory does not exist")
        return self._walk(self._root, "", show_hidden=show_hidden)

    def find_by_name(self, filename: str, *, case_sensitive: bool = False) -> list[str]:
        """Return every relative path whose leaf name equals *filename*.

        Only files match.  Raises ``NotFoundError`` when nothing matches.
        """
        if not filename or "/" in filename or "\\" in filename or filename in {".", ".."}:
            raise PathValidationError(filename, "filename must be a single path segment")
        if not self._root.is_dir():
            raise NotFoundError("", "workspace directory does not exist")

        wanted = filename if case_sensitive else filename.lower()
        found: list[str] = []
        for rel_path, name in self._iter_files(self._root, ""):
            candidate = name if case_sensitive else name.lower()
            if candidate == wanted:
                found.append(rel_path)

        if not found:
            raise NotFoundError(filename, "file not found")
        return sorted(found)

    # -- Internals -------------------------------------------------------------

    def _scan(self, directory: Path) -> tuple[list[os.DirEntry[str]], list[os.DirEntry[str]]]:
        """Split *directory* into (dirs, files), both sorted, dropping unsafe entries."""
        dirs: list[os.DirEntry[str]] = []
        files: list[os.DirEntry[str]] = []
        try:
            with os.scandir(directory) as it:
                for entry in it:
                    if entry.name == GIT_DIR_NAME:
                        continue
                    if entry.is_symlink() and not is_within(self._root, entry.path):
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        dirs.append(entry)
                    else:
                        files.append(entry)
        except OSError as exc:
            msg = f"Failed to read directory {directory}: {exc.strerror or exc}"
            raise StorageIOError(msg) from exc

        dirs.sort(key=_sort_key)
        files.sort(key=_sort_key)
        return dirs, files

    def _walk(self, directory: Path, prefix: str, *, show_hidden: bool) -> list[FileNode]:
        dirs, files = self._scan(directory)
        nodes: list[FileNode] = []

        for entry in dirs:
            if not show_hidden and entry.name.startswith("."):
                continue
            path = f"{prefix}/{entry.name}" if prefix else entry.name
            nodes.append(
                FileNode(
                    name=entry.name,
                    path=path,
                    is_directory=True,
                    size=0,
                    modified_at=_mtime(entry),
                    children=self._walk(Path(entry.path), path, show_hidden=show_hidden),
                )
            )

        for entry in files:
            if not show_hidden and entry.name.startswith("."):
                continue
            path = f"{prefix}/{entry.name}" if prefix else entry.name
            nodes.append(
                FileNode(
                    name=entry.name,
                    path=path,
                    is_directory=False,
                    size=_size(entry),
                    modified_at=_mtime(entry),
                )
            )

        return nodes

    def _iter_files(self, directory: Path, prefix: str):
        """Yield ``(relative_path, name)`` for every file under *directory*."""
        dirs, files = self._scan(directory)
        for entry in files:
            yield (f"{prefix}/{entry.name}" if prefix else entry.name), entry.name
        for entry in dirs:
            path = f"{prefix}/{entry.name}" if prefix else entry.name
            yield from self._iter_files(Path(entry.path), path)


def _size(entry: os.DirEntry[str]) -> int:
    try:
        return entry.stat().st_size
    except OSError:
        # Dangling symlink inside the workspace.
        return 0


def _mtime(entry: os.DirEntry[str]) -> datetime | None:
    try:
        return datetime.fromtimestamp(entry.stat(follow_symlinks=False).st_mtime, tz=UTC)
    except OSError:
        return None
