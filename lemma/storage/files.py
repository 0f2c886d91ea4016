"""Byte-level file CRUD inside one workspace root.

Every path argument is resolved through the sandbox independently before
the filesystem is touched.

Writes are atomic: data is written to a temporary file in the same
directory, then renamed onto the target.  Concurrent readers see either the
old content or the new content, never a partial file.

``FileStore`` does no locking of its own; ``StorageService`` runs the
mutating calls under the workspace lock owned by ``GitCoordinator``.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import stat
import tempfile
from pathlib import Path

from loguru import logger

from lemma.storage.errors import FileConflictError, NotFoundError, PathValidationError, StorageIOError
from lemma.storage.sandbox import relative_path, resolve, resolve_entry

_NEW_FILE_MODE = 0o644


class FileStore:
    """Get, save, delete and move files under ``root``."""

    def __init__(self, root: str | Path, *, move_overwrite: bool = True) -> None:
        self._root = Path(root)
        self._move_overwrite = move_overwrite

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        return resolve(self._root, path)

    def _entry(self, path: str) -> Path:
        return resolve_entry(self._root, path)

    # -- Read ------------------------------------------------------------------

    def get_content(self, path: str) -> bytes:
        """Return the file's bytes.  Raises ``NotFoundError`` for missing files and directories."""
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError(path, "file not found")
        try:
            return target.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(path, "file not found") from None
        except OSError as exc:
            msg = f"Failed to read {path}: {exc.strerror or exc}"
            raise StorageIOError(msg) from exc

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).exists()
        except PathValidationError:
            return False

    # -- Write -----------------------------------------------------------------

    def save(self, path: str, content: bytes) -> None:
        """Write *content* to *path*, creating parent directories as needed."""
        target = self._resolve(path)
        if target == self._root.resolve():
            raise PathValidationError(path, "cannot write to workspace root")
        if target.is_dir():
            msg = f"A directory exists at {path}"
            raise FileConflictError(msg)

        try:
            _atomic_write(target, content)
        except NotADirectoryError as exc:
            msg = f"A parent of {path} is a file"
            raise FileConflictError(msg) from exc
        except FileExistsError as exc:
            msg = f"A parent of {path} is a file"
            raise FileConflictError(msg) from exc
        except OSError as exc:
            msg = f"Failed to save {path}: {exc.strerror or exc}"
            raise StorageIOError(msg) from exc

        logger.debug("File saved: {} ({} bytes)", relative_path(self._root, target), len(content))

    def delete(self, path: str) -> None:
        """Delete a file, or a directory with everything under it.

        A symlink is removed itself; its target is left alone.
        """
        target = self._entry(path)
        if target == self._root.resolve():
            raise PathValidationError(path, "cannot delete workspace root")
        if not os.path.lexists(target):
            raise NotFoundError(path, "file not found")

        try:
            if _is_real_dir(target):
                shutil.rmtree(target)
            else:
                target.unlink()
        except FileNotFoundError:
            raise NotFoundError(path, "file not found") from None
        except OSError as exc:
            msg = f"Failed to delete {path}: {exc.strerror or exc}"
            raise StorageIOError(msg) from exc

        logger.debug("File deleted: {}", relative_path(self._root, target))

    def move(self, src: str, dest: str, *, overwrite: bool | None = None) -> None:
        """Rename *src* to *dest* within the workspace.

        An existing *dest* is replaced when *overwrite* is true (defaults to
        the store's ``move_overwrite`` setting), otherwise
        ``FileConflictError`` is raised.  Symlinks are renamed as entries,
        never through to their targets.
        """
        source = self._entry(src)
        target = self._entry(dest)
        root = self._root.resolve()

        if root in (source, target):
            raise PathValidationError(src if source == root else dest, "cannot move workspace root")
        if not os.path.lexists(source):
            raise NotFoundError(src, "file not found")
        if source == target:
            return
        source_is_dir = _is_real_dir(source)
        if source_is_dir and source in target.parents:
            raise PathValidationError(dest, "cannot move a directory into itself")

        allow_overwrite = self._move_overwrite if overwrite is None else overwrite
        if os.path.lexists(target):
            if not allow_overwrite:
                msg = f"Destination already exists: {dest}"
                raise FileConflictError(msg)
            if _is_real_dir(target) != source_is_dir:
                msg = f"Cannot replace {dest} with an entry of a different type"
                raise FileConflictError(msg)
            if source.is_symlink() and not target.is_symlink() and self._resolve(src) == target:
                msg = f"Cannot replace {dest} with a symlink that points to it"
                raise FileConflictError(msg)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if _is_real_dir(target):
                shutil.rmtree(target)
            os.replace(source, target)
        except OSError as exc:
            msg = f"Failed to move {src} to {dest}: {exc.strerror or exc}"
            raise StorageIOError(msg) from exc

        logger.debug("File moved: {} -> {}", relative_path(self._root, source), relative_path(self._root, target))


# -- Sync helpers ----------------------------------------------------------------


def _is_real_dir(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()


def _atomic_write(path: Path, data: bytes) -> None:
    """Write data atomically: temp file + rename.

    The temp file is created in the target's directory so the rename never
    crosses a filesystem boundary.  An existing file keeps its permission
    bits; new files get 0o644.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        mode = stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        mode = _NEW_FILE_MODE
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on any failure.
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
