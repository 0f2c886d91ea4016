"""Storage service -- the single entry point for workspace file and git operations.

Callers (web handlers, the CLI) pass an already-authenticated
``(user_id, workspace_id)`` pair plus workspace-relative paths; the service
derives the workspace root, runs the sandboxed file operation and, for
mutations, holds the workspace lock owned by ``GitCoordinator``::

    service = StorageService.from_settings()
    service.initialize_user_workspace(1, 7)
    service.save_file(1, 7, "notes/todo.md", b"- [ ] ship")
    service.auto_commit(1, 7, FileAction.CREATE, "notes/todo.md")

Reads take the same lock when ``lock_reads`` is on, so they never observe a
git checkout half-way through.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from functools import partial
from pathlib import Path

from loguru import logger

from lemma.storage.files import FileStore
from lemma.storage.git.base import GitClientFactory
from lemma.storage.git.client import SubprocessGitClient
from lemma.storage.git.coordinator import GitCoordinator
from lemma.storage.log import workspace_context
from lemma.storage.models.enums import FileAction
from lemma.storage.models.files import FileCountStats, FileNode
from lemma.storage.models.git import GitConfig
from lemma.storage.sandbox import resolve
from lemma.storage.settings import LemmaSettings, get_settings
from lemma.storage.stats import StatsCollector
from lemma.storage.tree import FileTreeIndexer
from lemma.storage.workspace import WorkspaceLifecycle, resolve_base_dir


class StorageService:
    """Workspace-scoped file storage with optional git sync."""

    def __init__(
        self,
        data_root: str | Path,
        *,
        data_prefix: str | None = None,
        client_factory: GitClientFactory | None = None,
        show_hidden_files: bool = False,
        move_overwrite: bool = True,
        lock_reads: bool = True,
        lock_timeout: float | None = None,
    ) -> None:
        self._lifecycle = WorkspaceLifecycle(resolve_base_dir(data_root, data_prefix))
        self._git = GitCoordinator(
            self._lifecycle,
            client_factory or SubprocessGitClient,
            lock_timeout=lock_timeout,
        )
        self._stats = StatsCollector(self._lifecycle)
        self._show_hidden_files = show_hidden_files
        self._move_overwrite = move_overwrite
        self._lock_reads = lock_reads

    @classmethod
    def from_settings(
        cls,
        settings: LemmaSettings | None = None,
        *,
        client_factory: GitClientFactory | None = None,
    ) -> StorageService:
        """Build a service from ``LemmaSettings`` (the cached env settings by default)."""
        settings = settings or get_settings()
        if client_factory is None:
            client_factory = partial(
                SubprocessGitClient,
                git_binary=settings.git_binary,
                timeout=settings.git_timeout,
                attach_policy=settings.git_attach_policy,
                default_branch=settings.git_default_branch,
            )
        return cls(
            settings.data_root,
            data_prefix=settings.data_prefix,
            client_factory=client_factory,
            show_hidden_files=settings.show_hidden_files,
            move_overwrite=settings.move_overwrite,
            lock_reads=settings.lock_reads,
            lock_timeout=settings.lock_timeout,
        )

    # -- Accessors -------------------------------------------------------------

    @property
    def lifecycle(self) -> WorkspaceLifecycle:
        return self._lifecycle

    @property
    def git(self) -> GitCoordinator:
        return self._git

    def _store(self, user_id: int | str, workspace_id: int | str) -> FileStore:
        return FileStore(self._lifecycle.workspace_root(user_id, workspace_id), move_overwrite=self._move_overwrite)

    def _indexer(self, user_id: int | str, workspace_id: int | str) -> FileTreeIndexer:
        return FileTreeIndexer(self._lifecycle.workspace_root(user_id, workspace_id))

    @contextlib.contextmanager
    def _reading(self, user_id: int | str, workspace_id: int | str) -> Iterator[None]:
        if not self._lock_reads:
            with workspace_context(user_id, workspace_id):
                yield
            return
        with self._git.locked(user_id, workspace_id):
            yield

    # -- Paths -----------------------------------------------------------------

    def validate_path(self, user_id: int | str, workspace_id: int | str, path: str) -> Path:
        """Resolve *path* inside the workspace.  Raises ``PathValidationError`` if it escapes."""
        return resolve(self._lifecycle.workspace_root(user_id, workspace_id), path)

    def get_workspace_path(self, user_id: int | str, workspace_id: int | str) -> Path:
        return self._lifecycle.workspace_root(user_id, workspace_id)

    # -- Workspace lifecycle ---------------------------------------------------

    def initialize_user_workspace(self, user_id: int | str, workspace_id: int | str) -> Path:
        with self._git.locked(user_id, workspace_id):
            return self._lifecycle.initialize_user_workspace(user_id, workspace_id)

    def delete_user_workspace(self, user_id: int | str, workspace_id: int | str) -> None:
        """Remove the workspace directory, dropping its git client first."""
        with self._git.locked(user_id, workspace_id):
            self._git.forget(user_id, workspace_id)
            self._lifecycle.delete_user_workspace(user_id, workspace_id)

    # -- Files -----------------------------------------------------------------

    def list_files(
        self,
        user_id: int | str,
        workspace_id: int | str,
        *,
        show_hidden: bool | None = None,
    ) -> list[FileNode]:
        if show_hidden is None:
            show_hidden = self._show_hidden_files
        with self._reading(user_id, workspace_id):
            return self._indexer(user_id, workspace_id).list(show_hidden=show_hidden)

    def find_file_by_name(
        self,
        user_id: int | str,
        workspace_id: int | str,
        filename: str,
        *,
        case_sensitive: bool = False,
    ) -> list[str]:
        with self._reading(user_id, workspace_id):
            return self._indexer(user_id, workspace_id).find_by_name(filename, case_sensitive=case_sensitive)

    def get_file_content(self, user_id: int | str, workspace_id: int | str, path: str) -> bytes:
        with self._reading(user_id, workspace_id):
            return self._store(user_id, workspace_id).get_content(path)

    def save_file(self, user_id: int | str, workspace_id: int | str, path: str, content: bytes) -> None:
        with self._git.locked(user_id, workspace_id):
            self._store(user_id, workspace_id).save(path, content)

    def delete_file(self, user_id: int | str, workspace_id: int | str, path: str) -> None:
        with self._git.locked(user_id, workspace_id):
            self._store(user_id, workspace_id).delete(path)

    def move_file(
        self,
        user_id: int | str,
        workspace_id: int | str,
        src: str,
        dest: str,
        *,
        overwrite: bool | None = None,
    ) -> None:
        with self._git.locked(user_id, workspace_id):
            self._store(user_id, workspace_id).move(src, dest, overwrite=overwrite)

    # -- Stats -----------------------------------------------------------------

    def get_file_stats(self, user_id: int | str, workspace_id: int | str) -> FileCountStats:
        with self._reading(user_id, workspace_id):
            return self._stats.get_file_stats(user_id, workspace_id)

    def get_total_file_stats(self) -> FileCountStats:
        return self._stats.get_total_file_stats()

    # -- Git -------------------------------------------------------------------

    def setup_git_repo(self, user_id: int | str, workspace_id: int | str, config: GitConfig) -> None:
        self._git.setup_git_repo(user_id, workspace_id, config)

    def disable_git_repo(self, user_id: int | str, workspace_id: int | str) -> None:
        self._git.disable_git_repo(user_id, workspace_id)

    def stage_commit_and_push(self, user_id: int | str, workspace_id: int | str, message: str) -> str:
        return self._git.stage_commit_and_push(user_id, workspace_id, message)

    def pull(self, user_id: int | str, workspace_id: int | str) -> None:
        self._git.pull(user_id, workspace_id)

    def auto_commit(
        self,
        user_id: int | str,
        workspace_id: int | str,
        action: FileAction | str,
        filename: str,
    ) -> str | None:
        commit_hash = self._git.auto_commit(user_id, workspace_id, action, filename)
        if commit_hash is not None:
            logger.debug("Auto-commit for {} {} in {}/{}", action, filename, user_id, workspace_id)
        return commit_hash
