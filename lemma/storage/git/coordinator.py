"""Git coordinator -- per-workspace git state and serialization.

State machine per workspace::

    Disabled --setup_git_repo--> Enabled --disable_git_repo--> Disabled
                                   |  ^
          stage_commit_and_push,   |  |
          pull, auto_commit -------+--+

The coordinator owns the ``WorkspaceLocks`` registry.  Every git operation
runs while holding the workspace's lock, and ``StorageService`` takes the
same lock around file mutations, so git can never observe a half-written
file.

Active clients are kept in memory keyed by ``(user_id, workspace_id)``;
the metadata layer calls ``setup_git_repo`` again after a restart.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger

from lemma.storage.errors import (
    GitNotConfiguredError,
    GitOperationError,
    GitUnknownError,
    InvalidCommitMessageError,
)
from lemma.storage.git.base import GitClient, GitClientFactory
from lemma.storage.git.client import SubprocessGitClient, remove_git_metadata
from lemma.storage.locks import WorkspaceLocks
from lemma.storage.log import workspace_context
from lemma.storage.models.enums import FileAction, GitOperation
from lemma.storage.models.git import GitConfig
from lemma.storage.workspace import WorkspaceKey, WorkspaceLifecycle, workspace_key


class GitCoordinator:
    """Wires git clients to workspace directories and serializes their use."""

    def __init__(
        self,
        lifecycle: WorkspaceLifecycle,
        client_factory: GitClientFactory = SubprocessGitClient,
        *,
        lock_timeout: float | None = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._client_factory = client_factory
        self._locks = WorkspaceLocks(timeout=lock_timeout)
        self._clients: dict[WorkspaceKey, tuple[GitClient, GitConfig]] = {}
        self._clients_guard = threading.Lock()

    # -- Locking ---------------------------------------------------------------

    @contextmanager
    def locked(self, user_id: int | str, workspace_id: int | str) -> Iterator[None]:
        """Hold the workspace lock, tagging log records with the workspace.

        Raises ``WorkspaceBusyError`` on timeout.
        """
        with workspace_context(user_id, workspace_id), self._locks.hold(user_id, workspace_id):
            yield

    # -- Query -----------------------------------------------------------------

    def is_enabled(self, user_id: int | str, workspace_id: int | str) -> bool:
        with self._clients_guard:
            return workspace_key(user_id, workspace_id) in self._clients

    def config_for(self, user_id: int | str, workspace_id: int | str) -> GitConfig | None:
        with self._clients_guard:
            entry = self._clients.get(workspace_key(user_id, workspace_id))
        return entry[1] if entry else None

    def _client(self, user_id: int | str, workspace_id: int | str, operation: str) -> GitClient:
        with self._clients_guard:
            entry = self._clients.get(workspace_key(user_id, workspace_id))
        if entry is None:
            raise GitNotConfiguredError(operation, "git settings not configured for this workspace")
        return entry[0]

    # -- Lifecycle -------------------------------------------------------------

    def setup_git_repo(self, user_id: int | str, workspace_id: int | str, config: GitConfig) -> None:
        """Enable git sync: clone into, attach to, or pull the workspace.

        On failure the client is not registered, pre-existing files are left
        untouched, and the ``GitOperationError`` propagates.
        """
        if not config.enabled:
            msg = "Cannot set up git with a disabled GitConfig"
            raise ValueError(msg)

        key = workspace_key(user_id, workspace_id)
        root = self._lifecycle.workspace_root(user_id, workspace_id)
        with self.locked(user_id, workspace_id):
            root.mkdir(parents=True, exist_ok=True)
            client = self._client_factory(config, root)
            try:
                client.ensure_repo()
            except GitOperationError as exc:
                logger.warning("Git: setup failed for workspace {}/{}: {}", user_id, workspace_id, exc)
                raise
            with self._clients_guard:
                self._clients[key] = (client, config)
        logger.info("Git: enabled for workspace {}/{}", user_id, workspace_id)

    def disable_git_repo(self, user_id: int | str, workspace_id: int | str) -> None:
        """Disable git sync and remove the ``.git`` metadata, never file content.

        The client is dropped first, so the workspace counts as disabled
        even if removing the metadata fails.  That failure is raised as
        ``GitUnknownError`` for the caller to report or ignore.
        """
        self.forget(user_id, workspace_id)
        root = self._lifecycle.workspace_root(user_id, workspace_id)
        with self.locked(user_id, workspace_id):
            try:
                removed = remove_git_metadata(root)
            except OSError as exc:
                logger.warning("Git: failed to remove metadata for workspace {}/{}: {}", user_id, workspace_id, exc)
                raise GitUnknownError(GitOperation.DISABLE, exc.strerror or str(exc)) from exc
        logger.info("Git: disabled for workspace {}/{} (metadata removed={})", user_id, workspace_id, removed)

    def forget(self, user_id: int | str, workspace_id: int | str) -> None:
        """Drop the in-memory client without touching disk."""
        with self._clients_guard:
            self._clients.pop(workspace_key(user_id, workspace_id), None)

    # -- Operations ------------------------------------------------------------

    def stage_commit_and_push(self, user_id: int | str, workspace_id: int | str, message: str) -> str:
        """Stage everything, commit with *message*, push.  Returns the commit hash."""
        if not message or not message.strip():
            msg = "Commit message is required"
            raise InvalidCommitMessageError(msg)

        with self.locked(user_id, workspace_id):
            client = self._client(user_id, workspace_id, GitOperation.COMMIT)
            commit_hash = client.commit(message)
            client.push()
        logger.info("Git: workspace {}/{} committed and pushed {}", user_id, workspace_id, commit_hash[:12])
        return commit_hash

    def pull(self, user_id: int | str, workspace_id: int | str) -> None:
        """Integrate remote changes.  Fails with ``GitConflictError`` on local edits."""
        with self.locked(user_id, workspace_id):
            client = self._client(user_id, workspace_id, GitOperation.PULL)
            client.pull()
        logger.info("Git: workspace {}/{} pulled", user_id, workspace_id)

    def auto_commit(
        self,
        user_id: int | str,
        workspace_id: int | str,
        action: FileAction | str,
        filename: str,
    ) -> str | None:
        """Commit and push after a file mutation when the workspace asks for it.

        Returns the commit hash, or ``None`` when git or auto-commit is off.
        """
        config = self.config_for(user_id, workspace_id)
        if config is None or not config.auto_commit:
            return None
        message = config.render_commit_message(str(action), filename)
        return self.stage_commit_and_push(user_id, workspace_id, message)
