"""Git client interface.

The coordinator talks to git only through this five-method protocol, so the
serialization and error-handling logic can be exercised with a test double
instead of a real git binary or network.  The production implementation is
``SubprocessGitClient``.

Every method raises a ``GitOperationError`` subclass on failure.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

from lemma.storage.models.git import GitConfig


@runtime_checkable
class GitClient(Protocol):
    """Blocking git operations against one workspace directory."""

    def clone(self) -> None:
        """Clone the configured remote into the (empty) workspace directory."""
        ...

    def pull(self) -> None:
        """Fetch and fast-forward the local branch to the remote one."""
        ...

    def commit(self, message: str) -> str:
        """Stage all working-tree changes, commit, and return the commit hash."""
        ...

    def push(self) -> None:
        """Push the current branch to the remote."""
        ...

    def ensure_repo(self) -> None:
        """Make the workspace a working clone of the remote (clone, attach or pull)."""
        ...


GitClientFactory = Callable[[GitConfig, Path], GitClient]
"""Builds a client for ``(config, workspace_root)``."""
