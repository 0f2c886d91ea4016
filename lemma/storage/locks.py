"""In-process per-workspace lock registry.

One re-entrant lock per ``(user_id, workspace_id)``.  Every file mutation
and every git operation on a workspace runs while holding that lock, so a
push or pull can never interleave with a half-finished save.  Workspaces
never share a lock.

Ephemeral -- empty on process restart.  Locks are never dropped while the
process runs, so two holders can never end up with different lock objects
for the same workspace.  Cross-process coordination is out of scope: a
single engine process owns the data root.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger

from lemma.storage.errors import WorkspaceBusyError
from lemma.storage.workspace import WorkspaceKey, workspace_key


class WorkspaceLocks:
    """Thread-safe map of workspace keys to ``threading.RLock``.

    Re-entrant so a caller already holding a workspace (for example a save
    followed by an auto-commit) can call into other locked operations.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._locks: dict[WorkspaceKey, threading.RLock] = {}
        self._guard = threading.Lock()
        self._timeout = timeout

    # -- Query -----------------------------------------------------------------

    def get(self, user_id: int | str, workspace_id: int | str) -> threading.RLock:
        """Return the workspace's lock, creating it on first use."""
        key = workspace_key(user_id, workspace_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    # -- Acquisition -----------------------------------------------------------

    @contextmanager
    def hold(self, user_id: int | str, workspace_id: int | str, *, timeout: float | None = None) -> Iterator[None]:
        """Hold the workspace lock for the duration of the ``with`` block.

        Raises ``WorkspaceBusyError`` if *timeout* (or the registry default)
        expires before the lock is acquired.  ``None`` waits forever.
        """
        lock = self.get(user_id, workspace_id)
        wait = self._timeout if timeout is None else timeout
        acquired = lock.acquire(timeout=wait) if wait is not None else lock.acquire()
        if not acquired:
            logger.warning("Locks: timed out after {}s waiting for workspace {}/{}", wait, user_id, workspace_id)
            msg = f"Workspace {user_id}/{workspace_id} is busy"
            raise WorkspaceBusyError(msg)
        try:
            yield
        finally:
            lock.release()
