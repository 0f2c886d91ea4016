"""Shared enumerations used across the storage engine."""

from __future__ import annotations

from enum import StrEnum

# -- Files -------------------------------------------------------------------


class FileAction(StrEnum):
    """Mutation kind substituted for ``${action}`` in auto-commit messages."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RENAME = "rename"


# -- Git ---------------------------------------------------------------------


class GitAttachPolicy(StrEnum):
    """What to do when git is enabled on a workspace that already has files.

    ``refuse`` only attaches when the remote is empty; ``merge`` adopts the
    remote history while keeping every local file as-is.
    """

    REFUSE = "refuse"
    MERGE = "merge"


class GitOperation(StrEnum):
    CLONE = "clone"
    PULL = "pull"
    COMMIT = "commit"
    PUSH = "push"
    ENSURE_REPO = "ensure_repo"
    DISABLE = "disable"
