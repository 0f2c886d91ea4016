"""Storage error taxonomy.

Every failure the storage engine surfaces is a ``StorageError`` subclass so
the calling layer can map them to distinct responses without matching on
message text::

    PathValidationError, InvalidCommitMessageError  -> 400
    NotFoundError                                   -> 404
    FileConflictError                               -> 409
    WorkspaceBusyError                              -> 503
    StorageIOError, GitOperationError (and kids)    -> 500

Translation to HTTP status codes is the caller's responsibility; nothing in
this package knows about HTTP.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for all storage engine errors."""


class PathValidationError(StorageError, ValueError):
    """Raised when a caller-supplied path escapes the workspace sandbox."""

    def __init__(self, path: str, message: str = "invalid path") -> None:
        self.path = path
        self.message = message
        super().__init__(f"{message}: {path}")


class InvalidCommitMessageError(StorageError, ValueError):
    """Raised when a commit is requested with an empty message."""


class NotFoundError(StorageError, LookupError):
    """Raised when the target file, directory or workspace does not exist."""

    def __init__(self, path: str, message: str = "not found") -> None:
        self.path = path
        self.message = message
        super().__init__(f"{message}: {path}")


class FileConflictError(StorageError):
    """Raised when a write or move collides with an existing entry."""


class WorkspaceBusyError(StorageError):
    """Raised when the workspace lock cannot be acquired in time."""


class StorageIOError(StorageError):
    """Disk-level failure (permissions, full disk, ...) for one operation."""


# -- Git ---------------------------------------------------------------------


class GitOperationError(StorageError):
    """A git operation failed.

    ``operation`` names the step (``clone``, ``pull``, ``commit``, ``push``,
    ``ensure_repo``, ``disable``) and ``detail`` carries the underlying
    message, usually git's stderr.
    """

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        msg = f"git {operation} failed"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class GitAuthError(GitOperationError):
    """The remote rejected the supplied credentials."""


class GitNetworkError(GitOperationError):
    """The remote could not be reached or the operation timed out."""


class GitConflictError(GitOperationError):
    """Local and remote history (or working tree) cannot be reconciled."""


class GitUnknownError(GitOperationError):
    """Any git failure that does not fit a more specific category."""


class GitNotConfiguredError(GitOperationError):
    """Git sync has not been set up for the workspace."""


def is_path_validation_error(exc: BaseException | None) -> bool:
    """Return True if *exc* (or anything it was raised from) is a ``PathValidationError``."""
    while exc is not None:
        if isinstance(exc, PathValidationError):
            return True
        exc = exc.__cause__
    return False
